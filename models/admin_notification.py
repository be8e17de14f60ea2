"""
Admin notification feed. Every row is also pushed live to connected admins.
"""
from models import db
from datetime import datetime

NOTIFICATION_TYPES = ('subscription', 'payment', 'user', 'system')


class AdminNotification(db.Model):
    __tablename__ = 'admin_notifications'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(50), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    related_id = db.Column(db.Integer, nullable=True)  # subscription_id, payment_id or user_id depending on type
    payload = db.Column(db.JSON, nullable=True)  # event body sent over the websocket
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    @classmethod
    def unread_count(cls):
        return cls.query.filter_by(is_read=False).count()

    def __repr__(self):
        return f'<AdminNotification {self.id}: {self.type}>'

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'related_id': self.related_id,
            'payload': self.payload,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
