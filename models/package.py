"""
Subscription package (plan) model definition
"""
from models import db
from datetime import datetime

AD_TIER_BASIC = 'basic'
AD_TIER_PREMIUM = 'premium'
AD_TIERS = (AD_TIER_BASIC, AD_TIER_PREMIUM)


class SubscriptionPackage(db.Model):
    """Purchasable subscription plan"""
    __tablename__ = 'subscription_packages'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=False)
    price = db.Column(db.Integer, nullable=False)  # whole currency units
    duration_days = db.Column(db.Integer, nullable=False)
    features = db.Column(db.JSON, nullable=False, default=list)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    discount = db.Column(db.Integer, default=0, nullable=False)  # percent, 0-100
    account_type_id = db.Column(db.Integer, db.ForeignKey('account_types.id'), nullable=False)
    ad_tier = db.Column(db.String(20), nullable=True)  # basic, premium; NULL = classify at read time
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('price >= 0', name='ck_package_price'),
        db.CheckConstraint('duration_days > 0', name='ck_package_duration'),
        db.CheckConstraint('discount >= 0 AND discount <= 100', name='ck_package_discount'),
    )

    # Relationships
    account_type = db.relationship('AccountType', lazy='joined')
    subscriptions = db.relationship('UserSubscription', backref='package', lazy=True)

    def __repr__(self):
        return f'<SubscriptionPackage {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'duration_days': self.duration_days,
            'features': list(self.features or []),
            'is_active': self.is_active,
            'discount': self.discount,
            'account_type_id': self.account_type_id,
            'account_type': self.account_type.name if self.account_type else None,
            'ad_tier': self.ad_tier,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
