"""
Role and AccountType reference models
"""
from models import db
from datetime import datetime


class Role(db.Model):
    """Authorization role (Admin, Moderator, User, VIP)"""
    __tablename__ = 'roles'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Role {self.name}>'

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


class AccountType(db.Model):
    """Account tier a user belongs to (Normal, Premium)"""
    __tablename__ = 'account_types'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<AccountType {self.name}>'

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'description': self.description}


def find_role(name):
    """Look up a role by name; None when the seed record is missing."""
    return Role.query.filter_by(name=name).first()


def find_account_type(name):
    """Look up an account type by name; None when the seed record is missing."""
    return AccountType.query.filter_by(name=name).first()
