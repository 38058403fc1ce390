from portal.db import db
from portal.utils.clock import utcnow
from enum import Enum
from werkzeug.security import generate_password_hash, check_password_hash


class AccountStatus(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class Account(db.Model):
    __tablename__ = 'accounts'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(254), unique=True, nullable=False)
    first_name = db.Column(db.String(128), nullable=True)
    last_name = db.Column(db.String(128), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    password_hash = db.Column(db.String(256), nullable=True) # unset until registration completes
    status = db.Column(db.String(32), nullable=False, default=AccountStatus.PENDING.value)
    access_level = db.Column(db.String(32), nullable=False, default='agent')
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), nullable=True)
    broker_id = db.Column(db.Integer, db.ForeignKey('brokers.id'), nullable=True)
    last_login_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    role = db.relationship('Role')
    broker = db.relationship('Broker')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in [self.first_name, self.last_name] if part)

    def __repr__(self):
        return f'<Account {self.email}>'
