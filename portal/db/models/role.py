from portal.db import db
from portal.utils.clock import utcnow
from enum import Enum

DEFAULT_PERMISSIONS = (
    'all',
    'read',
    'write',
    'delete',
    'manage_users',
    'manage_roles',
    'manage_brokers',
    'manage_loans',
    'manage_documents',
    'view_reports',
)

class AccessLevel(Enum):
    ADMIN = "admin"
    BROKER_ADMIN = "broker_admin"
    AGENT = "agent"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in [member.value for member in cls]

class Role(db.Model):
    __tablename__ = 'roles'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.String(512), nullable=True)
    permissions = db.Column(db.JSON, nullable=False, default=list)
    access_level = db.Column(db.String(32), nullable=False, default=AccessLevel.AGENT.value)
    # null broker means an internal role available to every broker
    broker_id = db.Column(db.Integer, db.ForeignKey('brokers.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    broker = db.relationship('Broker')

    def __repr__(self):
        return f'<Role {self.name}>'
