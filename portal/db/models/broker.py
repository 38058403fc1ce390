from portal.db import db
from portal.utils.clock import utcnow
from enum import Enum

class BrokerStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class Broker(db.Model):
    __tablename__ = 'brokers'

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(256), nullable=False)
    email = db.Column(db.String(254), unique=True, nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    website = db.Column(db.String(256), nullable=True)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(32), nullable=False, default=BrokerStatus.ACTIVE.value)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    def __repr__(self):
        return f'<Broker {self.company_name}>'
