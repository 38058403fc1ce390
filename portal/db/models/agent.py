from portal.db import db
from portal.utils.clock import utcnow


class Agent(db.Model):
    __tablename__ = 'agents'

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey('accounts.id'), unique=True, nullable=False)
    broker_id = db.Column(db.Integer, db.ForeignKey('brokers.id'), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    license_number = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    account = db.relationship('Account')
    broker = db.relationship('Broker')

    @property
    def status(self) -> str:
        return self.account.status

    def __repr__(self):
        return f'<Agent {self.account_id}@{self.broker_id}>'
