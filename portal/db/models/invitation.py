from portal.db import db
from portal.utils.clock import utcnow


class Invitation(db.Model):
    __tablename__ = 'invitations'

    id = db.Column(db.Integer, primary_key=True)
    # sha256 of the emailed token; the raw token is never stored
    token_hash = db.Column(db.String(64), unique=True, nullable=False, index=True)
    email = db.Column(db.String(254), nullable=False)
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), nullable=True)
    broker_id = db.Column(db.Integer, db.ForeignKey('brokers.id'), nullable=True)
    account_id = db.Column(db.Integer, db.ForeignKey('accounts.id'), nullable=True)
    invited_by_id = db.Column(db.Integer, db.ForeignKey('accounts.id'), nullable=True)
    message = db.Column(db.Text, nullable=True)

    expires_at = db.Column(db.DateTime, nullable=False)
    last_sent_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    role = db.relationship('Role')
    broker = db.relationship('Broker')

    def is_expired(self, now=None) -> bool:
        return self.expires_at <= (now or utcnow())

    def __repr__(self):
        return f'<Invitation {self.email}>'
