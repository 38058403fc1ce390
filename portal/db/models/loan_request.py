from portal.db import db
from portal.utils.clock import utcnow
from enum import Enum

class ReviewStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in [member.value for member in cls]

class LoanRequest(db.Model):
    __tablename__ = 'loan_requests'

    id = db.Column(db.Integer, primary_key=True)
    broker_id = db.Column(db.Integer, db.ForeignKey('brokers.id'), nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey('accounts.id'), nullable=True)
    borrower_name = db.Column(db.String(256), nullable=False)
    borrower_email = db.Column(db.String(254), nullable=True)
    loan_amount = db.Column(db.Numeric(14, 2), nullable=False)
    loan_type = db.Column(db.String(64), nullable=True)
    loan_purpose = db.Column(db.String(256), nullable=True)
    property_address = db.Column(db.String(512), nullable=True)
    status = db.Column(db.String(32), nullable=False, default=ReviewStatus.PENDING.value)
    deleted_at = db.Column(db.DateTime, nullable=True) # set while in trash
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    documents = db.relationship(
        'Document',
        back_populates='loan_request',
        cascade='all, delete-orphan',
        order_by='Document.created_at'
    )

    @property
    def in_trash(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self):
        return f'<LoanRequest {self.id} {self.borrower_name}>'
