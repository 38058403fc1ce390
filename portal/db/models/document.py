from portal.db import db
from portal.db.models.loan_request import ReviewStatus
from portal.utils.clock import utcnow

DOCUMENT_SECTIONS = ('escrow', 'title')

class Document(db.Model):
    __tablename__ = 'documents'

    id = db.Column(db.Integer, primary_key=True)
    loan_request_id = db.Column(db.Integer, db.ForeignKey('loan_requests.id'), nullable=False)
    category = db.Column(db.String(128), nullable=False)
    name = db.Column(db.String(256), nullable=False)
    section = db.Column(db.String(32), nullable=True)
    status = db.Column(db.String(32), nullable=False, default=ReviewStatus.PENDING.value)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    loan_request = db.relationship('LoanRequest', back_populates='documents')
    versions = db.relationship(
        'DocumentVersion',
        cascade='all, delete-orphan',
        order_by='DocumentVersion.id'
    )
    comments = db.relationship(
        'DocumentComment',
        cascade='all, delete-orphan',
        order_by='DocumentComment.id'
    )

    def __repr__(self):
        return f'<Document {self.name}>'

class DocumentVersion(db.Model):
    __tablename__ = 'document_versions'

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey('documents.id'), nullable=False)
    storage_key = db.Column(db.String(256), nullable=False)
    url = db.Column(db.String(1024), nullable=False)
    file_name = db.Column(db.String(256), nullable=False)
    size = db.Column(db.Integer, nullable=False)
    content_type = db.Column(db.String(128), nullable=True)
    uploaded_by_id = db.Column(db.Integer, db.ForeignKey('accounts.id'), nullable=True)
    uploaded_at = db.Column(db.DateTime, default=utcnow)

class DocumentComment(db.Model):
    __tablename__ = 'document_comments'

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey('documents.id'), nullable=False)
    author_id = db.Column(db.Integer, db.ForeignKey('accounts.id'), nullable=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    author = db.relationship('Account')
