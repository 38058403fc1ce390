import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from portal.db import db
from portal.db.models import Account, Document, DocumentComment, DocumentVersion
from portal.db.models.document import DOCUMENT_SECTIONS
from portal.db.models.loan_request import ReviewStatus
from portal.db.models.role import AccessLevel
from portal.exceptions import AuthorizationError, NotFoundError, StoreUnavailable, ValidationError
from portal.services.loan_service import LoanService
from portal.services.storage_service import StorageService
from portal.utils.clock import utcnow

logger = logging.getLogger(__name__)


class DocumentService:
    @staticmethod
    def get_document(user: Account, document_id: int) -> Document:
        document = db.session.get(Document, document_id)
        if not document:
            raise NotFoundError("Document not found", "DOCUMENT_NOT_FOUND")
        # raises when the request is in another broker or in trash
        LoanService.get_request(user, document.loan_request_id)
        return document

    @staticmethod
    def list_documents(user: Account, loan_id: int) -> list[Document]:
        return LoanService.get_request(user, loan_id).documents

    @staticmethod
    def upload(
        user: Account,
        loan_id: int,
        file_storage,
        category: Optional[str] = None,
        name: Optional[str] = None,
        section: Optional[str] = None,
        document_id: Optional[int] = None,
    ) -> Document:
        """
        Store a file as a new document, or as the next version of
        ``document_id``. A new version puts the document back into review.
        """
        loan = LoanService.get_request(user, loan_id)
        file_name = StorageService.clean_file_name(file_storage)

        if document_id is not None:
            document = db.session.get(Document, document_id)
            if not document or document.loan_request_id != loan.id:
                raise NotFoundError("Document not found", "DOCUMENT_NOT_FOUND")
        else:
            if not all([category, name]):
                raise ValidationError("Missing required fields", "MISSING_REQUIRED_FIELDS")
            if section is not None and section not in DOCUMENT_SECTIONS:
                raise ValidationError("Invalid document section", "INVALID_SECTION")
            document = Document(
                loan_request_id=loan.id,
                category=category,
                name=name,
                section=section,
                created_at=utcnow()
            )
            db.session.add(document)

        store = StorageService.store()
        key, size = store.save(file_storage, file_name)

        now = utcnow()
        document.versions.append(DocumentVersion(
            storage_key=key,
            url=store.url_for(key),
            file_name=file_name,
            size=size,
            content_type=file_storage.mimetype,
            uploaded_by_id=user.id,
            uploaded_at=now
        ))
        document.status = ReviewStatus.PENDING.value
        document.updated_at = now

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            store.delete(key)
            logger.exception("Failed to record upload for loan request %s", loan_id)
            raise StoreUnavailable() from e

        logger.info("Stored version %d of document %s", len(document.versions), document.id)
        return document

    @staticmethod
    def review(user: Account, document_id: int, status: str, comment: Optional[str] = None) -> Document:
        if user.access_level == AccessLevel.AGENT.value:
            raise AuthorizationError("Only admins can review documents", "INSUFFICIENT_ROLE")
        if status not in (ReviewStatus.APPROVED.value, ReviewStatus.REJECTED.value):
            raise ValidationError("Status must be approved or rejected", "INVALID_STATUS")

        document = DocumentService.get_document(user, document_id)
        now = utcnow()
        document.status = status
        document.updated_at = now
        if comment:
            document.comments.append(DocumentComment(author_id=user.id, content=comment, created_at=now))

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to review document %s", document_id)
            raise StoreUnavailable() from e

        logger.info("Document %s marked %s by account %s", document_id, status, user.id)
        return document

    @staticmethod
    def add_comment(user: Account, document_id: int, content: str) -> DocumentComment:
        if not content or not content.strip():
            raise ValidationError("Comment cannot be empty", "MISSING_REQUIRED_FIELDS")

        document = DocumentService.get_document(user, document_id)
        comment = DocumentComment(author_id=user.id, content=content.strip(), created_at=utcnow())
        document.comments.append(comment)

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to comment on document %s", document_id)
            raise StoreUnavailable() from e
        return comment
