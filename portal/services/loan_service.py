import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from portal.db import db
from portal.db.models import Account, LoanRequest
from portal.db.models.loan_request import ReviewStatus
from portal.db.models.role import AccessLevel
from portal.exceptions import AuthorizationError, NotFoundError, StoreUnavailable, ValidationError
from portal.services.storage_service import StorageService
from portal.utils.clock import utcnow

logger = logging.getLogger(__name__)

LOAN_FIELDS = (
    'borrower_name', 'borrower_email', 'loan_amount', 'loan_type',
    'loan_purpose', 'property_address', 'broker_id'
)


def _parse_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Loan amount must be a number", "INVALID_LOAN_AMOUNT")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Loan amount must be positive", "INVALID_LOAN_AMOUNT")
    return amount


class LoanService:
    @staticmethod
    def _scoped_query(user: Account):
        query = LoanRequest.query
        if user.access_level != AccessLevel.ADMIN.value:
            query = query.filter_by(broker_id=user.broker_id)
        return query

    @staticmethod
    def _commit(action: str, loan_id=None) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to %s loan request %s", action, loan_id)
            raise StoreUnavailable() from e

    @staticmethod
    def get_request(user: Account, loan_id: int, include_trashed: bool = False) -> LoanRequest:
        loan = LoanService._scoped_query(user).filter_by(id=loan_id).first()
        if not loan or (loan.in_trash and not include_trashed):
            raise NotFoundError("Loan request not found", "LOAN_REQUEST_NOT_FOUND")
        return loan

    @staticmethod
    def list_requests(user: Account, status: Optional[str] = None) -> list[LoanRequest]:
        query = LoanService._scoped_query(user).filter(LoanRequest.deleted_at.is_(None))
        if status:
            query = query.filter_by(status=status)
        return query.order_by(LoanRequest.created_at.desc()).all()

    @staticmethod
    def list_trash(user: Account) -> list[LoanRequest]:
        query = LoanService._scoped_query(user).filter(LoanRequest.deleted_at.isnot(None))
        return query.order_by(LoanRequest.deleted_at.desc()).all()

    @staticmethod
    def create_request(user: Account, fields: dict) -> LoanRequest:
        fields = {k: v for k, v in fields.items() if k in LOAN_FIELDS and v is not None}
        if not all([fields.get('borrower_name'), fields.get('loan_amount') is not None]):
            raise ValidationError("Missing required fields", "MISSING_REQUIRED_FIELDS")
        fields['loan_amount'] = _parse_amount(fields['loan_amount'])

        if user.access_level != AccessLevel.ADMIN.value:
            if fields.get('broker_id', user.broker_id) != user.broker_id:
                raise AuthorizationError("Cannot create requests for another broker", "BROKER_ACCESS_DENIED")
            fields['broker_id'] = user.broker_id

        now = utcnow()
        loan = LoanRequest(
            created_by_id=user.id,
            status=ReviewStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            **fields
        )
        db.session.add(loan)
        LoanService._commit('create')
        logger.info("Created loan request %s", loan.id)
        return loan

    @staticmethod
    def update_request(user: Account, loan_id: int, fields: dict) -> LoanRequest:
        loan = LoanService.get_request(user, loan_id)
        fields = {k: v for k, v in fields.items() if k in LOAN_FIELDS and k != 'broker_id'}

        if 'borrower_name' in fields and not fields['borrower_name']:
            raise ValidationError("Borrower name cannot be empty", "MISSING_REQUIRED_FIELDS")
        if 'loan_amount' in fields:
            fields['loan_amount'] = _parse_amount(fields['loan_amount'])

        for field, value in fields.items():
            setattr(loan, field, value)
        loan.updated_at = utcnow()
        LoanService._commit('update', loan_id)
        return loan

    @staticmethod
    def set_status(user: Account, loan_id: int, status: str) -> LoanRequest:
        if not ReviewStatus.is_valid(status):
            raise ValidationError("Invalid status", "INVALID_STATUS")
        if user.access_level == AccessLevel.AGENT.value:
            raise AuthorizationError("Only admins can change a request status", "INSUFFICIENT_ROLE")

        loan = LoanService.get_request(user, loan_id)
        loan.status = status
        loan.updated_at = utcnow()
        LoanService._commit('update status of', loan_id)
        return loan

    @staticmethod
    def trash_request(user: Account, loan_id: int) -> LoanRequest:
        loan = LoanService.get_request(user, loan_id)
        loan.deleted_at = utcnow()
        LoanService._commit('trash', loan_id)
        logger.info("Moved loan request %s to trash", loan_id)
        return loan

    @staticmethod
    def restore_request(user: Account, loan_id: int) -> LoanRequest:
        loan = LoanService.get_request(user, loan_id, include_trashed=True)
        if not loan.in_trash:
            raise ValidationError("Loan request is not in trash", "NOT_IN_TRASH")
        loan.deleted_at = None
        loan.updated_at = utcnow()
        LoanService._commit('restore', loan_id)
        logger.info("Restored loan request %s", loan_id)
        return loan

    @staticmethod
    def purge_request(user: Account, loan_id: int) -> None:
        """Permanently delete a trashed request with its documents and files"""
        loan = LoanService.get_request(user, loan_id, include_trashed=True)
        if not loan.in_trash:
            raise ValidationError("Only requests in trash can be deleted permanently", "NOT_IN_TRASH")

        storage_keys = [v.storage_key for doc in loan.documents for v in doc.versions]
        db.session.delete(loan)
        LoanService._commit('purge', loan_id)

        store = StorageService.store()
        for key in storage_keys:
            store.delete(key)
        logger.info("Purged loan request %s", loan_id)
