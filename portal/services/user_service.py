import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from portal.db import db
from portal.db.models import (
    Account, Agent, Broker, DocumentComment, DocumentVersion, Invitation, LoanRequest, Role
)
from portal.db.models.account import AccountStatus
from portal.exceptions import (
    AccountInactive, AuthenticationError, DependencyError, NotFoundError,
    StoreUnavailable, ValidationError
)
from portal.middleware.auth import AuthService, IdentityProvider
from portal.utils.clock import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('first_name', 'last_name', 'phone', 'role_id', 'broker_id', 'status')


class UserService:
    @staticmethod
    def get_user_by_id(account_id: int) -> Account:
        """
        Get an account by its ID.
        Raises NotFoundError if the account does not exist.
        """
        account = db.session.get(Account, account_id)
        if not account:
            raise NotFoundError("User not found", "USER_NOT_FOUND")
        return account

    @staticmethod
    def get_current_user(account_id: int) -> Account:
        """Resolve the account behind a session token; it must still be active."""
        account = db.session.get(Account, account_id)
        if not account or account.status != AccountStatus.ACTIVE.value:
            raise AuthenticationError("Session is no longer valid", "SESSION_INVALID")
        return account

    @staticmethod
    def login(email: str, password: str) -> tuple[Account, str]:
        """
        Verify credentials, then check the domain account.

        A wrong password and an inactive account produce the same response
        body; only the log line tells them apart.
        """
        account_id = IdentityProvider.verify(email, password)

        try:
            account = db.session.get(Account, account_id)
        except SQLAlchemyError as e:
            logger.exception("Account lookup failed after credential check for %s", email)
            raise DependencyError() from e
        if account is None:
            logger.error("Verified identity %s has no account", account_id)
            raise DependencyError()

        if account.status != AccountStatus.ACTIVE.value:
            logger.info("Login refused for %s account %s", account.status, account.id)
            raise AccountInactive()

        try:
            account.last_login_at = utcnow()
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Could not record login time for account %s", account.id)

        return account, AuthService.create_access_token(account)

    @staticmethod
    def list_users(broker_id: Optional[int] = None, status: Optional[str] = None) -> list[Account]:
        query = Account.query
        if broker_id is not None:
            query = query.filter_by(broker_id=broker_id)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Account.created_at.desc()).all()

    @staticmethod
    def update_user(account_id: int, changes: dict) -> Account:
        account = UserService.get_user_by_id(account_id)

        status = changes.get('status')
        if status is not None:
            if status not in (AccountStatus.ACTIVE.value, AccountStatus.INACTIVE.value):
                raise ValidationError("Status must be active or inactive", "INVALID_STATUS")
            if status == AccountStatus.ACTIVE.value and not account.password_hash:
                raise ValidationError("Account has not completed registration", "REGISTRATION_INCOMPLETE")

        role_id = changes.get('role_id')
        if role_id is not None:
            role = db.session.get(Role, role_id)
            if role is None:
                raise NotFoundError("Role not found", "ROLE_NOT_FOUND")
            account.access_level = role.access_level

        broker_id = changes.get('broker_id')
        if broker_id is not None and db.session.get(Broker, broker_id) is None:
            raise NotFoundError("Broker not found", "BROKER_NOT_FOUND")

        for field in UPDATABLE_FIELDS:
            if changes.get(field) is not None:
                setattr(account, field, changes[field])
        account.updated_at = utcnow()

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to update account %s", account_id)
            raise StoreUnavailable() from e
        return account

    @staticmethod
    def delete_user(acting_user: Account, account_id: int) -> None:
        """Delete an account together with its agent profile and invitations"""
        if acting_user.id == account_id:
            raise ValidationError("You cannot delete your own account", "CANNOT_DELETE_SELF")

        account = UserService.get_user_by_id(account_id)
        try:
            Agent.query.filter_by(account_id=account.id).delete()
            Invitation.query.filter_by(account_id=account.id).delete()
            Invitation.query.filter_by(invited_by_id=account.id).update({"invited_by_id": None})
            LoanRequest.query.filter_by(created_by_id=account.id).update({"created_by_id": None})
            DocumentVersion.query.filter_by(uploaded_by_id=account.id).update({"uploaded_by_id": None})
            DocumentComment.query.filter_by(author_id=account.id).update({"author_id": None})
            db.session.delete(account)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to delete account %s", account_id)
            raise StoreUnavailable() from e
        logger.info("Deleted account %s", account_id)
