import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from portal.db import db
from portal.db.models import Account, Invitation, Role
from portal.db.models.account import AccountStatus
from portal.db.models.role import AccessLevel
from portal.exceptions import (
    InvalidToken, ServiceException, StoreUnavailable, TokenExpired, ValidationError
)
from portal.services.invite_service import InviteService
from portal.utils.clock import utcnow
from portal.utils.validators import validate_password

logger = logging.getLogger(__name__)


class RegistrationService:
    @staticmethod
    def complete(
        token: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Account:
        """
        Turn an invitation into an active account.

        The invitation row is deleted by a conditional delete in the same
        transaction that activates the account, so a token is consumed at
        most once even when two requests race on it. Any failure rolls back
        both, leaving the invitation usable.
        """
        invitation = InviteService.lookup(token)
        if invitation is None:
            raise InvalidToken()
        invitation_id = invitation.id

        now = utcnow()
        if invitation.is_expired(now):
            raise TokenExpired()

        if not validate_password(password):
            raise ValidationError("Invalid password. Must be at least 8 characters long.", "INVALID_PASSWORD")

        try:
            if not InviteService.consume(invitation_id, invitation.token_hash, now):
                raise InvalidToken()

            account = RegistrationService._activate(invitation, password, first_name, last_name)

            db.session.commit()

        except ServiceException:
            db.session.rollback()
            raise
        except IntegrityError:
            # another invitation for the same email registered first
            db.session.rollback()
            logger.info("Registration for invitation %s lost to an existing account", invitation_id)
            raise ValidationError("Email is already registered", "EMAIL_EXISTS")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to complete registration for invitation %s", invitation_id)
            raise StoreUnavailable() from e

        logger.info("Registration completed for account %s", account.id)
        return account

    @staticmethod
    def _activate(invitation: Invitation, password: str, first_name, last_name) -> Account:
        account = None
        if invitation.account_id is not None:
            account = db.session.get(Account, invitation.account_id)
        if account is None:
            account = Account.query.filter_by(email=invitation.email).first()

        if account is not None and account.status != AccountStatus.PENDING.value:
            raise ValidationError("Email is already registered", "EMAIL_EXISTS")

        if account is None:
            account = Account(email=invitation.email, created_at=utcnow())
            db.session.add(account)

        role = db.session.get(Role, invitation.role_id) if invitation.role_id else None

        account.set_password(password)
        account.status = AccountStatus.ACTIVE.value
        account.role_id = invitation.role_id or account.role_id
        account.broker_id = invitation.broker_id or account.broker_id
        account.access_level = role.access_level if role else (account.access_level or AccessLevel.AGENT.value)
        if first_name:
            account.first_name = first_name
        if last_name:
            account.last_name = last_name
        account.updated_at = utcnow()

        db.session.flush()
        return account
