from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Optional

from flask import current_app
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from portal.db import db
from portal.db.models import Account, Broker, Invitation, Role
from portal.db.models.account import AccountStatus
from portal.db.models.role import AccessLevel
from portal.exceptions import (
    AuthorizationError, NotFoundError, ServiceException, StoreUnavailable,
    TokenExpired, ValidationError
)
from portal.services.notification_service import NotificationService
from portal.services.queue_service import QueueService
from portal.services.token_service import generate_token, hash_token
from portal.utils.clock import utcnow
from portal.utils.validators import normalize_email, validate_email

logger = logging.getLogger(__name__)

TOKEN_ATTEMPTS = 3
MAX_INVITATION_TTL = timedelta(days=365)


@dataclass
class IssuedInvitation:
    invitation: Invitation
    token: str
    delivery_error: Optional[ServiceException] = None

    @property
    def notified(self) -> bool:
        return self.delivery_error is None


class InviteService:
    @staticmethod
    def default_ttl() -> timedelta:
        return timedelta(hours=current_app.config['INVITATION_TTL_HOURS'])

    @staticmethod
    def _scoped_broker_id(inviter: Optional[Account], broker_id: Optional[int]) -> Optional[int]:
        """Broker admins can only invite into their own broker."""
        if inviter is None or inviter.access_level == AccessLevel.ADMIN.value:
            return broker_id
        if broker_id is None:
            return inviter.broker_id
        if broker_id != inviter.broker_id:
            raise AuthorizationError("Cannot invite into another broker", "BROKER_ACCESS_DENIED")
        return broker_id

    @staticmethod
    def issue(
        inviter: Optional[Account],
        email: str,
        role_id: Optional[int] = None,
        broker_id: Optional[int] = None,
        message: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        account: Optional[Account] = None,
    ) -> IssuedInvitation:
        """
        Persist an invitation and email its registration link.
        A failed email leaves the invitation in place and is reported on
        the result instead of raised.
        """
        if not validate_email(email):
            raise ValidationError("Invalid email", "INVALID_EMAIL")
        email = normalize_email(email)

        if ttl is None:
            ttl = InviteService.default_ttl()
        if abs(ttl) > MAX_INVITATION_TTL:
            raise ValidationError("Invitation lifetime out of range", "INVALID_TTL")

        broker_id = InviteService._scoped_broker_id(inviter, broker_id)

        if role_id is not None and db.session.get(Role, role_id) is None:
            raise NotFoundError("Role not found", "ROLE_NOT_FOUND")
        if broker_id is not None and db.session.get(Broker, broker_id) is None:
            raise NotFoundError("Broker not found", "BROKER_NOT_FOUND")

        if account is None:
            account = Account.query.filter_by(email=email).first()
        if account is not None and account.status != AccountStatus.PENDING.value:
            raise ValidationError("Email is already registered", "EMAIL_EXISTS")

        outstanding = Invitation.query.filter(Invitation.email == email, Invitation.expires_at > utcnow()).first()
        if outstanding is not None:
            raise ValidationError("An invitation for this email is still outstanding", "INVITE_EXISTS")

        invitation, token = InviteService._store(
            email=email,
            role_id=role_id,
            broker_id=broker_id,
            account_id=account.id if account else None,
            invited_by_id=inviter.id if inviter else None,
            message=message,
            expires_at=utcnow() + ttl
        )
        logger.info("Issued invitation %s for %s", invitation.id, email)

        delivery_error = InviteService._deliver(invitation, token)
        return IssuedInvitation(invitation, token, delivery_error)

    @staticmethod
    def _store(**fields) -> tuple[Invitation, str]:
        for attempt in range(1, TOKEN_ATTEMPTS + 1):
            token = generate_token()
            invitation = Invitation(token_hash=hash_token(token), **fields)
            try:
                db.session.add(invitation)
                db.session.commit()
                return invitation, token
            except IntegrityError:
                db.session.rollback()
                logger.warning("Invitation token collision for %s (attempt %d)", fields['email'], attempt)
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.exception("Failed to store invitation for %s", fields['email'])
                raise StoreUnavailable() from e

        raise StoreUnavailable("Could not allocate an invitation token", "TOKEN_COLLISION")

    @staticmethod
    def _deliver(invitation: Invitation, token: str) -> Optional[ServiceException]:
        try:
            NotificationService.send_invitation(invitation, token)
        except ServiceException as e:
            logger.error(
                "Invitation %s stored but email to %s failed: %s",
                invitation.id, invitation.email, e.__cause__ or e
            )
            return e

        try:
            invitation.last_sent_at = utcnow()
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Could not record send time for invitation %s", invitation.id)
        return None

    @staticmethod
    def lookup(token: str) -> Optional[Invitation]:
        return Invitation.query.filter_by(token_hash=hash_token(token)).first()

    @staticmethod
    def fetch(token: str) -> Invitation:
        """Resolve a token for display, e.g. to pre-fill a registration form."""
        invitation = InviteService.lookup(token)
        if invitation is None:
            raise NotFoundError("Invitation not found", "INVITATION_NOT_FOUND")
        if invitation.is_expired():
            raise TokenExpired()
        return invitation

    @staticmethod
    def consume(invitation_id: int, token_hash: str, now: datetime) -> bool:
        """
        Delete the invitation only if it still exists and is unexpired.
        Returns False when another request got there first. Does not commit;
        the caller commits together with the account change.
        """
        result = db.session.execute(
            delete(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.token_hash == token_hash,
                Invitation.expires_at > now
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _scoped_query(user: Account):
        query = Invitation.query
        if user.access_level != AccessLevel.ADMIN.value:
            query = query.filter_by(broker_id=user.broker_id)
        return query

    @staticmethod
    def get_invite(user: Account, invitation_id: int) -> Invitation:
        invitation = InviteService._scoped_query(user).filter_by(id=invitation_id).first()
        if not invitation:
            raise NotFoundError("Invitation not found", "INVITATION_NOT_FOUND")
        return invitation

    @staticmethod
    def list_invites(user: Account, include_expired: bool = False) -> list[Invitation]:
        """List outstanding invitations visible to ``user``"""
        query = InviteService._scoped_query(user)

        if not include_expired:
            query = query.filter(Invitation.expires_at > utcnow())

        return query.order_by(Invitation.created_at.desc()).all()

    @staticmethod
    def revoke(user: Account, invitation_id: int) -> None:
        invitation = InviteService.get_invite(user, invitation_id)
        try:
            db.session.delete(invitation)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to revoke invitation %s", invitation_id)
            raise StoreUnavailable() from e
        logger.info("Revoked invitation %s", invitation_id)

    @staticmethod
    def redeliver(invitation_id: int) -> IssuedInvitation:
        """
        Rotate the token of an outstanding invitation, push its expiry out by
        the default ttl and email the new link. Earlier links stop working.
        """
        invitation = db.session.get(Invitation, invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation not found", "INVITATION_NOT_FOUND")

        for attempt in range(1, TOKEN_ATTEMPTS + 1):
            token = generate_token()
            invitation.token_hash = hash_token(token)
            invitation.expires_at = utcnow() + InviteService.default_ttl()
            try:
                db.session.commit()
                break
            except IntegrityError:
                db.session.rollback()
                logger.warning("Invitation token collision on resend %s (attempt %d)", invitation_id, attempt)
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.exception("Failed to rotate invitation %s", invitation_id)
                raise StoreUnavailable() from e
        else:
            raise StoreUnavailable("Could not allocate an invitation token", "TOKEN_COLLISION")

        delivery_error = InviteService._deliver(invitation, token)
        return IssuedInvitation(invitation, token, delivery_error)

    @staticmethod
    def resend(user: Account, invitation_id: int, background: bool = False) -> Optional[IssuedInvitation]:
        """Resend now, or hand the resend to the notifications worker."""
        invitation = InviteService.get_invite(user, invitation_id)

        if background:
            QueueService.get_instance().enqueue_invitation_delivery(invitation.id)
            return None

        return InviteService.redeliver(invitation.id)

    @staticmethod
    def purge_expired(now: Optional[datetime] = None) -> int:
        """Delete expired invitations. Validation never relies on this running."""
        now = now or utcnow()
        try:
            result = db.session.execute(
                delete(Invitation)
                .where(Invitation.expires_at <= now)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to purge expired invitations")
            raise StoreUnavailable() from e

        logger.info("Purged %d expired invitations", result.rowcount)
        return result.rowcount
