import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from portal.db import db
from portal.db.models import Account, Agent, Broker, Role
from portal.db.models.account import AccountStatus
from portal.db.models.role import AccessLevel
from portal.exceptions import (
    AuthorizationError, NotFoundError, StoreUnavailable, ValidationError
)
from portal.services.invite_service import InviteService, IssuedInvitation
from portal.services.user_service import UserService
from portal.utils.clock import utcnow
from portal.utils.validators import normalize_email, validate_email

logger = logging.getLogger(__name__)


class TeamService:
    @staticmethod
    def _check_broker_access(user: Account, broker_id: int) -> None:
        if user.access_level != AccessLevel.ADMIN.value and user.broker_id != broker_id:
            raise AuthorizationError("Access denied", "BROKER_ACCESS_DENIED")

    @staticmethod
    def list_agents(user: Account, broker_id: Optional[int] = None) -> list[Agent]:
        query = Agent.query
        if user.access_level != AccessLevel.ADMIN.value:
            broker_id = user.broker_id
        if broker_id is not None:
            query = query.filter_by(broker_id=broker_id)
        return query.order_by(Agent.created_at.desc()).all()

    @staticmethod
    def get_agent(user: Account, agent_id: int) -> Agent:
        agent = db.session.get(Agent, agent_id)
        if not agent:
            raise NotFoundError("Agent not found", "AGENT_NOT_FOUND")
        TeamService._check_broker_access(user, agent.broker_id)
        return agent

    @staticmethod
    def create_agent(
        user: Account,
        email: str,
        broker_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        license_number: Optional[str] = None,
        role_id: Optional[int] = None,
        message: Optional[str] = None,
    ) -> tuple[Agent, IssuedInvitation]:
        """
        Create a pending account and its agent profile in one transaction,
        then invite the agent to finish registration.

        If the invitation cannot be stored the agent stays pending and can
        be invited again through the invitations endpoint.
        """
        if not validate_email(email):
            raise ValidationError("Invalid email", "INVALID_EMAIL")
        email = normalize_email(email)

        TeamService._check_broker_access(user, broker_id)
        if db.session.get(Broker, broker_id) is None:
            raise NotFoundError("Broker not found", "BROKER_NOT_FOUND")

        role = None
        if role_id is not None:
            role = db.session.get(Role, role_id)
            if role is None:
                raise NotFoundError("Role not found", "ROLE_NOT_FOUND")

        if Account.query.filter_by(email=email).first():
            raise ValidationError("User with this email already exists", "USER_EXISTS")

        now = utcnow()
        try:
            account = Account(
                email=email,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                status=AccountStatus.PENDING.value,
                access_level=role.access_level if role else AccessLevel.AGENT.value,
                role_id=role_id,
                broker_id=broker_id,
                created_at=now,
                updated_at=now
            )
            db.session.add(account)
            db.session.flush()

            agent = Agent(
                account_id=account.id,
                broker_id=broker_id,
                phone=phone,
                license_number=license_number,
                created_at=now,
                updated_at=now
            )
            db.session.add(agent)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to create agent %s", email)
            raise StoreUnavailable() from e

        logger.info("Created agent %s for broker %s", agent.id, broker_id)

        issued = InviteService.issue(
            user, email,
            role_id=role_id,
            broker_id=broker_id,
            message=message,
            account=account
        )
        return agent, issued

    @staticmethod
    def update_agent_status(user: Account, agent_id: int, status: str) -> Agent:
        agent = TeamService.get_agent(user, agent_id)
        account = agent.account

        if status not in (AccountStatus.ACTIVE.value, AccountStatus.INACTIVE.value):
            raise ValidationError("Status must be active or inactive", "INVALID_STATUS")
        if status == AccountStatus.ACTIVE.value and not account.password_hash:
            raise ValidationError("Agent has not completed registration", "REGISTRATION_INCOMPLETE")

        now = utcnow()
        account.status = status
        account.updated_at = now
        agent.updated_at = now

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to update status of agent %s", agent_id)
            raise StoreUnavailable() from e
        return agent

    @staticmethod
    def delete_agent(user: Account, agent_id: int) -> None:
        """Remove the agent, its account and any outstanding invitations together"""
        agent = TeamService.get_agent(user, agent_id)
        UserService.delete_user(user, agent.account_id)
        logger.info("Deleted agent %s", agent_id)
