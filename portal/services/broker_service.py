import logging

from sqlalchemy.exc import SQLAlchemyError

from portal.db import db
from portal.db.models import Account, Agent, Broker, Invitation, LoanRequest
from portal.db.models.broker import BrokerStatus
from portal.exceptions import NotFoundError, StoreUnavailable, ValidationError
from portal.utils.clock import utcnow
from portal.utils.validators import normalize_email, validate_email

logger = logging.getLogger(__name__)

BROKER_FIELDS = ('company_name', 'email', 'phone', 'address', 'website', 'description', 'status')


class BrokerService:

    @staticmethod
    def get_broker(broker_id: int) -> Broker:
        """Get broker by ID"""
        broker = db.session.get(Broker, broker_id)
        if not broker:
            raise NotFoundError("Broker not found", "BROKER_NOT_FOUND")
        return broker

    @staticmethod
    def list_brokers(include_inactive: bool = True) -> list[Broker]:
        query = Broker.query
        if not include_inactive:
            query = query.filter_by(status=BrokerStatus.ACTIVE.value)
        return query.order_by(Broker.created_at.desc()).all()

    @staticmethod
    def _validate(fields: dict, broker_id=None) -> None:
        if 'email' in fields:
            if not validate_email(fields['email']):
                raise ValidationError("Invalid email", "INVALID_EMAIL")
            fields['email'] = normalize_email(fields['email'])
            existing = Broker.query.filter_by(email=fields['email']).first()
            if existing and existing.id != broker_id:
                raise ValidationError("A broker with this email already exists", "BROKER_EXISTS")

        status = fields.get('status')
        if status is not None and status not in [s.value for s in BrokerStatus]:
            raise ValidationError("Invalid broker status", "INVALID_STATUS")

    @staticmethod
    def create_broker(fields: dict) -> Broker:
        fields = {k: v for k, v in fields.items() if k in BROKER_FIELDS and v is not None}
        if not all([fields.get('company_name'), fields.get('email')]):
            raise ValidationError("Missing required fields", "MISSING_REQUIRED_FIELDS")
        BrokerService._validate(fields)

        now = utcnow()
        broker = Broker(created_at=now, updated_at=now, **fields)
        try:
            db.session.add(broker)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to create broker %s", fields.get('email'))
            raise StoreUnavailable() from e

        logger.info("Created broker %s", broker.id)
        return broker

    @staticmethod
    def update_broker(broker_id: int, fields: dict) -> Broker:
        broker = BrokerService.get_broker(broker_id)
        fields = {k: v for k, v in fields.items() if k in BROKER_FIELDS}
        if 'company_name' in fields and not fields['company_name']:
            raise ValidationError("Company name cannot be empty", "MISSING_REQUIRED_FIELDS")
        BrokerService._validate(fields, broker_id=broker.id)

        for field, value in fields.items():
            setattr(broker, field, value)
        broker.updated_at = utcnow()

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to update broker %s", broker_id)
            raise StoreUnavailable() from e
        return broker

    @staticmethod
    def delete_broker(broker_id: int) -> None:
        """
        Delete a broker that no longer owns anything.
        Agents, accounts, invitations and loan requests must be moved or
        removed first; nothing cascades from here.
        """
        broker = BrokerService.get_broker(broker_id)

        for model in (Agent, Account, Invitation, LoanRequest):
            if model.query.filter_by(broker_id=broker.id).first() is not None:
                raise ValidationError("Broker still has team members or loan requests", "BROKER_IN_USE")

        try:
            db.session.delete(broker)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to delete broker %s", broker_id)
            raise StoreUnavailable() from e
        logger.info("Deleted broker %s", broker_id)
