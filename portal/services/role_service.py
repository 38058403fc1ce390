import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from portal.db import db
from portal.db.models import Account, Broker, Invitation, Role
from portal.db.models.role import DEFAULT_PERMISSIONS, AccessLevel
from portal.exceptions import NotFoundError, StoreUnavailable, ValidationError
from portal.utils.clock import utcnow

logger = logging.getLogger(__name__)


class RoleService:

    @staticmethod
    def _validate_permissions(permissions) -> list[str]:
        if not isinstance(permissions, list) or not permissions:
            raise ValidationError("Permissions must be a non-empty list", "INVALID_PERMISSIONS")
        unknown = [p for p in permissions if p not in DEFAULT_PERMISSIONS]
        if unknown:
            raise ValidationError(f"Unknown permissions: {', '.join(map(str, unknown))}", "INVALID_PERMISSIONS")
        return list(dict.fromkeys(permissions))

    @staticmethod
    def get_role(role_id: int) -> Role:
        role = db.session.get(Role, role_id)
        if not role:
            raise NotFoundError("Role not found", "ROLE_NOT_FOUND")
        return role

    @staticmethod
    def list_roles(broker_id: Optional[int] = None) -> list[Role]:
        """Internal roles plus, when given, the roles of one broker"""
        query = Role.query
        if broker_id is not None:
            query = query.filter(or_(Role.broker_id.is_(None), Role.broker_id == broker_id))
        return query.order_by(Role.name).all()

    @staticmethod
    def create_role(name: str, permissions, description: Optional[str] = None,
                    access_level: Optional[str] = None, broker_id: Optional[int] = None) -> Role:
        if not name:
            raise ValidationError("Missing required fields", "MISSING_REQUIRED_FIELDS")
        permissions = RoleService._validate_permissions(permissions)

        access_level = access_level or AccessLevel.AGENT.value
        if not AccessLevel.is_valid(access_level):
            raise ValidationError("Invalid access level", "INVALID_ACCESS_LEVEL")

        if broker_id is not None and db.session.get(Broker, broker_id) is None:
            raise NotFoundError("Broker not found", "BROKER_NOT_FOUND")

        now = utcnow()
        role = Role(
            name=name,
            description=description,
            permissions=permissions,
            access_level=access_level,
            broker_id=broker_id,
            created_at=now,
            updated_at=now
        )
        try:
            db.session.add(role)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to create role %s", name)
            raise StoreUnavailable() from e
        return role

    @staticmethod
    def update_role(role_id: int, fields: dict) -> Role:
        role = RoleService.get_role(role_id)

        if 'name' in fields:
            if not fields['name']:
                raise ValidationError("Role name cannot be empty", "MISSING_REQUIRED_FIELDS")
            role.name = fields['name']
        if 'description' in fields:
            role.description = fields['description']
        if 'permissions' in fields:
            role.permissions = RoleService._validate_permissions(fields['permissions'])
        if 'access_level' in fields:
            if not AccessLevel.is_valid(fields['access_level']):
                raise ValidationError("Invalid access level", "INVALID_ACCESS_LEVEL")
            role.access_level = fields['access_level']
        role.updated_at = utcnow()

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to update role %s", role_id)
            raise StoreUnavailable() from e
        return role

    @staticmethod
    def delete_role(role_id: int) -> None:
        role = RoleService.get_role(role_id)
        if (Account.query.filter_by(role_id=role.id).first() is not None
                or Invitation.query.filter_by(role_id=role.id).first() is not None):
            raise ValidationError("Role is assigned to users or invitations", "ROLE_IN_USE")

        try:
            db.session.delete(role)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to delete role %s", role_id)
            raise StoreUnavailable() from e
