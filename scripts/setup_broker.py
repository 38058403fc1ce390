#!/usr/bin/env python3
import sys
import os
import argparse
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from portal.app import create_app
from portal.db import db
from portal.db.models import Account, Broker, Role
from portal.db.models.account import AccountStatus
from portal.db.models.role import AccessLevel
from portal.utils.clock import utcnow
from portal.utils.validators import normalize_email, validate_password

DEFAULT_ROLES = (
    {
        'name': 'Admin',
        'description': 'System administrator with full access',
        'permissions': ['all'],
        'access_level': AccessLevel.ADMIN.value,
    },
    {
        'name': 'Agent',
        'description': 'Regular agent with basic access',
        'permissions': ['read', 'write'],
        'access_level': AccessLevel.AGENT.value,
    },
)


def seed_roles() -> dict:
    """Create the default roles once; returns them by name."""
    roles = {}
    for spec in DEFAULT_ROLES:
        role = Role.query.filter_by(name=spec['name'], broker_id=None).first()
        if role is None:
            role = Role(created_at=utcnow(), updated_at=utcnow(), **spec)
            db.session.add(role)
        roles[spec['name']] = role
    db.session.flush()
    return roles


def setup_broker(company_name: str, broker_email: str, admin_email: str, admin_password: str):
    """
    Create a broker company, the default roles and the first admin account.
    The admin is created active; everyone else joins through invitations.
    """
    if not validate_password(admin_password):
        raise SystemExit("Admin password must be at least 8 characters long")

    try:
        roles = seed_roles()

        broker = Broker(
            company_name=company_name,
            email=normalize_email(broker_email),
            created_at=utcnow(),
            updated_at=utcnow()
        )
        db.session.add(broker)
        db.session.flush()  # Get the broker ID

        admin = Account(
            email=normalize_email(admin_email),
            status=AccountStatus.ACTIVE.value,
            access_level=AccessLevel.ADMIN.value,
            role_id=roles['Admin'].id,
            broker_id=broker.id,
            created_at=utcnow(),
            updated_at=utcnow()
        )
        admin.set_password(admin_password)
        db.session.add(admin)
        db.session.commit()

        print(f"Created broker {broker.company_name} (id {broker.id})")
        print(f"Created admin {admin.email} (id {admin.id})")

    except Exception:
        db.session.rollback()
        raise


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Create a broker and its first admin account")
    parser.add_argument('company_name')
    parser.add_argument('broker_email')
    parser.add_argument('admin_email')
    parser.add_argument('admin_password')
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        setup_broker(args.company_name, args.broker_email, args.admin_email, args.admin_password)
