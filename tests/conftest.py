import re

import pytest

from portal.app import create_app
from portal.db import db
from portal.db.models import Account, Broker, Role
from portal.db.models.account import AccountStatus
from portal.db.models.role import AccessLevel
from portal.exceptions import NotificationError

PASSWORD = 'correct-horse-42'
TOKEN_PATTERN = re.compile(r'token=([A-Za-z0-9_\-]+)')


class RecordingMailer:
    """Keeps every message instead of sending it"""

    def __init__(self):
        self.sent = []

    def send(self, to_email, subject, html_content, text_content=None):
        self.sent.append({'to': to_email, 'subject': subject, 'html': html_content})

    def last_token(self):
        return TOKEN_PATTERN.search(self.sent[-1]['html']).group(1)


class FailingMailer:
    def send(self, to_email, subject, html_content, text_content=None):
        raise NotificationError()


def make_app(tmp_path, **overrides):
    config = {
        'TESTING': True,
        'DATABASE_URL': 'sqlite://',
        'JWT_SECRET_KEY': 'test-secret-key-that-is-long-enough-for-hs256',
        'PUBLIC_BASE_URL': 'http://portal.test',
        'SEND_EMAILS': False,
        'UPLOAD_DIR': str(tmp_path / 'uploads'),
        'INVITATION_TTL_HOURS': 24,
    }
    config.update(overrides)
    return create_app(config)


@pytest.fixture
def app(tmp_path):
    return make_app(tmp_path)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mailer(app):
    recording = RecordingMailer()
    app.extensions['mailer'] = recording
    return recording


def create_account(email, access_level, broker_id=None, status=AccountStatus.ACTIVE.value,
                   password=PASSWORD, role_id=None):
    account = Account(
        email=email,
        status=status,
        access_level=access_level,
        broker_id=broker_id,
        role_id=role_id
    )
    if password:
        account.set_password(password)
    db.session.add(account)
    db.session.commit()
    return account.id


@pytest.fixture
def seeded(app):
    """Two brokers, an admin, a broker admin and an agent for the first broker"""
    with app.app_context():
        acme = Broker(company_name='Acme Lending', email='office@acme.test')
        other = Broker(company_name='Other Mortgages', email='office@other.test')
        agent_role = Role(name='Agent', permissions=['read', 'write'], access_level=AccessLevel.AGENT.value)
        db.session.add_all([acme, other, agent_role])
        db.session.commit()

        ids = {
            'broker_id': acme.id,
            'other_broker_id': other.id,
            'agent_role_id': agent_role.id,
        }
        ids['admin_id'] = create_account('admin@portal.test', AccessLevel.ADMIN.value)
        ids['broker_admin_id'] = create_account(
            'boss@acme.test', AccessLevel.BROKER_ADMIN.value, broker_id=acme.id
        )
        ids['agent_id'] = create_account(
            'agent@acme.test', AccessLevel.AGENT.value, broker_id=acme.id, role_id=agent_role.id
        )
        ids['other_admin_id'] = create_account(
            'boss@other.test', AccessLevel.BROKER_ADMIN.value, broker_id=other.id
        )
    return ids


def login(client, email, password=PASSWORD):
    response = client.post('/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return {'Authorization': f"Bearer {response.get_json()['token']}"}


@pytest.fixture
def admin_headers(client, seeded):
    return login(client, 'admin@portal.test')


@pytest.fixture
def broker_admin_headers(client, seeded):
    return login(client, 'boss@acme.test')


@pytest.fixture
def agent_headers(client, seeded):
    return login(client, 'agent@acme.test')
