from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import PASSWORD, create_account
from portal.db import db
from portal.db.models import Account, Invitation
from portal.exceptions import InvalidToken
from portal.services.invite_service import InviteService
from portal.services.registration_service import RegistrationService
from portal.utils.clock import utcnow


def issue_token(client, headers, **fields):
    body = {'email': 'new.agent@acme.test'}
    body.update(fields)
    response = client.post('/invitations', json=body, headers=headers)
    assert response.status_code == 201
    return response.get_json()['token']


def register(client, token, password='a-strong-password', **fields):
    body = {'token': token, 'password': password}
    body.update(fields)
    return client.post('/complete-registration', json=body)


def test_complete_registration(app, client, mailer, broker_admin_headers, seeded):
    """Test an invitation becomes an active account with the invited role"""
    token = issue_token(client, broker_admin_headers, role_id=seeded['agent_role_id'])

    response = register(client, token, first_name='Ada', last_name='Lovelace')
    assert response.status_code == 200
    user = response.get_json()['user']
    assert user['email'] == 'new.agent@acme.test'
    assert user['status'] == 'active'
    assert user['access_level'] == 'agent'
    assert user['role_id'] == seeded['agent_role_id']
    assert user['broker']['id'] == seeded['broker_id']
    assert 'password_hash' not in user
    assert 'token' not in response.get_json()

    with app.app_context():
        account = Account.query.filter_by(email='new.agent@acme.test').one()
        assert account.password_hash != 'a-strong-password'
        assert account.check_password('a-strong-password')
        assert Invitation.query.count() == 0

    login = client.post('/auth/login', json={'email': 'new.agent@acme.test', 'password': 'a-strong-password'})
    assert login.status_code == 200


def test_token_is_single_use(client, mailer, broker_admin_headers):
    """Test a second registration with the same token fails"""
    token = issue_token(client, broker_admin_headers)
    assert register(client, token).status_code == 200

    response = register(client, token, password='another-password')
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_TOKEN'


def test_consume_succeeds_once(app, client, mailer, broker_admin_headers):
    """Test the conditional delete only matches for the first caller"""
    token = issue_token(client, broker_admin_headers)
    with app.app_context():
        invitation = InviteService.lookup(token)
        now = utcnow()
        assert InviteService.consume(invitation.id, invitation.token_hash, now) is True
        assert InviteService.consume(invitation.id, invitation.token_hash, now) is False
        db.session.rollback()


def test_consume_refuses_expired(app, client, mailer, broker_admin_headers):
    token = issue_token(client, broker_admin_headers, ttl_seconds=-1)
    with app.app_context():
        invitation = InviteService.lookup(token)
        assert InviteService.consume(invitation.id, invitation.token_hash, utcnow()) is False
        db.session.rollback()


def test_unknown_token(client):
    response = register(client, 'definitely-not-issued')
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_TOKEN'


def test_unknown_token_service(app):
    with app.app_context():
        with pytest.raises(InvalidToken):
            RegistrationService.complete('definitely-not-issued', 'a-strong-password')


def test_expired_token(app, client, mailer, broker_admin_headers):
    """Test an expired token is reported as expired and left untouched"""
    token = issue_token(client, broker_admin_headers, ttl_seconds=-1)
    response = register(client, token)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'TOKEN_EXPIRED'
    with app.app_context():
        assert Invitation.query.count() == 1
        assert Account.query.filter_by(email='new.agent@acme.test').first() is None


def test_short_password_keeps_invitation(app, client, mailer, broker_admin_headers):
    token = issue_token(client, broker_admin_headers)
    response = register(client, token, password='short')
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_PASSWORD'
    assert register(client, token).status_code == 200


def test_missing_fields(client):
    response = client.post('/complete-registration', json={'token': 'abc'})
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'MISSING_REQUIRED_FIELDS'


def test_failed_activation_rolls_back_consume(app, client, mailer, broker_admin_headers):
    """Test the invitation survives when the account cannot be activated"""
    token = issue_token(client, broker_admin_headers)
    with app.app_context():
        # the email gets registered some other way while the invite is outstanding
        create_account('new.agent@acme.test', 'agent')

    response = register(client, token)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'EMAIL_EXISTS'

    with app.app_context():
        assert Invitation.query.count() == 1
        account = Account.query.filter_by(email='new.agent@acme.test').one()
        assert account.check_password(PASSWORD)


def test_set_password_route(client, mailer, broker_admin_headers):
    """Test the set-password route completes an invitation too"""
    token = issue_token(client, broker_admin_headers)
    response = client.post('/auth/set-password', json={'token': token, 'password': 'a-strong-password'})
    assert response.status_code == 200
    assert response.get_json() == {'success': True}

    response = client.post('/auth/set-password', json={'token': token, 'password': 'a-strong-password'})
    assert response.status_code == 400


def test_issue_fetch_complete_scenario(client, mailer, admin_headers, seeded):
    """Test the full lifecycle for one invitation, end to end"""
    before = utcnow()
    response = client.post('/invitations', json={
        'email': 'a@x.com',
        'role_id': seeded['agent_role_id'],
        'broker_id': seeded['broker_id'],
        'ttl_seconds': 24 * 3600
    }, headers=admin_headers)
    token = response.get_json()['token']

    fetched = client.get('/invitations/lookup', query_string={'token': token}).get_json()
    assert fetched['email'] == 'a@x.com'
    assert fetched['role_id'] == seeded['agent_role_id']
    assert fetched['broker_id'] == seeded['broker_id']
    expires_at = datetime.fromisoformat(fetched['expires_at'])
    assert before + timedelta(hours=24) <= expires_at <= utcnow() + timedelta(hours=24)

    response = register(client, token, password='Secret123!')
    assert response.status_code == 200
    assert response.get_json()['user']['status'] == 'active'
    assert 'password_hash' not in response.get_json()['user']

    response = register(client, token, password='Secret123!')
    assert response.get_json()['error_code'] == 'INVALID_TOKEN'


def test_non_string_fields_rejected(client, mailer, broker_admin_headers):
    """Test a number in the token or password is a validation error"""
    response = register(client, 123)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_FIELD_TYPE'

    token = issue_token(client, broker_admin_headers)
    response = register(client, token, password=12345678)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_FIELD_TYPE'
    assert register(client, token).status_code == 200


def test_racing_completions_consume_once(app, client, mailer, broker_admin_headers, monkeypatch):
    """Test the slower of two completions fails after both passed the lookup"""
    token = issue_token(client, broker_admin_headers)
    original_lookup = InviteService.lookup
    raced = []

    def lookup_then_lose_race(value):
        invitation = original_lookup(value)
        if not raced:
            raced.append(value)
            # the competing request commits between this lookup and the consume
            with app.app_context():
                RegistrationService.complete(value, 'winning-password')
        return invitation

    monkeypatch.setattr(InviteService, 'lookup', staticmethod(lookup_then_lose_race))

    with app.app_context():
        with pytest.raises(InvalidToken):
            RegistrationService.complete(token, 'losing-password')

    with app.app_context():
        account = Account.query.filter_by(email='new.agent@acme.test').one()
        assert account.check_password('winning-password')
        assert not account.check_password('losing-password')
        assert Invitation.query.count() == 0


def test_duplicate_account_insert_reported_as_email_exists(app, client, mailer, broker_admin_headers, monkeypatch):
    """Test a unique violation on the account email is not reported as retryable"""
    token = issue_token(client, broker_admin_headers)

    def insert_conflict(invitation, password, first_name, last_name):
        raise IntegrityError("INSERT INTO accounts", {}, Exception("UNIQUE constraint failed: accounts.email"))

    monkeypatch.setattr(RegistrationService, '_activate', staticmethod(insert_conflict))

    response = register(client, token)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'EMAIL_EXISTS'
    assert 'retryable' not in response.get_json()
    with app.app_context():
        assert Invitation.query.count() == 1
