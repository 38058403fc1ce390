import pytest

from conftest import PASSWORD, create_account, login, make_app
from portal.db.models.account import AccountStatus
from portal.exceptions import ConfigurationError, LOGIN_FAILED_MESSAGE


def test_login_success(client, seeded):
    response = client.post('/auth/login', json={'email': 'Admin@Portal.test', 'password': PASSWORD})
    assert response.status_code == 200
    data = response.get_json()
    assert data['token']
    assert data['user']['email'] == 'admin@portal.test'
    assert 'password_hash' not in data['user']


def test_wrong_password(client, seeded):
    response = client.post('/auth/login', json={'email': 'admin@portal.test', 'password': 'wrong-password'})
    assert response.status_code == 401
    assert response.get_json()['error_code'] == 'LOGIN_FAILED'
    assert response.get_json()['message'] == LOGIN_FAILED_MESSAGE


def test_unknown_email(client, seeded):
    response = client.post('/auth/login', json={'email': 'nobody@portal.test', 'password': PASSWORD})
    assert response.status_code == 401
    assert response.get_json()['message'] == LOGIN_FAILED_MESSAGE


def test_inactive_account_gets_same_message(app, client, seeded):
    """Test an inactive account is refused without revealing why"""
    with app.app_context():
        create_account('gone@acme.test', 'agent', status=AccountStatus.INACTIVE.value)

    response = client.post('/auth/login', json={'email': 'gone@acme.test', 'password': PASSWORD})
    assert response.status_code == 403
    assert response.get_json()['error_code'] == 'LOGIN_FAILED'
    assert response.get_json()['message'] == LOGIN_FAILED_MESSAGE


def test_pending_account_cannot_log_in(app, client, seeded):
    """Test a pending account is refused even with valid credentials"""
    with app.app_context():
        create_account('pending@acme.test', 'agent', status=AccountStatus.PENDING.value)

    response = client.post('/auth/login', json={'email': 'pending@acme.test', 'password': PASSWORD})
    assert response.status_code == 403
    assert response.get_json()['message'] == LOGIN_FAILED_MESSAGE


def test_invited_account_without_password(app, client, seeded):
    with app.app_context():
        create_account('invited@acme.test', 'agent', status=AccountStatus.PENDING.value, password=None)

    response = client.post('/auth/login', json={'email': 'invited@acme.test', 'password': ''})
    assert response.status_code == 400

    response = client.post('/auth/login', json={'email': 'invited@acme.test', 'password': PASSWORD})
    assert response.status_code == 401


def test_me(client, admin_headers):
    response = client.get('/auth/me', headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json()['access_level'] == 'admin'


def test_missing_and_bad_tokens(client, seeded):
    assert client.get('/auth/me').get_json()['error_code'] == 'TOKEN_MISSING'

    response = client.get('/auth/me', headers={'Authorization': 'Bearer garbage'})
    assert response.status_code == 401
    assert response.get_json()['error_code'] == 'INVALID_TOKEN'


def test_deactivated_session_is_rejected(app, client, admin_headers, seeded):
    """Test a token stops working once its account is deactivated"""
    headers = login(client, 'agent@acme.test')

    client.put(f"/users/{seeded['agent_id']}", json={'status': 'inactive'}, headers=admin_headers)
    response = client.get('/auth/me', headers=headers)
    assert response.status_code == 401
    assert response.get_json()['error_code'] == 'SESSION_INVALID'


def test_missing_required_settings(tmp_path):
    """Test the app refuses to start without its required settings"""
    with pytest.raises(ConfigurationError):
        make_app(tmp_path, PUBLIC_BASE_URL=None)
    with pytest.raises(ConfigurationError):
        make_app(tmp_path, JWT_SECRET_KEY=None)


def test_login_rejects_non_string_fields(client, seeded):
    """Test numbers in the credentials are a validation error, not a crash"""
    response = client.post('/auth/login', json={'email': 'admin@portal.test', 'password': 12345678})
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_FIELD_TYPE'

    response = client.post('/auth/login', json={'email': ['admin@portal.test'], 'password': PASSWORD})
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_FIELD_TYPE'


def test_set_password_rejects_non_string_token(client):
    response = client.post('/auth/set-password', json={'token': 123, 'password': 'a-strong-password'})
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_FIELD_TYPE'
