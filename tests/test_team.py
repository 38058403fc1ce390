from conftest import FailingMailer
from portal.db.models import Account, Agent, Invitation


def create_agent(client, headers, broker_id, **fields):
    body = {'email': 'recruit@acme.test', 'broker_id': broker_id, 'first_name': 'Rita', 'last_name': 'Recruit'}
    body.update(fields)
    return client.post('/agents', json=body, headers=headers)


def test_create_agent_invites_pending_account(app, client, mailer, broker_admin_headers, seeded):
    """Test a new agent starts pending and is linked to its invitation"""
    response = create_agent(client, broker_admin_headers, seeded['broker_id'], role_id=seeded['agent_role_id'])
    assert response.status_code == 201
    data = response.get_json()
    assert data['agent']['status'] == 'pending'
    assert data['invitation']['account_id'] == data['agent']['account_id']
    assert data['notification'] == {'sent': True}
    assert 'token' not in data
    assert mailer.sent[0]['to'] == 'recruit@acme.test'

    response = client.post('/complete-registration', json={
        'token': mailer.last_token(),
        'password': 'a-strong-password'
    })
    assert response.status_code == 200
    assert response.get_json()['user']['id'] == data['agent']['account_id']
    assert response.get_json()['user']['first_name'] == 'Rita'

    agent = client.get(f"/agents/{data['agent']['id']}", headers=broker_admin_headers).get_json()
    assert agent['status'] == 'active'


def test_create_agent_with_failing_mailer(app, client, broker_admin_headers, seeded):
    app.extensions['mailer'] = FailingMailer()
    response = create_agent(client, broker_admin_headers, seeded['broker_id'])
    assert response.status_code == 207
    assert response.get_json()['notification']['sent'] is False
    with app.app_context():
        assert Agent.query.count() == 1
        assert Invitation.query.count() == 1


def test_duplicate_agent_email(client, mailer, broker_admin_headers, seeded):
    response = create_agent(client, broker_admin_headers, seeded['broker_id'], email='agent@acme.test')
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'USER_EXISTS'


def test_create_agent_for_other_broker_denied(client, mailer, broker_admin_headers, seeded):
    response = create_agent(client, broker_admin_headers, seeded['other_broker_id'])
    assert response.status_code == 403
    assert response.get_json()['error_code'] == 'BROKER_ACCESS_DENIED'


def test_cannot_activate_before_registration(client, mailer, broker_admin_headers, seeded):
    agent_id = create_agent(client, broker_admin_headers, seeded['broker_id']).get_json()['agent']['id']
    response = client.patch(f'/agents/{agent_id}/status', json={'status': 'active'}, headers=broker_admin_headers)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'REGISTRATION_INCOMPLETE'


def test_deactivate_agent(client, mailer, broker_admin_headers, seeded):
    data = create_agent(client, broker_admin_headers, seeded['broker_id']).get_json()
    client.post('/complete-registration', json={'token': mailer.last_token(), 'password': 'a-strong-password'})

    response = client.patch(
        f"/agents/{data['agent']['id']}/status", json={'status': 'inactive'}, headers=broker_admin_headers
    )
    assert response.status_code == 200
    assert response.get_json()['status'] == 'inactive'

    response = client.post('/auth/login', json={'email': 'recruit@acme.test', 'password': 'a-strong-password'})
    assert response.status_code == 403


def test_delete_agent_removes_account_and_invitations(app, client, mailer, broker_admin_headers, seeded):
    """Test deleting an agent leaves no account or outstanding invitation behind"""
    data = create_agent(client, broker_admin_headers, seeded['broker_id']).get_json()
    token = mailer.last_token()

    response = client.delete(f"/agents/{data['agent']['id']}", headers=broker_admin_headers)
    assert response.status_code == 200

    with app.app_context():
        assert Agent.query.count() == 0
        assert Account.query.filter_by(email='recruit@acme.test').first() is None
        assert Invitation.query.count() == 0

    response = client.post('/complete-registration', json={'token': token, 'password': 'a-strong-password'})
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_TOKEN'


def test_agents_listed_per_broker(client, mailer, admin_headers, broker_admin_headers, seeded):
    create_agent(client, broker_admin_headers, seeded['broker_id'])
    create_agent(client, admin_headers, seeded['other_broker_id'], email='recruit@other.test')

    agents = client.get('/agents', headers=broker_admin_headers).get_json()['agents']
    assert [a['email'] for a in agents] == ['recruit@acme.test']

    agents = client.get('/agents', headers=admin_headers).get_json()['agents']
    assert len(agents) == 2

    agents = client.get(f"/agents?broker_id={seeded['other_broker_id']}", headers=admin_headers).get_json()['agents']
    assert [a['email'] for a in agents] == ['recruit@other.test']
