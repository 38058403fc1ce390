def test_create_and_list_brokers(client, admin_headers):
    response = client.post('/brokers', json={
        'company_name': 'Harbor Loans',
        'email': 'Hello@Harbor.test',
        'website': 'https://harbor.test'
    }, headers=admin_headers)
    assert response.status_code == 201
    broker = response.get_json()['broker']
    assert broker['email'] == 'hello@harbor.test'
    assert broker['status'] == 'active'

    brokers = client.get('/brokers', headers=admin_headers).get_json()['brokers']
    assert 'Harbor Loans' in [b['company_name'] for b in brokers]


def test_broker_validation(client, admin_headers):
    response = client.post('/brokers', json={'company_name': 'No Email'}, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'MISSING_REQUIRED_FIELDS'

    response = client.post('/brokers', json={'company_name': 'Copy', 'email': 'office@acme.test'},
                           headers=admin_headers)
    assert response.get_json()['error_code'] == 'BROKER_EXISTS'


def test_broker_endpoints_need_admin(client, broker_admin_headers, seeded):
    assert client.get('/brokers', headers=broker_admin_headers).status_code == 403
    assert client.get(f"/brokers/{seeded['broker_id']}", headers=broker_admin_headers).status_code == 200
    assert client.get(f"/brokers/{seeded['other_broker_id']}", headers=broker_admin_headers).status_code == 403


def test_update_broker(client, admin_headers, seeded):
    response = client.put(f"/brokers/{seeded['broker_id']}", json={'status': 'inactive'}, headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json()['status'] == 'inactive'

    active = client.get('/brokers?include_inactive=false', headers=admin_headers).get_json()['brokers']
    assert seeded['broker_id'] not in [b['id'] for b in active]


def test_delete_broker_in_use(client, admin_headers, seeded):
    """Test a broker with accounts cannot be deleted"""
    response = client.delete(f"/brokers/{seeded['broker_id']}", headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'BROKER_IN_USE'

    broker_id = client.post('/brokers', json={'company_name': 'Empty', 'email': 'empty@broker.test'},
                            headers=admin_headers).get_json()['broker']['id']
    assert client.delete(f'/brokers/{broker_id}', headers=admin_headers).status_code == 200
    assert client.get(f'/brokers/{broker_id}', headers=admin_headers).status_code == 404


def test_roles(client, admin_headers, broker_admin_headers, seeded):
    response = client.post('/roles', json={
        'name': 'Processor',
        'permissions': ['read', 'manage_documents', 'read'],
        'access_level': 'agent',
        'broker_id': seeded['other_broker_id']
    }, headers=admin_headers)
    assert response.status_code == 201
    assert response.get_json()['role']['permissions'] == ['read', 'manage_documents']

    # broker admins see internal roles and their own broker's roles only
    names = [r['name'] for r in client.get('/roles', headers=broker_admin_headers).get_json()['roles']]
    assert names == ['Agent']

    names = [r['name'] for r in client.get('/roles', headers=admin_headers).get_json()['roles']]
    assert names == ['Agent', 'Processor']


def test_role_validation(client, admin_headers):
    response = client.post('/roles', json={'name': 'Bad', 'permissions': ['fly']}, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_PERMISSIONS'

    response = client.post('/roles', json={'name': 'Bad', 'permissions': ['read'], 'access_level': 'root'},
                           headers=admin_headers)
    assert response.get_json()['error_code'] == 'INVALID_ACCESS_LEVEL'


def test_role_in_use(client, admin_headers, seeded):
    response = client.delete(f"/roles/{seeded['agent_role_id']}", headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'ROLE_IN_USE'

    response = client.put(f"/roles/{seeded['agent_role_id']}", json={'description': 'Field agent'},
                          headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json()['description'] == 'Field agent'


def test_users_admin_only(client, broker_admin_headers):
    assert client.get('/users', headers=broker_admin_headers).status_code == 403


def test_list_and_update_users(client, admin_headers, seeded):
    users = client.get(f"/users?broker_id={seeded['broker_id']}", headers=admin_headers).get_json()['users']
    assert sorted(u['email'] for u in users) == ['agent@acme.test', 'boss@acme.test']
    assert all('password_hash' not in u for u in users)

    role_id = client.post('/roles', json={'name': 'Manager', 'permissions': ['all'], 'access_level': 'broker_admin'},
                          headers=admin_headers).get_json()['role']['id']
    response = client.put(f"/users/{seeded['agent_id']}", json={'role_id': role_id, 'phone': '555-0100'},
                          headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json()['access_level'] == 'broker_admin'
    assert response.get_json()['phone'] == '555-0100'

    response = client.put(f"/users/{seeded['agent_id']}", json={'status': 'pending'}, headers=admin_headers)
    assert response.get_json()['error_code'] == 'INVALID_STATUS'


def test_delete_user(client, admin_headers, seeded):
    response = client.delete(f"/users/{seeded['admin_id']}", headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'CANNOT_DELETE_SELF'

    assert client.delete(f"/users/{seeded['agent_id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/users/{seeded['agent_id']}", headers=admin_headers).status_code == 404
