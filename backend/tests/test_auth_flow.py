from operate import get_db
from tests.test_utils_seed import login_headers, seed_user_with_roles
from operate.constants.roles import Role


def test_register_login_session(client):
    resp = client.post('/iam/auth/register', json={'email': 'New@Example.com', 'password': 'pw', 'full_name': 'New'})
    assert resp.status_code == 201, resp.get_json()
    assert resp.get_json()['role'] == 'user'

    dup = client.post('/iam/auth/register', json={'email': 'new@example.com', 'password': 'x'})
    assert dup.status_code == 409

    headers = login_headers(client, 'new@example.com')
    me = client.get('/iam/auth/me', headers=headers)
    assert me.status_code == 200
    body = me.get_json()
    assert body['email'] == 'new@example.com'
    assert body['capabilities']['user_role'] == 'user'
    assert body['capabilities']['is_admin'] is False

    session = client.get('/iam/auth/session', headers=headers).get_json()
    assert session['authenticated'] is True and session['user']['email'] == 'new@example.com'


def test_login_rejects_bad_credentials(client):
    seed_user_with_roles('badpw@example.com')
    assert client.post('/iam/auth/login', json={'email': 'badpw@example.com', 'password': 'wrong'}).status_code == 401
    assert client.post('/iam/auth/login', json={'email': 'badpw@example.com'}).status_code == 400


def test_session_without_or_with_bad_token_is_signed_out(client):
    body = client.get('/iam/auth/session').get_json()
    assert body['authenticated'] is False and body['capabilities']['user_role'] == 'user'
    bad = client.get('/iam/auth/session', headers={'Authorization': 'Bearer not-a-token'})
    assert bad.status_code == 200 and bad.get_json()['authenticated'] is False


def test_me_requires_token(client):
    assert client.get('/iam/auth/me').status_code == 401


def test_permission_check_endpoint(client):
    seed_user_with_roles('checker@example.com', [Role.CREATOR])
    headers = login_headers(client, 'checker@example.com')
    ok = client.get('/iam/permissions/check?permission=view_inventory&resource=inventory', headers=headers)
    assert ok.get_json()['granted'] is True
    denied = client.get('/iam/permissions/check?permission=verify_jobs&resource=jobs', headers=headers)
    assert denied.get_json()['granted'] is False
    assert client.get('/iam/permissions/check', headers=headers).status_code == 400


def test_deactivated_account_token_is_rejected(client):
    user = seed_user_with_roles('deactivated@example.com', [Role.ADMIN])
    headers = login_headers(client, 'deactivated@example.com')
    assert client.get('/iam/catalog', headers=headers).status_code == 200

    user.is_active = False
    get_db().commit()
    assert client.get('/iam/catalog', headers=headers).status_code == 401
    assert client.get('/iam/roles', headers=headers).status_code == 401
    check = client.get('/iam/permissions/check?permission=create_jobs&resource=jobs', headers=headers)
    assert check.get_json()['granted'] is False
