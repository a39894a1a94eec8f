from operate import create_app
from operate.constants.roles import Role
from tests.test_utils_seed import login_headers, seed_user_with_roles


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_internal_error_shape(client, monkeypatch):
    seed_user_with_roles('err-admin@errors.test', [Role.ADMIN])
    headers = login_headers(client, 'err-admin@errors.test')
    import operate.routes.iam as iam_mod

    class BoomCatalog:
        @property
        def entries(self):
            raise RuntimeError('explode')

    monkeypatch.setattr(iam_mod, 'catalog', BoomCatalog())
    resp = client.get('/iam/catalog', headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['title'] == 'Internal Server Error'
    assert body['error']['action'] == 'reload'


def test_store_failure_maps_to_503(client, monkeypatch):
    seed_user_with_roles('err-store@errors.test', [Role.ADMIN])
    headers = login_headers(client, 'err-store@errors.test')
    from operate.services.authorization import AuthorizationServiceError, SqlAuthorizationService

    def boom(self):
        raise AuthorizationServiceError('role catalog failed: OperationalError')

    monkeypatch.setattr(SqlAuthorizationService, 'get_all_roles', boom)
    resp = client.get('/iam/roles', headers=headers)
    assert resp.status_code == 503
    assert resp.get_json()['error']['status'] == 503


def test_missing_configuration_serves_placeholder():
    app = create_app({'DATABASE_URL': None, 'JWT_SECRET_KEY': None})
    c = app.test_client()
    health = c.get('/healthz')
    assert health.status_code == 503
    assert set(health.get_json()['missing']) == {'DATABASE_URL', 'JWT_SECRET_KEY'}
    resp = c.post('/iam/auth/login', json={'email': 'a@b.c', 'password': 'x'})
    assert resp.status_code == 503
    assert resp.get_json()['error']['title'] == 'Configuration Error'


def test_health_ok(client):
    resp = client.get('/healthz')
    assert resp.status_code == 200 and resp.get_json()['status'] == 'ok'
