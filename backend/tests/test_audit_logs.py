from operate.constants.roles import Role
from tests.test_utils_seed import ensure_user, login_headers, seed_user_with_roles


def test_audit_log_listing_conditional_and_paginated(client):
    seed_user_with_roles('audit-admin@audit.test', [Role.ADMIN])
    headers = login_headers(client, 'audit-admin@audit.test')
    target = ensure_user('audit-target@audit.test')
    for role in ('creator', 'verifier'):
        resp = client.post(f'/iam/users/{target.id}/roles', json={'role': role, 'confirmations': 1}, headers=headers)
        assert resp.status_code == 201

    first = client.get('/iam/audit/logs?limit=1', headers=headers)
    assert first.status_code == 200
    body = first.get_json()
    assert body['pagination']['limit'] == 1 and body['pagination']['returned'] == 1
    assert body['pagination']['total'] >= 2
    etag = first.headers.get('ETag')
    assert etag

    second = client.get('/iam/audit/logs?limit=1', headers={**headers, 'If-None-Match': etag})
    assert second.status_code == 304
    assert second.headers.get('ETag') == etag


def test_cancelled_change_is_not_audited(client):
    seed_user_with_roles('audit-admin2@audit.test', [Role.ADMIN])
    headers = login_headers(client, 'audit-admin2@audit.test')
    target = ensure_user('audit-cancel@audit.test')
    resp = client.post(f'/iam/users/{target.id}/roles', json={'role': 'admin', 'confirmations': 0}, headers=headers)
    assert resp.status_code == 428
    logs = client.get('/iam/audit/logs?action=USER.ROLE.ASSIGN&limit=200', headers=headers).get_json()['data']
    assert not any(l['entity_id'] == str(target.id) for l in logs)
