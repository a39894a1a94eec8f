import pytest
from sqlalchemy import func, select
from operate.constants.roles import Role
from operate.models.authz import UserRole
from operate.services.authorization import (
    AuthorizationServiceError,
    SqlAuthorizationService,
    UnknownRoleError,
    UnknownUserError,
)
from tests.test_utils_seed import ensure_default_grants, ensure_user


def test_assign_is_upsert(db):
    user = ensure_user('upsert@sql.test')
    service = SqlAuthorizationService(db)
    first = service.assign_role(user.id, Role.CREATOR, None)
    second = service.assign_role(user.id, 'creator', None)
    assert first['id'] == second['id']
    count = db.execute(select(func.count()).select_from(UserRole).where(UserRole.user_id == user.id)).scalar_one()
    assert count == 1
    assert service.get_user_roles(user.id) == {Role.CREATOR}


def test_remove_missing_assignment_is_noop(db):
    user = ensure_user('noop@sql.test')
    service = SqlAuthorizationService(db)
    service.remove_role(user.id, Role.VERIFIER)
    assert service.get_user_roles(user.id) == frozenset()


def test_unknown_role_and_user(db):
    service = SqlAuthorizationService(db)
    with pytest.raises(UnknownRoleError):
        service.assign_role(1, 'superuser', None)
    with pytest.raises(UnknownUserError):
        service.assign_role(987654, Role.CREATOR, None)


def test_placeholder_rows_for_users_without_roles(db):
    lonely = ensure_user('lonely@sql.test')
    rows = SqlAuthorizationService(db).get_all_users_with_roles()
    mine = [r for r in rows if r['user_id'] == lonely.id]
    assert len(mine) == 1 and mine[0]['role'] is None


def test_has_permission_rules(db):
    ensure_default_grants()
    creator = ensure_user('creator@sql.test')
    plain = ensure_user('plain@sql.test')
    admin = ensure_user('root@sql.test')
    service = SqlAuthorizationService(db)
    service.assign_role(creator.id, Role.CREATOR, None)
    service.assign_role(admin.id, Role.ADMIN, None)

    assert service.has_permission(creator.id, 'view_inventory', 'inventory')
    assert not service.has_permission(plain.id, 'view_inventory', 'inventory')
    # implicit standard user grants
    assert service.has_permission(plain.id, 'create_jobs', 'jobs')
    # None resource matches any resource
    assert service.has_permission(creator.id, 'view_inventory')
    assert not service.has_permission(creator.id, 'view_inventory', 'sales')
    # admin wildcard, even for permissions nobody declared
    assert service.has_permission(admin.id, 'future_permission', 'anything')


def test_grant_and_revoke_change_checks(db):
    user = ensure_user('grantee@sql.test')
    service = SqlAuthorizationService(db)
    service.assign_role(user.id, Role.VERIFIER, None)
    assert not service.has_permission(user.id, 'view_bank_accounts_x', None)
    service.grant_role_permission(Role.VERIFIER, 'view_bank_accounts_x', None)
    service.grant_role_permission(Role.VERIFIER, 'view_bank_accounts_x', None)
    rows = [r for r in service.get_role_permissions(Role.VERIFIER) if r['permission'] == 'view_bank_accounts_x']
    assert len(rows) == 1 and rows[0]['resource'] is None
    assert service.has_permission(user.id, 'view_bank_accounts_x')
    service.revoke_role_permission(Role.VERIFIER, 'view_bank_accounts_x', None)
    assert not service.has_permission(user.id, 'view_bank_accounts_x')


def test_count_admins_distinct(db):
    service = SqlAuthorizationService(db)
    before = service.count_admins()
    user = ensure_user('admincount@sql.test')
    service.assign_role(user.id, Role.ADMIN, None)
    service.assign_role(user.id, Role.ADMIN, None)
    assert service.count_admins() == before + 1


def test_store_failure_is_wrapped(db, monkeypatch):
    service = SqlAuthorizationService(db)
    from sqlalchemy.exc import OperationalError

    def boom(*a, **k):
        raise OperationalError('SELECT', {}, Exception('down'))

    monkeypatch.setattr(db, 'execute', boom)
    with pytest.raises(AuthorizationServiceError):
        service.get_user_roles(1)


def test_missing_or_inactive_user_holds_nothing(db):
    ensure_default_grants()
    service = SqlAuthorizationService(db)
    assert not service.has_permission(987654, 'create_jobs', 'jobs')

    former = ensure_user('former@sql.test')
    assert service.has_permission(former.id, 'create_jobs', 'jobs')
    former.is_active = False
    db.commit()
    assert not service.has_permission(former.id, 'create_jobs', 'jobs')
    service.assign_role(former.id, Role.ADMIN, None)
    assert not service.has_permission(former.id, 'future_permission', 'anything')
