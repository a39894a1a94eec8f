from sqlalchemy import select
from operate.constants.roles import Role
from operate.models.authz import RolePermission
from operate.services.authorization import SqlAuthorizationService
from operate.services.seed import (
    build_role_permission_map,
    ensure_initial_admin,
    role_map_checksum,
    seed_role_permissions,
    validate_store,
)


def test_seed_is_idempotent(db):
    seed_role_permissions(db); db.commit()
    assert seed_role_permissions(db) == 0
    db.commit()
    mapping = build_role_permission_map(db)
    assert 'verify_jobs::jobs' in mapping['verifier']
    assert 'export_own_data::data' in mapping['user']
    assert role_map_checksum(mapping) == role_map_checksum(build_role_permission_map(db))


def test_initial_admin_created_once(db):
    user, created = ensure_initial_admin(db, email='seed-admin@seed.test', password='pw')
    db.commit()
    again, created_again = ensure_initial_admin(db, email='seed-admin@seed.test')
    db.commit()
    assert created and not created_again and again.id == user.id
    assert SqlAuthorizationService(db).has_role(user.id, Role.ADMIN)


def test_validate_reports_unmapped_grants(db):
    db.add(RolePermission(role='creator', permission='legacy_export', resource=''))
    db.commit()
    problems = validate_store(db)
    assert any('legacy_export::null' in p for p in problems)
    row = db.execute(select(RolePermission).where(RolePermission.permission == 'legacy_export')).scalar_one()
    db.delete(row); db.commit()
    assert not any('legacy_export' in p for p in validate_store(db))
