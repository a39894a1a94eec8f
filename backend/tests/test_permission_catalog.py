import pytest
from operate.constants.permissions import (
    ALL_ENTRIES,
    PERMISSION_CONFIG_KEYS,
    DuplicatePermissionError,
    build_permission_keys,
    make_entry,
    make_permission_key,
    parse_permission_key,
)
from operate.constants.roles import DEFAULT_ROLE_GRANTS, Role
from operate.services.catalog import (
    CHECKED,
    INDETERMINATE,
    UNCHECKED,
    PermissionCatalog,
    dedupe_entries,
    default_grant_keys,
)


def _matrix(actions):
    return [{'module': 'M', 'description': 'd', 'rows': [{'key': 'r', 'label': 'R', 'actions': actions}]}]


def test_catalog_keys_are_unique():
    assert len(PERMISSION_CONFIG_KEYS) == len(ALL_ENTRIES)


def test_duplicate_pair_fails_fast():
    matrix = _matrix({
        'view': [make_entry('view_x', 'x', 'View', '')],
        'others': [make_entry('view_x', 'x', 'View again', '')],
    })
    with pytest.raises(DuplicatePermissionError):
        build_permission_keys(matrix)


def test_same_permission_different_resource_is_not_duplicate():
    matrix = _matrix({
        'view': [make_entry('view_analytics', 'analytics', 'A', ''), make_entry('view_analytics', 'jobs', 'B', '')],
    })
    assert build_permission_keys(matrix) == {'view_analytics::analytics', 'view_analytics::jobs'}


def test_unknown_column_rejected():
    with pytest.raises(ValueError):
        build_permission_keys(_matrix({'bogus': [make_entry('p', None, 'P', '')]}))


def test_key_round_trip_including_global_resource():
    assert make_permission_key('manage_users', None) == 'manage_users::null'
    assert parse_permission_key('manage_users::null') == ('manage_users', None)
    assert parse_permission_key(make_permission_key('view_inventory', 'inventory')) == ('view_inventory', 'inventory')
    # stored global grants use '' for the resource
    assert make_permission_key('view_inventory', '') == 'view_inventory::null'
    assert parse_permission_key(make_permission_key('view_inventory', '')) == ('view_inventory', None)


@pytest.mark.parametrize('permission,resource', [('a::b', None), ('p', 'x::y'), ('p', 'null'), ('', None)])
def test_key_rejects_ambiguous_parts(permission, resource):
    with pytest.raises(ValueError):
        make_permission_key(permission, resource)


def test_default_grants_reference_catalog_entries():
    for role in Role:
        assert default_grant_keys(role) <= PERMISSION_CONFIG_KEYS, role
    assert default_grant_keys(Role.ADMIN) == set(PERMISSION_CONFIG_KEYS)
    assert DEFAULT_ROLE_GRANTS[Role.ADMIN] == ['*']


def test_list_entries_filters_by_granted_keys():
    catalog = PermissionCatalog()
    entries = catalog.list_entries(Role.VERIFIER, ['verify_jobs::jobs', 'not_in_catalog::x'])
    assert [e.key for e in entries] == ['verify_jobs::jobs']
    defaults = {e.key for e in catalog.list_entries(Role.VERIFIER)}
    assert 'verify_jobs::jobs' in defaults and 'manage_users::users' not in defaults


def test_full_column_is_union_of_included_columns():
    included = make_entry('edit_x', 'x', 'Edit', '')
    excluded = make_entry('purge_x', 'x', 'Purge', '', include_in_full=False)
    view = make_entry('view_x', 'x', 'View', '')
    row = {'key': 'r', 'actions': {'view': [view], 'edit': [included], 'others': [excluded]}}
    catalog = PermissionCatalog(_matrix(row['actions']))
    assert [e.key for e in catalog.entries_for_column(row, 'full')] == ['view_x::x', 'edit_x::x']
    explicit = {'key': 'r', 'actions': {'full': [excluded], 'view': [view]}}
    assert catalog.entries_for_column(explicit, 'full') == [excluded]


def test_column_state():
    a, b = make_entry('a', 'x', 'A', ''), make_entry('b', 'x', 'B', '')
    row = {'key': 'r', 'actions': {'view': [a, b]}}
    catalog = PermissionCatalog(_matrix(row['actions']))
    assert catalog.column_state(row, 'view', {a.key, b.key}) == CHECKED
    assert catalog.column_state(row, 'view', {a.key}) == INDETERMINATE
    assert catalog.column_state(row, 'view', set()) == UNCHECKED
    assert catalog.column_state(row, 'delete', {a.key}) == UNCHECKED


def test_unmapped_rows_reported():
    catalog = PermissionCatalog()
    rows = [
        {'role': 'creator', 'permission': 'view_inventory', 'resource': 'inventory'},
        {'role': 'creator', 'permission': 'legacy_perm', 'resource': None},
        {'role': 'creator', 'permission': 'bad::name', 'resource': None},
    ]
    assert [r['permission'] for r in catalog.unmapped(rows)] == ['legacy_perm', 'bad::name']


def test_render_marks_granted_entries():
    catalog = PermissionCatalog()
    modules = catalog.render({'view_inventory::inventory'})
    inventory = next(m for m in modules if m['module'] == 'Inventory')
    items = next(r for r in inventory['rows'] if r['key'] == 'inventory_items')
    assert items['columns']['view']['state'] == CHECKED
    assert items['columns']['full']['state'] == INDETERMINATE
    assert items['columns']['full']['active'] == 1


def test_dedupe_keeps_first_occurrence():
    first = make_entry('p', 'r', 'First', '')
    second = make_entry('p', 'r', 'Second', '')
    assert dedupe_entries([first, second]) == [first]
