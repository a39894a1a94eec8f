#!/usr/bin/env python
"""Idempotent seed script for role grants & the initial admin.

Usage:
    python backend/scripts/seed_authz.py               # seed normally
    python backend/scripts/seed_authz.py --show-roles  # print role -> grant counts (after ensuring seed)
    python backend/scripts/seed_authz.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_authz.py --validate    # report unmapped grants / unknown role tags
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from operate import create_app, get_db  # type: ignore
from operate.models.authz import Base
from operate.services.seed import (
    build_role_permission_map,
    ensure_initial_admin,
    role_map_checksum,
    seed_role_permissions,
    validate_store,
)


def print_role_summary(mapping):
    if not mapping:
        print("[INFO] No role grants present.")
        return
    name_w = max(len(r) for r in mapping)
    print(f"{'Role'.ljust(name_w)} | Count | Sample (up to 8)")
    print('-' * (name_w + 40))
    for name, keys in mapping.items():
        print(f"{name.ljust(name_w)} | {str(len(keys)).rjust(5)} | {', '.join(keys[:8])}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed role grants & initial admin",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_authz.py\n  dry run: seed_authz.py --dry-run\n  show roles: seed_authz.py --show-roles\n""")
    )
    p.add_argument('--show-roles', action='store_true', help='Print role grant counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export role->permission keys JSON (to FILE or stdout if omitted)')
    p.add_argument('--validate', action='store_true', help='Validate store grants against the catalog; exits non-zero on problems')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    if 'operate' not in app.extensions:
        print(f"[ERROR] {app.config['CONFIGURATION_ERROR']}")
        return 3
    with app.app_context():
        session = get_db()
        # Lightweight bootstrap when migrations have not been run yet
        Base.metadata.create_all(session.get_bind())
        try:
            created = seed_role_permissions(session)
            _, admin_created = ensure_initial_admin(session)
            mapping = build_role_permission_map(session)
            if args.validate:
                problems = validate_store(session)
                if problems:
                    print('\n[VALIDATION] FAIL:')
                    for p in problems:
                        print(' -', p)
                    session.rollback()
                    return 2
                print('[VALIDATION] OK: All grants map to catalog entries.')
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Grants would create: {created}, admin would create: {admin_created}")
            else:
                session.commit()
                print(f"[DONE] Grants created: {created}, admin created: {admin_created}")
            if args.show_roles:
                print('\nRole Grant Summary:')
                print_role_summary(mapping)
            if args.export_json is not None:
                payload = {
                    'roles': mapping,
                    'meta': {
                        'grants_total': sum(len(v) for v in mapping.values()),
                        'roles_checksum_sha256': role_map_checksum(mapping),
                        'dry_run': args.dry_run,
                    }
                }
                if args.export_json == '-':
                    print(json.dumps(payload, indent=2, sort_keys=True))
                else:
                    with open(args.export_json, 'w', encoding='utf-8') as f:
                        json.dump(payload, f, indent=2, sort_keys=True)
                    print(f"[INFO] Exported JSON to {args.export_json}")
        except Exception:
            session.rollback()
            raise
    return 0


if __name__ == '__main__':
    sys.exit(main())
