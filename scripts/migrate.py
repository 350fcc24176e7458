"""Script to run database migrations."""

import argparse
import sys

from alembic import command
from alembic.config import Config


def run(action: str, target: str | None = None, message: str | None = None) -> None:
    """Run one Alembic command against the configured database."""
    alembic_cfg = Config("alembic.ini")

    try:
        if action == "upgrade":
            print(f"Upgrading schema to {target or 'head'}...")
            command.upgrade(alembic_cfg, target or "head")
        elif action == "downgrade":
            print(f"Downgrading schema to {target or '-1'}...")
            command.downgrade(alembic_cfg, target or "-1")
        elif action == "current":
            command.current(alembic_cfg, verbose=True)
        elif action == "create":
            print(f"Creating migration: {message}")
            command.revision(alembic_cfg, message=message, autogenerate=True)
        print("✓ Done")
    except Exception as e:
        print(f"✗ Migration {action} failed: {e}", file=sys.stderr)
        sys.exit(1)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    subparsers = parser.add_subparsers(dest="action")

    upgrade = subparsers.add_parser("upgrade", help="Apply migrations (default: head)")
    upgrade.add_argument("target", nargs="?")
    downgrade = subparsers.add_parser("downgrade", help="Revert migrations (default: -1)")
    downgrade.add_argument("target", nargs="?")
    subparsers.add_parser("current", help="Show the applied revision")
    create = subparsers.add_parser("create", help="Autogenerate a new migration")
    create.add_argument("message", nargs="+")

    args = parser.parse_args()
    action = args.action or "upgrade"
    run(
        action,
        target=getattr(args, "target", None),
        message=" ".join(args.message) if action == "create" else None,
    )


if __name__ == "__main__":
    main()
