#!/usr/bin/env python
"""
FleetDesk - Database Management CLI

Usage:
    python -m scripts.db_manage check        # Test database connection
    python -m scripts.db_manage init         # Create tables directly (dev only)
    python -m scripts.db_manage migrate      # Run pending migrations
    python -m scripts.db_manage rollback     # Rollback last migration
    python -m scripts.db_manage current      # Show current migration version
    python -m scripts.db_manage history      # Show migration history
    python -m scripts.db_manage reset        # Drop all and recreate (dev only)
    python -m scripts.db_manage create-admin # Create an admin account
    python -m scripts.db_manage setpassword  # Set password for an employee
    python -m scripts.db_manage sweep        # Run the long-running entry checks once
"""

import sys
from getpass import getpass

from fleetdesk.config import get_settings
from fleetdesk.database import check_connection, get_db_context, init_db
from fleetdesk.logging import configure_logging


settings = get_settings()


def _alembic_config():
    from alembic.config import Config

    return Config("alembic.ini")


def _read_password() -> str | None:
    password = getpass("Password: ")
    confirm = getpass("Confirm password: ")

    if password != confirm:
        print("Passwords do not match")
        return None

    if len(password) < 8:
        print("Password must be at least 8 characters")
        return None

    # Check byte length for bcrypt (72 byte limit)
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > 72:
        print(f"Password is too long ({len(password_bytes)} bytes).")
        print("Bcrypt has a 72-byte limit. Use ASCII characters and keep password under 72 bytes.")
        return None

    return password


def cmd_check():
    """Test database connection."""
    print(f"Connecting to: {settings.database_url}")
    try:
        check_connection()
        print("Connection successful!")
        return True
    except Exception as e:
        print(f"Connection failed: {e}")
        return False


def cmd_init():
    """Create all tables from the models, bypassing migrations."""
    if not settings.debug:
        print("ERROR: init is only available in debug mode; use 'migrate'")
        return False

    init_db()
    print("Tables created!")
    return True


def cmd_migrate():
    """Run pending Alembic migrations."""
    from alembic import command

    print("Running migrations...")
    command.upgrade(_alembic_config(), "head")
    print("Migrations complete!")
    return True


def cmd_rollback():
    """Rollback the last migration."""
    if not settings.debug:
        print("ERROR: rollback is only available in debug mode")
        return False

    from alembic import command

    print("Rolling back last migration...")
    command.downgrade(_alembic_config(), "-1")
    print("Rollback complete!")
    return True


def cmd_current():
    """Show current migration version."""
    from alembic import command

    command.current(_alembic_config())
    return True


def cmd_history():
    """Show migration history."""
    from alembic import command

    command.history(_alembic_config())
    return True


def cmd_reset():
    """Drop all tables and recreate with migrations."""
    if not settings.debug:
        print("ERROR: reset is only available in debug mode")
        return False

    confirm = input("This will DELETE ALL DATA. Type 'yes' to confirm: ")
    if confirm.lower() != "yes":
        print("Aborted")
        return False

    from alembic import command

    alembic_cfg = _alembic_config()

    print("Rolling back all migrations...")
    try:
        command.downgrade(alembic_cfg, "base")
    except Exception as e:
        print(f"Rollback failed (maybe no tables exist): {e}")

    print("Running all migrations...")
    command.upgrade(alembic_cfg, "head")

    print("Reset complete!")
    return True


def cmd_create_admin():
    """Create an admin account."""
    from fleetdesk.services.auth import AuthService

    email = input("Email: ").strip()
    full_name = input("Full name: ").strip()
    if not email or not full_name:
        print("Email and full name are required")
        return False

    password = _read_password()
    if password is None:
        return False

    with get_db_context() as db:
        try:
            employee = AuthService(db).create_employee(email, full_name, password, role="admin")
        except ValueError as e:
            print(e)
            return False
        db.commit()
        print(f"Admin {employee.email} created")

    return True


def cmd_setpassword():
    """Set password for an employee."""
    from sqlalchemy import select

    from fleetdesk.models.employee import Employee
    from fleetdesk.services.auth import AuthService

    email = input("Email: ").strip().lower()
    if not email:
        print("Email required")
        return False

    with get_db_context() as db:
        employee = db.execute(
            select(Employee).where(Employee.email == email)
        ).scalar_one_or_none()

        if not employee:
            print(f"Employee '{email}' not found")
            return False

        password = _read_password()
        if password is None:
            return False

        AuthService(db).set_password(employee, password)
        print(f"Password updated for {employee.full_name}")

    return True


def cmd_sweep():
    """Run the forgotten clock-out reminders and the long-running entry sweep once."""
    from fleetdesk.services.time_entry import run_scheduled_checks

    result = run_scheduled_checks()
    print(f"Auto clocked out: {len(result.auto_closed)}, flagged: {len(result.flagged)}")
    return True


def cmd_help():
    """Show help."""
    print(__doc__)
    return True


COMMANDS = {
    "check": cmd_check,
    "init": cmd_init,
    "migrate": cmd_migrate,
    "rollback": cmd_rollback,
    "current": cmd_current,
    "history": cmd_history,
    "reset": cmd_reset,
    "create-admin": cmd_create_admin,
    "setpassword": cmd_setpassword,
    "sweep": cmd_sweep,
    "help": cmd_help,
}


def main():
    configure_logging(settings.log_level, json=settings.log_json)

    if len(sys.argv) < 2:
        cmd_help()
        sys.exit(1)

    command = sys.argv[1].lower()

    if command not in COMMANDS:
        print(f"Unknown command: {command}")
        cmd_help()
        sys.exit(1)

    success = COMMANDS[command]()
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
