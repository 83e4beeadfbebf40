#!/usr/bin/env python
"""
Script untuk membuat admin user di AuthCore.
Usage:
    python scripts/create_admin.py
    python scripts/create_admin.py --non-interactive <email> <password>
"""

import asyncio
import getpass
import sys

from authcore.core.config import Settings, get_settings
from authcore.core.constants import SecurityEventType, UserRole
from authcore.core.security import Security, utc_now
from authcore.db.session import Database
from authcore.repositories.records import UserRecord
from authcore.repositories.sql import SqlCredentialStore
from authcore.services.audit import SecurityEventService
from authcore.services.password_policy import PasswordPolicyEngine


def get_user_input() -> dict:
    """Get admin user details from user input. Kekuatan password dicek saat create."""
    print("\n=== Create Admin User ===\n")

    while True:
        email = input("Admin email address: ").strip()
        if "@" in email and "." in email:
            break
        print("Invalid email format. Please try again.")

    while True:
        password = getpass.getpass("Admin password: ")
        if password != getpass.getpass("Confirm password: "):
            print("Passwords do not match. Please try again.")
            continue
        break

    return {"email": email.lower(), "password": password}


async def create_admin_user(settings: Settings, database: Database, email: str, password: str) -> UserRecord:
    """
    Create admin user in database.

    Raises:
        ValueError: Jika email sudah terdaftar atau password lemah
    """
    security = Security(settings)

    async with database.session() as db:
        store = SqlCredentialStore(db)
        events = SecurityEventService(store)
        policy = PasswordPolicyEngine(store, events, security, settings)

        result = policy.check_strength(password)
        if not result.ok:
            raise ValueError("Password does not meet requirements: " + "; ".join(result.violations))

        if await store.users.get_by_email(email):
            raise ValueError(f"User with email {email} already exists")

        now = utc_now()
        admin_user = await store.users.create(UserRecord(
            email=email.strip().lower(),
            password_hash=security.hash_password(password),
            role=UserRole.ADMIN,
            is_email_verified=True,
            password_changed_at=now,
            created_at=now,
        ))
        await events.emit(
            SecurityEventType.PASSWORD_CHANGE,
            user=admin_user,
            description="Admin account created",
            metadata={"created_by": "create_admin_script"}
        )
        await store.commit()
        return admin_user


async def main() -> None:
    """Main function."""
    settings = get_settings()
    database = Database(settings)

    try:
        if len(sys.argv) > 1 and sys.argv[1] == "--non-interactive":
            if len(sys.argv) != 4:
                print("Usage: python create_admin.py --non-interactive <email> <password>")
                sys.exit(1)
            user_data = {"email": sys.argv[2], "password": sys.argv[3]}
        else:
            user_data = get_user_input()

        print("\nCreating admin user...")
        admin_user = await create_admin_user(settings, database, **user_data)

        print("\nAdmin user created successfully!")
        print(f"   Email: {admin_user.email}")
        print(f"   ID: {admin_user.id}")

    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        sys.exit(0)
    except ValueError as e:
        print(f"\nError creating admin user: {e}")
        sys.exit(1)
    finally:
        await database.close()


if __name__ == "__main__":
    asyncio.run(main())
