"""Create an approved admin account, or promote an existing one.

Registration only ever creates pending users, so the first admin has to be
made from the command line.

Usage:
    python -m taskhub.scripts.create_admin --email admin@example.com --name Admin
"""

import argparse
import asyncio
import getpass
import sys

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.config import get_settings
from taskhub.db.session import async_session_factory, close_db
from taskhub.logging_config import configure_logging
from taskhub.models.user import User
from taskhub.security import hash_password


async def create_admin(db: AsyncSession, email: str, name: str, password: str | None) -> User:
    """Create the admin, or promote and approve an existing user with that email."""
    email = email.strip().lower()
    result = await db.execute(select(User).where(func.lower(User.email) == email))
    user = result.scalar_one_or_none()

    if user is None:
        if not password:
            raise ValueError("A password is required for a new admin")
        user = User(email=email, name=name, password_hash=hash_password(password))
        db.add(user)
        print(f"Creating admin {email}")
    else:
        print(f"Promoting existing user {email}")
        if password:
            user.password_hash = hash_password(password)

    user.role = "admin"
    user.approval_status = "approved"
    user.is_active = True
    await db.commit()
    return user


async def main(email: str, name: str, password: str | None) -> None:
    async with async_session_factory() as db:
        try:
            user = await create_admin(db, email, name, password)
        except Exception as e:
            print(f"Error creating admin: {e}")
            await db.rollback()
            raise
    await close_db()
    print(f"Admin ready: {user.email} ({user.id})")


def cli() -> None:
    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("--email", required=True, help="Admin email address")
    parser.add_argument("--name", default="Administrator", help="Display name for a new user")
    parser.add_argument(
        "--password",
        default=None,
        help="Password (prompted when omitted and the user does not exist)",
    )
    args = parser.parse_args()

    configure_logging()
    password = args.password
    if password is None and sys.stdin.isatty():
        password = getpass.getpass("Password (leave empty to keep existing): ") or None
    if password is not None and len(password) < get_settings().password_min_length:
        parser.error(f"password must be at least {get_settings().password_min_length} characters")

    asyncio.run(main(args.email, args.name, password))


if __name__ == "__main__":
    cli()
