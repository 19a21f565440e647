"""
Script to create (or promote) a platform admin with a password for local testing.

Usage:
    uv run python -m app.scripts.create_local_admin --email admin@hearth.dev --password ...
"""

import argparse
import asyncio
import uuid

from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import get_session_context
from app.models.user import User
from hearth_shared.schemas.common import UserRole


async def create_admin(email: str, password: str, name: str | None = None) -> None:
    email = email.lower()
    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(
                id=uuid.uuid4(),
                email=email,
                name=name or email.split("@")[0],
                password_hash=hash_password(password),
                role=UserRole.ADMIN,
            )
            session.add(user)
            print(f"Created admin: {email}")
        else:
            user.role = UserRole.ADMIN
            user.password_hash = hash_password(password)
            session.add(user)
            print(f"Promoted existing user {email} to admin and reset the password.")
    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--name", help="Display name")

    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.password, args.name))
