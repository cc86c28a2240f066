#!/usr/bin/env python3
"""Create (or update) a user and print an access token for local testing."""

import asyncio
from pathlib import Path

from sqlalchemy import select

from cleanbook.core.permissions import UserRole
from cleanbook.core.security import create_access_token
from cleanbook.database import get_db_context
from cleanbook.models.user import CleanerProfile, User

TOKEN_FILE = Path(__file__).parent.parent / ".token"


async def create_user(email: str, role: UserRole, name: str | None = None, available: bool = True) -> str:
    """Create the user if it doesn't exist and return an access token for it."""
    async with get_db_context() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user:
            user.role = role
            user.is_active = True
            if name:
                user.name = name
            print(f"Updated existing user: {email}")
        else:
            user = User(email=email, role=role, name=name, is_active=True)
            session.add(user)
            print(f"Created user: {email}")
        await session.flush()

        if role == UserRole.CLEANER:
            profile = (
                await session.execute(select(CleanerProfile).where(CleanerProfile.user_id == user.id))
            ).scalar_one_or_none()
            if profile is None:
                session.add(CleanerProfile(user_id=user.id, is_available=available))
            else:
                profile.is_available = available

        token = create_access_token(user.id, role.value)
        print(f"ID: {user.id}")
        print(f"Role: {role.value}")
        return token


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create a user and issue an access token")
    parser.add_argument("email", help="User email")
    parser.add_argument("--role", default="CUSTOMER", choices=[r.value for r in UserRole])
    parser.add_argument("--name", default=None, help="Display name")
    parser.add_argument("--unavailable", action="store_true", help="Cleaner starts unavailable")
    parser.add_argument("--save", action="store_true", help="Write the token to .token")

    args = parser.parse_args()

    token = asyncio.run(
        create_user(args.email, UserRole(args.role), name=args.name, available=not args.unavailable)
    )
    print(f"Access token: {token}")
    if args.save:
        TOKEN_FILE.write_text(token)
        print(f"Token saved to {TOKEN_FILE}")
