#!/usr/bin/env python3
# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Create a verified user, optionally with an organization they own.
Run: python -m outlinehub_server.scripts.create_user"""

import asyncio
import getpass
import sys

from sqlalchemy import select

from outlinehub_server.auth import hash_password
from outlinehub_server.database import async_session_maker, init_db
from outlinehub_server.models import User
from outlinehub_server.services.organizations import create_organization


async def main():
    await init_db()
    email = input("Email: ").strip().lower()
    name = input("Name (optional): ").strip() or email.split("@")[0]
    password = getpass.getpass("Password: ")
    org_name = input("Organization name (optional): ").strip()
    if not email or not password:
        print("Email and password are required")
        sys.exit(1)

    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            print("User already exists")
            sys.exit(1)
        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            email_verified=True,
        )
        session.add(user)
        await session.commit()
        print(f"User {email} created.")
        if org_name:
            org = await create_organization(session, user.id, org_name)
            print(f"Organization '{org.name}' ({org.slug}) created with {email} as owner.")


if __name__ == "__main__":
    asyncio.run(main())
