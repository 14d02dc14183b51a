"""
Script to create the first super admin.

Usage:
    python scripts/create_admin.py <username> <email> <password> [first_name] [last_name]
"""

import asyncio
import os
import sys

sys.path.append(os.getcwd())

from app.core.errors import ConflictError
from app.core.logging import setup_logging
from app.infra.db import AsyncSessionLocal, close_db_connection
from app.schemas.account import AdminCreate
from app.services.auth_service import AuthService


async def create_admin(username: str, email: str, password: str, first_name: str, last_name: str) -> int:
    setup_logging()
    data = AdminCreate(
        username=username,
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
        role="super_admin",
    )
    try:
        async with AsyncSessionLocal() as session:
            admin = await AuthService(session).create_admin(data)
    except ConflictError as e:
        print(f"Admin not created: {e.message}")
        return 1
    finally:
        await close_db_connection()

    print(f"Created super admin {admin.username} ({admin.email})")
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 4:
        print(__doc__)
        sys.exit(2)
    username, email, password = sys.argv[1:4]
    first_name = sys.argv[4] if len(sys.argv) > 4 else "Super"
    last_name = sys.argv[5] if len(sys.argv) > 5 else "Admin"
    sys.exit(asyncio.run(create_admin(username, email, password, first_name, last_name)))
