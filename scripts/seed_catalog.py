import asyncio
import sys
import os

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from showroom.core.database import AsyncSessionLocal, init_db
from showroom.services.auth_service import AuthService
from showroom.services.catalog_service import CatalogService

async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        admin = await AuthService(session).ensure_admin_user_exists()
        print(f"Admin account: {admin.email}")

        added = await CatalogService(session).seed()
        if added:
            print(f"Successfully added {added} vehicles")
        else:
            print("Catalog already has vehicles, nothing to do")

if __name__ == "__main__":
    asyncio.run(seed())
