"""
Seed Permissions and Roles Script
Populates the permissions, roles and role_permissions tables from admindash.config.permissions_config.
Requires SUPABASE_SERVICE_ROLE_KEY, since row-level security blocks these writes for dashboard users.

    python -m admindash.scripts.seed_permissions_roles
"""

import asyncio
import logging
import sys
from typing import Dict

from supabase import AsyncClient

from admindash.config.permissions_config import PERMISSION_MATRIX
from admindash.database.supabase_client import SupabaseClient
from admindash.modules.roles.service import RoleService

logger = logging.getLogger(__name__)


async def seed_permissions(supabase: AsyncClient) -> Dict[str, str]:
    """Upsert the permission catalogue; returns permission name -> id"""
    logger.info("Seeding permissions...")

    rows = [
        {
            "name": perm["name"],
            "category": perm["category"],
            "description": perm["description"]
        }
        for perm in PERMISSION_MATRIX["permissions"]
    ]
    result = await supabase.table("permissions")\
        .upsert(rows, on_conflict="name")\
        .execute()

    permission_ids = {row["name"]: row["id"] for row in result.data or []}
    logger.info(f"Permissions seeded: {len(permission_ids)} upserted")
    return permission_ids


async def seed_roles(supabase: AsyncClient, permission_ids: Dict[str, str]) -> int:
    """Upsert the default roles and set each role's permissions to exactly its configured set"""
    logger.info("Seeding roles...")
    service = RoleService(supabase)
    processed = 0

    for role in PERMISSION_MATRIX["roles"]:
        result = await supabase.table("roles")\
            .upsert({
                "name": role["name"],
                "display_name": role["display_name"],
                "description": role["description"]
            }, on_conflict="name")\
            .execute()
        role_id = result.data[0]["id"]

        missing = [name for name in role["permissions"] if name not in permission_ids]
        if missing:
            logger.warning(f"Role {role['name']} references unknown permissions: {', '.join(missing)}")

        granted = await service.update_role_permissions(
            role_id,
            [permission_ids[name] for name in role["permissions"] if name in permission_ids]
        )
        logger.debug(f"Role {role['name']}: {len(granted)} permissions")
        processed += 1

    logger.info(f"Roles seeded: {processed} processed")
    return processed


async def seed() -> None:
    supabase = await SupabaseClient.get_service_client()

    logger.info("Starting permissions and roles seeding...")

    # Roles reference permissions by id, so the catalogue goes first
    permission_ids = await seed_permissions(supabase)
    role_count = await seed_roles(supabase, permission_ids)

    logger.info("Seeding completed successfully!")
    logger.info(f"Total: {len(permission_ids)} permissions, {role_count} roles processed")


def main():
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(seed())
    except Exception as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
