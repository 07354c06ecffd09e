"""
Seed the four default system roles for a tenant.

Tenant signup normally calls POST /roles/seed-defaults; this script does the
same from the command line, e.g. for tenants created before roles existed.

Usage:
    uv run python -m scripts.seed_roles <tenant_id> [<tenant_id> ...]
"""
import argparse
import asyncio

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.roles import repository
from app.features.roles.repository import RolesAlreadyExist
from app.utils import get_logger


log = get_logger(__name__)


async def seed_tenant(tenant_id: str) -> bool:
    """Seed one tenant; returns False if it already had roles."""
    async with AsyncSessionLocal() as session:
        try:
            roles = await repository.seed_default_roles(session, tenant_id)
        except RolesAlreadyExist:
            log.warning("Tenant %s already has roles, skipping", tenant_id)
            return False
        await session.commit()

    for role in roles:
        log.info("  %s (%s)", role.name, role.id)
    return True


async def main(tenant_ids: list[str]) -> int:
    log.info("Initializing database...")
    await init_db()

    seeded = 0
    for tenant_id in tenant_ids:
        log.info("Seeding default roles for tenant %s", tenant_id)
        if await seed_tenant(tenant_id):
            seeded += 1

    log.info("Seeded %d of %d tenant(s)", seeded, len(tenant_ids))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed default system roles for tenants")
    parser.add_argument("tenant_ids", nargs="+", help="Tenant id(s) to seed")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(args.tenant_ids)))
