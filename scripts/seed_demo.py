#!/usr/bin/env python3
"""Seed a demo organization with a webhook bound to a chat page position.

Usage:
    python scripts/seed_demo.py https://example.com/hooks/chat
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from primehooks.assignments.service import AssignmentMap
from primehooks.common.config import get_settings
from primehooks.common.database import DatabaseManager
from primehooks.organizations.service import OrganizationService
from primehooks.webhooks.service import WebhookRegistry

DEMO_SLUG = "demo"
DEMO_BINDINGS = [
    ("Chat", "input-right-addon", "Summarize conversation"),
    ("ManageFiles", "upload-section", "Index uploaded file"),
]


async def seed_demo(endpoint_url: str) -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    orgs = OrganizationService()
    registry = WebhookRegistry(settings)
    assignments = AssignmentMap()

    async with db.get_session() as session:
        if await orgs.get_by_slug(session, DEMO_SLUG) is not None:
            print(f"  [skip] organization '{DEMO_SLUG}' already exists")
            await db.close()
            return

        org, raw_key = await orgs.create_organization(session, name="Demo", slug=DEMO_SLUG)
        print(f"  [created] organization {org.slug} ({org.id})")

        for page, position, name in DEMO_BINDINGS:
            webhook = await registry.create(
                session, org.id, name=name, endpoint_url=endpoint_url,
            )
            await assignments.assign(session, org.id, page, position, webhook.id)
            print(f"  [created] {page}/{position} -> {webhook.name}")

    await db.close()
    print(f"\nDone. Organization API key: {raw_key}")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(seed_demo(sys.argv[1]))
