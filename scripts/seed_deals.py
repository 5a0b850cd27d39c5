#!/usr/bin/env python3
"""CLI script to seed a development database.

Usage:
    uv run python scripts/seed_deals.py --admin-email ceo@example.com --admin-name "Jane Doe"
    uv run python scripts/seed_deals.py --admin-email ceo@example.com --admin-name "Jane Doe" --sample-deals --token

Connects directly to the database using DATABASE_URL from environment or .env file.
Creates tables if needed, registers an admin user, optionally creates a few
sample deals through DealWorkflow (so they carry a proper audit trail), and
optionally prints a bearer token for the admin.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.dealdesk
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


SAMPLE_DEALS = [
    {"name": "Project Atlas", "client": "Northwind Holdings", "sector": "Technology",
     "value": 120.0, "stage": "Origination"},
    {"name": "Project Beacon", "client": "Helix Health", "sector": "Healthcare",
     "value": 45.5, "stage": "Due Diligence", "deal_type": "Capital Raising"},
    {"name": "Project Cedar", "client": "Granite Industrial", "sector": "Industrial",
     "value": 310.0, "stage": "Negotiation"},
]


async def seed(admin_email: str, admin_name: str, sample_deals: bool, token: bool) -> None:
    """Create the admin user and optional sample deals."""
    from src.dealdesk.core.database import close_db, get_session, init_db
    from src.dealdesk.core.security import actor_from_claims, create_access_token
    from src.dealdesk.deals.errors import DealValidationError
    from src.dealdesk.deals.repository import DealRepository
    from src.dealdesk.deals.schemas import DealCreate
    from src.dealdesk.deals.service import DealWorkflow
    from src.dealdesk.team.repository import TeamRepository
    from src.dealdesk.team.schemas import UserCreate

    await init_db()
    team = TeamRepository(session_factory=get_session)

    try:
        admin = await team.create_user(
            UserCreate(name=admin_name, email=admin_email, role="CEO", access_level="admin")
        )
        print(f"Admin user created: {admin.email} (id={admin.id})")
    except DealValidationError:
        admin = next(u for u in await team.list_users() if u.email.lower() == admin_email.lower())
        print(f"Admin user already exists: {admin.email} (id={admin.id})")

    claims = {
        "sub": admin.id,
        "name": admin.name,
        "email": admin.email,
        "access_level": admin.access_level,
    }

    if sample_deals:
        deals = DealRepository(session_factory=get_session)
        workflow = DealWorkflow(store=deals, directory=team, sectors=deals)
        actor = actor_from_claims(claims)
        for sample in SAMPLE_DEALS:
            deal = await workflow.create_deal(DealCreate(lead=admin.name, **sample), actor)
            print(f"  Deal created: {deal.name} [{deal.stage}, {deal.progress}%]")

    if token:
        print(f"Bearer token: {create_access_token(claims)}")

    await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the deal desk database")
    parser.add_argument("--admin-email", required=True, help="Admin user email")
    parser.add_argument("--admin-name", required=True, help="Admin display name")
    parser.add_argument("--sample-deals", action="store_true", help="Create sample deals")
    parser.add_argument("--token", action="store_true", help="Print a bearer token for the admin")
    args = parser.parse_args()

    asyncio.run(seed(args.admin_email, args.admin_name, args.sample_deals, args.token))


if __name__ == "__main__":
    main()
