#!/usr/bin/env python3
"""Create the vault tables and optionally seed them from vaults.yaml.

Usage:
    python scripts/init_db.py            # create tables, print the schema
    python scripts/init_db.py --seed     # also insert vaults.yaml entries
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from app.storage.database import VaultTable, init_database
from app.storage.vault_repo import VaultRepository
from app.vault_config import load_vaults_config
from core.errors import VaultError
from core.transitions import initialize_vault


def describe_table() -> list[str]:
    """One line per column of the vaults table."""
    lines = []
    for column in VaultTable.__table__.columns:
        flags = " PK" if column.primary_key else ""
        if not column.nullable and not column.primary_key:
            flags += " NOT NULL"
        lines.append(f"  {column.name:<24} {str(column.type):<16}{flags}")
    return lines


async def seed_vaults(repo: VaultRepository, config_path: Path | None = None) -> tuple[int, int]:
    """Insert enabled vaults.yaml entries that are not stored yet.

    Returns:
        (created, skipped)
    """
    created = skipped = 0
    for entry in load_vaults_config(config_path).get_enabled_vaults():
        key = entry.vault_key
        if await repo.get(key) is not None:
            print(f"  {key}: already stored, skipped")
            skipped += 1
            continue
        try:
            state = initialize_vault(key, entry.admin_identity, entry.to_vault_config())
        except VaultError as e:
            print(f"  {key}: rejected ({e})")
            skipped += 1
            continue
        await repo.save(state)
        print(f"  {key}: created (admin {state.admin})")
        created += 1
    return created, skipped


async def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Initialize the vault database")
    parser.add_argument("--seed", action="store_true", help="Insert vaults.yaml entries")
    parser.add_argument("--config", type=Path, default=None, help="Path to vaults.yaml")
    args = parser.parse_args(argv)

    print("Initializing database...")
    db = await init_database()
    print(f"Table {VaultTable.__tablename__}:")
    print("\n".join(describe_table()))

    if args.seed:
        print("Seeding vaults...")
        created, skipped = await seed_vaults(VaultRepository(), args.config)
        print(f"Seeded: {created} created, {skipped} skipped")

    await db.close()


if __name__ == "__main__":
    asyncio.run(main())
