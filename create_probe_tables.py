#!/usr/bin/env python3
"""
Print the SQL for the tables the Gmail integration probe reads and writes,
and check that the Supabase REST API can see them.

Supabase's REST API does not run DDL, so the SQL has to be pasted into the
dashboard SQL editor.
"""

import argparse
import sys

import requests

from newsletter_patterns import DEFAULT_NEWSLETTER_PATTERNS
from supabase_state import SupabaseConfigurationError, SupabaseStateStore

TABLES = ("auth_tokens", "newsletters_curated")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS auth_tokens (
    user_id UUID PRIMARY KEY REFERENCES auth.users(id) ON DELETE CASCADE,
    access_token TEXT NOT NULL,
    refresh_token TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS newsletters_curated (
    id BIGSERIAL PRIMARY KEY,
    email_pattern TEXT NOT NULL UNIQUE,
    name TEXT,
    is_active BOOLEAN NOT NULL DEFAULT TRUE
);

CREATE INDEX IF NOT EXISTS idx_newsletters_curated_active ON newsletters_curated(is_active);
"""


def seed_sql() -> str:
    values = ",\n".join(f"    ('{pattern}', NULL)" for pattern in DEFAULT_NEWSLETTER_PATTERNS)
    return (
        "INSERT INTO newsletters_curated (email_pattern, name) VALUES\n"
        f"{values}\n"
        "ON CONFLICT (email_pattern) DO NOTHING;"
    )


def check_table(store: SupabaseStateStore, table: str) -> bool:
    try:
        response = store.session.get(
            store._rest(table),  # pylint: disable=protected-access
            params={"select": "*", "limit": 1},
            headers={"apikey": store.key, "Authorization": f"Bearer {store.key}"},
            timeout=store.timeout,
        )
    except requests.RequestException as exc:
        print(f"✗ {table}: {exc}")
        return False
    if response.status_code == 200:
        print(f"✓ {table} exists and is accessible")
        return True
    print(f"✗ {table}: unexpected status {response.status_code}")
    return False


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--seed", action="store_true", help="Also print INSERTs for the default newsletter patterns")
    parser.add_argument("--sql-only", action="store_true", help="Print SQL without contacting Supabase")
    args = parser.parse_args()

    print("-" * 80)
    print(SCHEMA_SQL.strip())
    if args.seed:
        print()
        print(seed_sql())
    print("-" * 80)

    if args.sql_only:
        return 0

    try:
        store = SupabaseStateStore()
    except SupabaseConfigurationError as exc:
        print(f"\n❌ {exc}")
        return 1

    print(f"\nDatabase: {store.url}\n")
    results = [check_table(store, table) for table in TABLES]
    if not all(results):
        print("\nRun the SQL above in the Supabase SQL Editor, then re-run this script.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
