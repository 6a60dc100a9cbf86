#!/usr/bin/env python3
"""List stored Gmail tokens in Supabase with secrets redacted."""

import argparse
import sys
from typing import Optional

import requests

from supabase_state import SupabaseConfigurationError, SupabaseStateStore


def _redact(value: Optional[str], keep: int = 6) -> str:
    if not value:
        return "(missing)"
    if len(value) <= keep:
        return "*" * len(value)
    return f"{value[:keep]}...({len(value)} chars)"


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--url", help="Supabase project URL (default: SUPABASE_URL)")
    parser.add_argument("--key", help="Service role key (default: SUPABASE_SERVICE_ROLE_KEY)")
    args = parser.parse_args()

    try:
        store = SupabaseStateStore(url=args.url, service_role_key=args.key)
    except SupabaseConfigurationError as exc:
        print(f"❌ {exc}")
        return 1

    print("Querying all Gmail tokens from Supabase...")
    print(f"Database: {store.url}")

    try:
        rows = store.list_auth_token_rows()
    except requests.RequestException as exc:
        print(f"❌ Error querying database: {exc}")
        return 1

    print(f"\nFound {len(rows)} token row(s):\n")
    if not rows:
        print("❌ NO TOKENS FOUND IN DATABASE!")
        print("Users must reconnect Gmail before the integration probe can run.")
        return 0

    for index, row in enumerate(rows, 1):
        print(f"{'=' * 80}")
        print(f"Row #{index}: user {row.get('user_id', 'Unknown')}")
        print(f"{'=' * 80}")
        print(f"  access_token:  {_redact(row.get('access_token'))}")
        print(f"  refresh_token: {_redact(row.get('refresh_token'))}")
        print(f"  updated_at:    {row.get('updated_at') or 'Unknown'}")
        if not row.get("refresh_token"):
            print("  ⚠️  No refresh token: expired access tokens cannot be renewed.")
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
