import argparse
import json

from logging_utils import configure_logging

# Reuse the configured store and Gmail client settings from the FastAPI app
from app import build_gmail_client, probe_user, state_store  # type: ignore


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the Gmail integration probe for one Supabase user.")
    parser.add_argument("user_id", help="Supabase auth user id whose stored Gmail tokens should be used")
    parser.add_argument("--compact", action="store_true", help="Print single-line JSON")
    args = parser.parse_args()

    configure_logging()
    result = probe_user(args.user_id, state_store, build_gmail_client)
    print(json.dumps(result, indent=None if args.compact else 2, ensure_ascii=False))
    return 0 if result.get("success") else 1


if __name__ == "__main__":
    raise SystemExit(main())
