#!/usr/bin/env python3
"""Emit deterministic SQL that seeds a user profile document."""

from __future__ import annotations

import argparse
import json
from datetime import datetime, timezone


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(
    *,
    user_id: str,
    username: str,
    role: str,
    first_name: str = "",
    last_name: str = "",
    now: datetime | None = None,
) -> str:
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    document = {
        "username": username,
        "firstName": first_name,
        "lastName": last_name,
        "userType": role,
        "skills": [],
        "createdAt": timestamp,
        "updatedAt": timestamp,
    }
    payload = _quote_sql(json.dumps(document, sort_keys=True))

    return f"""-- hirefeed profile seed SQL
-- Run this against the database behind HF_DATABASE_URL.

insert into documents (collection, id, data)
values ('users', {_quote_sql(user_id)}, {payload}::jsonb)
on conflict (collection, id)
do update set data = documents.data || excluded.data, updated_at = now();
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to seed a hirefeed user profile.")
    parser.add_argument("--user-id", required=True, help="Supabase auth.users id")
    parser.add_argument("--username", required=True, help="Display name shown on posts")
    parser.add_argument(
        "--role",
        choices=["seeker", "employer"],
        default="seeker",
        help="Stored as userType on the profile document",
    )
    parser.add_argument("--first-name", default="")
    parser.add_argument("--last-name", default="")
    args = parser.parse_args()

    print(
        render_sql(
            user_id=args.user_id,
            username=args.username,
            role=args.role,
            first_name=args.first_name,
            last_name=args.last_name,
        )
    )


if __name__ == "__main__":
    main()
