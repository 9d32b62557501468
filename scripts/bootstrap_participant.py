#!/usr/bin/env python3
"""Emit deterministic SQL that links Supabase identities and machine modules to hirelink."""

from __future__ import annotations

import argparse
import hashlib

ROLES = ["jobseeker", "individual-employer", "business-employer", "manpower-provider", "administrator"]


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_participant_sql(
    *,
    participant_id: int,
    role: str,
    user_id: str | None,
    email: str | None,
    display_name: str | None,
) -> str:
    if participant_id <= 0:
        raise ValueError("participant id must be positive")

    role_value = _quote_sql(role)
    if user_id:
        target_where = f"id = {_quote_sql(user_id)}::uuid"
    else:
        assert email is not None
        target_where = f"email = {_quote_sql(email)}"
    display_value = _quote_sql(display_name) if display_name else "null"

    return f"""-- hirelink participant bootstrap SQL
-- Run this in the Supabase SQL editor (or equivalent privileged Postgres session).

update auth.users
set raw_app_meta_data = coalesce(raw_app_meta_data, '{{}}'::jsonb)
  || jsonb_build_object('role', {role_value}, 'participant_id', {participant_id})
where {target_where};

insert into users (id, auth_user_id, role, email, display_name)
select {participant_id}, au.id, {role_value}, au.email, {display_value}
from auth.users au
where au.{target_where}
on conflict (id) do update
set auth_user_id = excluded.auth_user_id,
    role = excluded.role,
    email = excluded.email,
    display_name = coalesce(excluded.display_name, users.display_name);
"""


def render_module_sql(*, module_id: str, name: str, api_key: str, scopes: list[str]) -> str:
    key_hash = hashlib.sha256(api_key.encode("utf-8")).hexdigest()
    scope_list = ", ".join(_quote_sql(scope) for scope in scopes)
    return f"""-- hirelink machine module bootstrap SQL

insert into modules (module_id, name, scopes)
values ({_quote_sql(module_id)}, {_quote_sql(name)}, array[{scope_list}]::text[])
on conflict (module_id) do update
set name = excluded.name,
    scopes = excluded.scopes,
    enabled = true;

insert into module_credentials (module_id, key_hash)
select id, {_quote_sql(key_hash)}
from modules
where module_id = {_quote_sql(module_id)};
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit hirelink bootstrap SQL.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    participant = subparsers.add_parser("participant", help="Link a Supabase auth user to a participant id")
    participant.add_argument("--participant-id", type=int, required=True)
    participant.add_argument("--role", choices=ROLES, default="jobseeker")
    participant.add_argument("--display-name")
    identity_group = participant.add_mutually_exclusive_group(required=True)
    identity_group.add_argument("--user-id", help="Supabase auth.users id (UUID)")
    identity_group.add_argument("--email", help="Supabase auth.users email")

    module = subparsers.add_parser("module", help="Register a machine module and its API key")
    module.add_argument("--module-id", required=True)
    module.add_argument("--name")
    module.add_argument("--api-key", required=True)
    module.add_argument("--scope", action="append", dest="scopes", default=None)

    args = parser.parse_args()

    if args.command == "participant":
        print(
            render_participant_sql(
                participant_id=args.participant_id,
                role=args.role,
                user_id=args.user_id,
                email=args.email,
                display_name=args.display_name,
            )
        )
        return

    print(
        render_module_sql(
            module_id=args.module_id,
            name=args.name or args.module_id,
            api_key=args.api_key,
            scopes=args.scopes or ["maintenance:write"],
        )
    )


if __name__ == "__main__":
    main()
