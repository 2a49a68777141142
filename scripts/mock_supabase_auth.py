#!/usr/bin/env python3
"""Local stand-in for Supabase `/auth/v1/user` that knows a fixed set of seeker and employer tokens."""
from __future__ import annotations

import argparse
import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer


DEFAULT_USERS: dict[str, dict[str, object]] = {
    "seeker-token": {
        "id": "33333333-3333-3333-3333-333333333333",
        "email": "seeker@example.com",
        "user_metadata": {"username": "alice", "userType": "seeker"},
    },
    "employer-token": {
        "id": "44444444-4444-4444-4444-444444444444",
        "email": "jobs@acme.example",
        "user_metadata": {"username": "acme", "userType": "employer"},
    },
}


def parse_user_spec(raw: str) -> tuple[str, dict[str, object]]:
    """Parse ``token:user_id:username:role`` into a token and a Supabase user payload."""
    parts = raw.split(":")
    if len(parts) != 4 or not all(parts):
        raise argparse.ArgumentTypeError("expected token:user_id:username:role")
    token, user_id, username, role = parts
    if role not in {"seeker", "employer"}:
        raise argparse.ArgumentTypeError(f"unknown role: {role}")
    return token, {"id": user_id, "user_metadata": {"username": username, "userType": role}}


def build_handler(users: dict[str, dict[str, object]]) -> type[BaseHTTPRequestHandler]:
    class MockSupabaseHandler(BaseHTTPRequestHandler):
        server_version = "MockSupabase/1.0"

        def do_GET(self) -> None:  # noqa: N802 - stdlib handler signature
            if self.path == "/healthz":
                self._reply(HTTPStatus.OK, {"status": "ok"})
            elif self.path != "/auth/v1/user":
                self._reply(HTTPStatus.NOT_FOUND, {"detail": "not found"})
            else:
                scheme, _, token = self.headers.get("Authorization", "").partition(" ")
                user = users.get(token.strip()) if scheme.lower() == "bearer" else None
                if user is None:
                    self._reply(HTTPStatus.UNAUTHORIZED, {"detail": "invalid token"})
                else:
                    self._reply(HTTPStatus.OK, user)

        def log_message(self, _: str, *args: object) -> None:
            print("mock-supabase:", *args)

        def _reply(self, status: HTTPStatus, payload: dict[str, object]) -> None:
            body = json.dumps(payload).encode("utf-8")
            self.send_response(status.value)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

    return MockSupabaseHandler


def main() -> None:
    parser = argparse.ArgumentParser(description="Mock Supabase auth endpoint for local hirefeed runs.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=54321)
    parser.add_argument(
        "--user",
        action="append",
        type=parse_user_spec,
        default=[],
        help="Extra account as token:user_id:username:role (repeatable)",
    )
    parser.add_argument("--list-tokens", action="store_true", help="Print known tokens and exit")
    args = parser.parse_args()

    users = {**DEFAULT_USERS, **dict(args.user)}
    if args.list_tokens:
        for token, user in users.items():
            print(f"{token}\t{user['id']}\t{json.dumps(user['user_metadata'], sort_keys=True)}")
        return

    server = ThreadingHTTPServer((args.host, args.port), build_handler(users))
    print(f"mock-supabase listening on http://{args.host}:{args.port} tokens={len(users)}", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
