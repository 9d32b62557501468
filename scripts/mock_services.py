#!/usr/bin/env python3
"""Local stand-ins for the services hirelink calls out to.

Point `HL_SUPABASE_URL` and `HL_MAIL_API_URL` at this server to run the API
without Supabase or Brevo:

- `GET /auth/v1/user` resolves the fixed bearer tokens below.
- `POST /storage/v1/object/<bucket>/<path>` accepts any upload.
- `POST /v3/smtp/email` records the message and prints its subject.
"""

from __future__ import annotations

import argparse
import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

# token -> (auth user id, role, participant id)
MOCK_IDENTITIES: dict[str, tuple[str, str, int]] = {
    "employer-token": ("11111111-1111-1111-1111-111111111111", "business-employer", 101),
    "worker-token": ("22222222-2222-2222-2222-222222222222", "jobseeker", 202),
    "agency-token": ("33333333-3333-3333-3333-333333333333", "manpower-provider", 303),
    "admin-token": ("44444444-4444-4444-4444-444444444444", "administrator", 404),
}

STORAGE_PREFIX = "/storage/v1/object/"
MAIL_PATH = "/v3/smtp/email"


def identity_for_token(token: str) -> dict[str, object] | None:
    identity = MOCK_IDENTITIES.get(token)
    if identity is None:
        return None
    auth_user_id, role, participant_id = identity
    return {
        "id": auth_user_id,
        "app_metadata": {"role": role, "participant_id": participant_id},
        "user_metadata": {},
    }


class MockServicesHandler(BaseHTTPRequestHandler):
    server_version = "HirelinkMock/1.0"

    def do_GET(self) -> None:  # noqa: N802 - stdlib handler signature
        if self.path == "/healthz":
            self._reply(HTTPStatus.OK, {"status": "ok"})
        elif self.path == "/auth/v1/user":
            self._reply_identity()
        else:
            self._reply(HTTPStatus.NOT_FOUND, {"detail": "not found"})

    def do_POST(self) -> None:  # noqa: N802 - stdlib handler signature
        body = self.rfile.read(int(self.headers.get("Content-Length") or 0))
        if self.path.startswith(STORAGE_PREFIX):
            key = self.path[len(STORAGE_PREFIX) :]
            self.server.uploads.append({"key": key, "size": len(body)})
            self._reply(HTTPStatus.OK, {"Key": key})
        elif self.path == MAIL_PATH:
            message = json.loads(body or b"{}")
            self.server.mail.append(message)
            print(f"mock-mail: to={message.get('to')} subject={message.get('subject')}", flush=True)
            self._reply(HTTPStatus.CREATED, {"messageId": f"<mock-{len(self.server.mail)}@hirelink>"})
        else:
            self._reply(HTTPStatus.NOT_FOUND, {"detail": "not found"})

    def log_message(self, _: str, *args: object) -> None:
        if args:
            print("mock-services:", *args)

    def _reply_identity(self) -> None:
        scheme, _, token = self.headers.get("Authorization", "").partition(" ")
        user = identity_for_token(token.strip()) if scheme.lower() == "bearer" else None
        if user is None:
            self._reply(HTTPStatus.UNAUTHORIZED, {"detail": "invalid token"})
        else:
            self._reply(HTTPStatus.OK, user)

    def _reply(self, status: HTTPStatus, payload: dict[str, object]) -> None:
        raw = json.dumps(payload).encode("utf-8")
        self.send_response(status.value)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)


def build_server(host: str, port: int) -> ThreadingHTTPServer:
    server = ThreadingHTTPServer((host, port), MockServicesHandler)
    server.uploads = []
    server.mail = []
    return server


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve mock Supabase auth/storage and Brevo mail for local runs.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=54321)
    args = parser.parse_args()

    server = build_server(args.host, args.port)
    print(f"mock-services listening on http://{args.host}:{args.port}", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
