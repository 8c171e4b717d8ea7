#!/usr/bin/env python3
"""
Warden Quickstart — full session lifecycle in one script.

Signs up → reads the session → signs out → signs in with remember-me →
revokes every session. Cookies ride along in the httpx client's jar.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import httpx
import sys
import uuid

BASE = "http://localhost:8000/api/v1"


def main():
    run_id = uuid.uuid4().hex[:6]
    email = f"demo-{run_id}@example.com"
    password = "Demo-passw0rd"
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        print("Start it with:  uvicorn warden.main:app --reload --port 8000")
        sys.exit(1)
    health = resp.json()
    print(f"  Postgres: {'✓' if health['postgres'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗ (store-only mode)'}")

    # ── Sign up (auto sign-in) ────────────────────────────────────
    print("\n1. Signing up...")
    resp = client.post("/auth/sign-up/email", json={
        "name": f"Demo {run_id}",
        "email": email,
        "password": password,
    })
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   User: {resp.json()['user']['email']}")
    print(f"   Cookies: {', '.join(sorted(client.cookies.keys()))}")

    # ── Current session ───────────────────────────────────────────
    print("\n2. Reading the current session...")
    session = client.get("/auth/get-session").json()
    print(f"   Session expires: {session['session']['expires_at']}")

    # ── Sign out ──────────────────────────────────────────────────
    print("\n3. Signing out...")
    resp = client.post("/auth/sign-out")
    assert resp.json() == {"success": True}, f"Failed: {resp.text}"
    assert client.get("/auth/get-session").json() is None
    print("   Session gone, cookies cleared")

    # ── Wrong password ────────────────────────────────────────────
    print("\n4. Signing in with a wrong password...")
    resp = client.post("/auth/sign-in/email", json={"email": email, "password": "nope-nope-1"})
    print(f"   {resp.status_code} {resp.json()['code']}")

    # ── Sign in, remembered ───────────────────────────────────────
    print("\n5. Signing in with remember-me...")
    resp = client.post("/auth/sign-in/email", json={
        "email": email,
        "password": password,
        "rememberMe": True,
    })
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   Token: {resp.json()['token'][:6]}...")

    # ── Revoke everywhere ─────────────────────────────────────────
    print("\n6. Revoking all sessions...")
    resp = client.post("/auth/revoke-sessions")
    assert resp.status_code == 200, f"Failed: {resp.text}"
    assert client.get("/auth/get-session").json() is None
    print("   Signed out everywhere")

    print("\n✓ Quickstart complete")


if __name__ == "__main__":
    main()
