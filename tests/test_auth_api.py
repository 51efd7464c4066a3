import httpx
import pytest
import redis.exceptions

import alumnet.api.routers.auth as auth_router
from alumnet.auth.jwt import verify_jwt
from alumnet.main import app
from alumnet.repos import otps as otps_repo
from alumnet.services import otp_workflow
from tests.conftest import bearer, signup

pytestmark = pytest.mark.asyncio

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def test_send_otp_rejects_invalid_email(client):
    r = await client.post("/api/auth/send-otp", json={"email": "not-an-email"})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid email"}


async def test_send_otp_does_not_reveal_delivery(client, notifier):
    r = await client.post("/api/auth/send-otp", json={"email": "a@x.com"})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "message": "OTP sent if email reachable"}
    assert notifier.sent[0][0] == "a@x.com"


async def test_scenario_a_verify_only(client, notifier, session_factory):
    await client.post("/api/auth/send-otp", json={"email": "a@x.com"})
    async with session_factory() as s:
        rec = await otps_repo.latest_for_email(s, "a@x.com")
    assert rec.attempts == 0 and len(rec.code) == 6 and rec.code.isdigit()

    r = await client.post("/api/auth/verify-otp", json={"email": "a@x.com", "otp": rec.code})
    assert r.status_code == 200
    assert r.json() == {
        "ok": True,
        "message": "OTP verified. Submit full registration payload to create account.",
    }
    async with session_factory() as s:
        assert await otps_repo.latest_for_email(s, "a@x.com") is None


async def test_scenario_b_register_then_conflict(client, notifier):
    body = await signup(client, notifier, "b@x.com", "bob")
    assert body["message"] == "User created"
    assert body["redirectTo"] == "/onboarding"
    assert body["user"]["username"] == "bob"
    assert body["user"]["email"] == "b@x.com"
    assert body["user"]["userType"] == "student"
    assert body["user"]["onboarded"] is False
    assert verify_jwt(body["token"])["sub"] == body["user"]["id"]

    await client.post("/api/auth/send-otp", json={"email": "b@x.com"})
    r = await client.post(
        "/api/auth/verify-otp",
        json={
            "email": "b@x.com",
            "otp": notifier.last_code("b@x.com"),
            "username": "bob",
            "password": "pw123456",
            "userType": "student",
        },
    )
    assert r.status_code == 409
    assert r.json() == {"error": "Email already registered"}


async def test_scenario_c_dev_fallback_discloses_code(client, notifier):
    notifier.deliver = False
    r = await client.post("/api/auth/send-otp", json={"email": "c@x.com"})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "OTP not delivered via email (dev fallback)"
    assert body["otp"] == notifier.last_code("c@x.com")


async def test_scenario_c_production_hides_code(client, notifier, monkeypatch):
    monkeypatch.setattr(otp_workflow.S, "ENV", "prod")
    notifier.raises = True
    r = await client.post("/api/auth/send-otp", json={"email": "c@x.com"})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "message": "OTP sent if email reachable"}


async def test_verify_error_statuses(client, notifier):
    r = await client.post("/api/auth/verify-otp", json={"email": "v@x.com"})
    assert (r.status_code, r.json()) == (400, {"error": "Missing email or otp"})

    r = await client.post("/api/auth/verify-otp", json={"email": "v@x.com", "otp": "123456"})
    assert (r.status_code, r.json()) == (400, {"error": "Invalid or expired OTP"})

    await client.post("/api/auth/send-otp", json={"email": "v@x.com"})
    for _ in range(5):
        r = await client.post("/api/auth/verify-otp", json={"email": "v@x.com", "otp": "000000"})
        assert (r.status_code, r.json()) == (400, {"error": "Invalid OTP"})
    r = await client.post("/api/auth/verify-otp", json={"email": "v@x.com", "otp": "000000"})
    assert (r.status_code, r.json()) == (429, {"error": "Too many attempts"})


async def test_verify_rejects_unknown_user_type(client, notifier):
    await client.post("/api/auth/send-otp", json={"email": "t@x.com"})
    r = await client.post(
        "/api/auth/verify-otp",
        json={"email": "t@x.com", "otp": notifier.last_code("t@x.com"), "username": "t", "password": "p", "userType": "staff"},
    )
    assert (r.status_code, r.json()) == (400, {"error": "Invalid userType"})


async def test_malformed_body_is_a_400(client):
    r = await client.post("/api/auth/send-otp", content=b"not json", headers={"content-type": "application/json"})
    assert r.status_code == 400
    assert "error" in r.json()


async def test_direct_register_and_login(client):
    payload = {"username": "al", "email": "Al@X.com", "password": "secret99", "userType": "alumni"}
    r = await client.post("/api/auth/register", json=payload)
    assert r.status_code == 201
    assert r.json()["message"] == "User registered successfully"
    assert r.json()["user"]["email"] == "al@x.com"

    r = await client.post("/api/auth/register", json=payload)
    assert (r.status_code, r.json()) == (409, {"error": "Email already in use"})

    r = await client.post("/api/auth/register", json={**payload, "email": "z@x.com", "userType": "staff"})
    assert (r.status_code, r.json()) == (400, {"error": "Invalid userType"})

    r = await client.post("/api/auth/login", json={"email": "al@x.com", "password": "wrong"})
    assert (r.status_code, r.json()) == (400, {"error": "Invalid credentials"})

    r = await client.post("/api/auth/login", json={"email": "al@x.com"})
    assert (r.status_code, r.json()) == (400, {"error": "Missing credentials"})

    r = await client.post("/api/auth/login", json={"email": " AL@x.com", "password": "secret99"})
    assert r.status_code == 200
    assert r.json()["redirectTo"] == "/onboarding"
    assert verify_jwt(r.json()["token"])["user_type"] == "alumni"


async def test_me_requires_auth(client):
    r = await client.get("/api/auth/me")
    assert (r.status_code, r.json()) == (401, {"error": "Authorization required"})

    r = await client.get("/api/auth/me", headers=bearer("garbage"))
    assert (r.status_code, r.json()) == (401, {"error": "Invalid or expired token"})


async def test_onboarding_alumni_with_avatar(client, notifier, settings, tmp_path):
    body = await signup(client, notifier, "al@x.com", "Ada Lovelace", user_type="alumni")
    token = body["token"]

    r = await client.post(
        "/api/auth/onboarding",
        headers=bearer(token),
        data={"currentCompany": " Acme ", "currentPosition": "CTO", "about": "hi", "batch": "ignored"},
        files={"profilePic": ("me.png", PNG, "image/png")},
    )
    assert r.status_code == 200, r.text
    out = r.json()
    assert out["message"] == "Onboarding completed"
    assert out["redirectTo"] == "/"
    user = out["user"]
    assert user["onboarded"] is True
    assert user["currentCompany"] == "Acme"
    assert user["batch"] is None
    assert user["profilePic"].startswith("/uploads/") and user["profilePic"].endswith(".png")

    saved = tmp_path / "uploads" / user["profilePic"].rsplit("/", 1)[1]
    assert saved.read_bytes() == PNG

    r = await client.post("/api/auth/login", json={"email": "al@x.com", "password": "pw123456"})
    assert r.json()["redirectTo"] == "/"


async def test_onboarding_rejects_non_image(client, notifier):
    body = await signup(client, notifier, "s@x.com", "Sam")
    r = await client.post(
        "/api/auth/onboarding",
        headers=bearer(body["token"]),
        files={"profilePic": ("notes.txt", b"hello", "text/plain")},
    )
    assert (r.status_code, r.json()) == (400, {"error": "Only image files allowed"})


async def test_profile_update_and_me(client, notifier):
    body = await signup(client, notifier, "p@x.com", "Pat")
    headers = bearer(body["token"])

    r = await client.post(
        "/api/auth/update",
        headers=headers,
        data={"name": " Pat Smith ", "role": "Engineer", "location": "Pune", "bio": "about me"},
    )
    assert r.status_code == 200
    profile = r.json()["profile"]
    assert profile["name"] == "Pat Smith"
    assert profile["role"] == "Engineer"
    assert profile["bio"] == "about me"
    assert profile["location"] == "Pune"
    assert profile["avatar"] == "/img/default-avatar.png"
    assert profile["initials"] == "PS"

    r = await client.get("/api/auth/me", headers=headers)
    assert r.status_code == 200
    assert r.json()["user"]["username"] == "Pat Smith"
    assert r.json()["profile"]["about"] == "about me"


async def test_session_user_endpoint(client, notifier):
    r = await client.get("/api/user")
    assert r.json()["name"] == "Guest"
    assert r.json()["photoURL"] == ""

    body = await signup(client, notifier, "q@x.com", "Quinn Doe")
    r = await client.get("/api/user", headers=bearer(body["token"]))
    assert r.json()["name"] == "Quinn Doe"
    assert r.json()["initials"] == "QD"


async def test_logout_clears_cookie(client):
    r = await client.post("/api/auth/logout")
    assert r.status_code == 200
    assert r.json() == {"message": "Logged out"}
    assert "session=" in r.headers.get("set-cookie", "")


async def test_missing_body_reads_as_empty_payload(client):
    r = await client.post("/api/auth/send-otp")
    assert (r.status_code, r.json()) == (400, {"error": "Invalid email"})

    r = await client.post("/api/auth/verify-otp")
    assert (r.status_code, r.json()) == (400, {"error": "Missing email or otp"})

    r = await client.post("/api/auth/login")
    assert (r.status_code, r.json()) == (400, {"error": "Missing credentials"})


@pytest.mark.parametrize("body", ["a@x.com", [1, 2], 42, None])
async def test_non_object_body_reads_as_empty_payload(client, body):
    r = await client.post("/api/auth/send-otp", json=body)
    assert (r.status_code, r.json()) == (400, {"error": "Invalid email"})

    r = await client.post("/api/auth/verify-otp", json=body)
    assert (r.status_code, r.json()) == (400, {"error": "Missing email or otp"})


@pytest.mark.parametrize(
    "fields",
    [
        {"username": 5, "password": "pw", "userType": "student"},
        {"username": "ann", "password": ["pw"], "userType": "student"},
        {"username": "ann", "password": "pw", "userType": {"kind": "student"}},
    ],
)
async def test_non_string_registration_fields(client, notifier, fields):
    await client.post("/api/auth/send-otp", json={"email": "ann@x.com"})
    r = await client.post(
        "/api/auth/verify-otp",
        json={"email": "ann@x.com", "otp": notifier.last_code("ann@x.com"), **fields},
    )
    assert (r.status_code, r.json()) == (400, {"error": "Missing registration fields"})


async def test_direct_register_rejects_non_string_fields(client):
    r = await client.post(
        "/api/auth/register",
        json={"username": 7, "email": "n@x.com", "password": "pw", "userType": "student"},
    )
    assert (r.status_code, r.json()) == (400, {"error": "Missing or invalid fields"})


async def test_unexpected_failure_renders_json_500(client, monkeypatch):
    async def _limiter_down(request):
        raise redis.exceptions.ConnectionError("connection refused")

    monkeypatch.setattr(auth_router, "limit_otp_request", _limiter_down)
    # the server error middleware re-raises after responding
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        r = await c.post("/api/auth/send-otp", json={"email": "a@x.com"})
    assert r.status_code == 500
    assert r.headers["content-type"].startswith("application/json")
    assert r.json() == {"error": "Internal server error"}
