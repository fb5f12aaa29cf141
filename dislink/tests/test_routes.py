"""Integration tests for the HTTP surface."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from dislink.auth import create_jwt
from dislink.errors import InvalidCredentials, Transient
from dislink.routes import auth_routes

pytestmark = pytest.mark.asyncio(loop_scope="session")


def _auth(user_id) -> dict:
    return {"Authorization": f"Bearer {create_jwt(user_id)}"}


async def _issue(client, owner_id, **body) -> str:
    res = await client.post("/api/codes", json=body, headers=_auth(owner_id))
    assert res.status_code == 201
    return res.json()["code"]


# ── health and auth dependency ──────────────────────────────────────────────


async def test_health(async_client):
    res = await async_client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


async def test_unauthenticated_request_rejected(async_client):
    res = await async_client.post("/api/codes", json={})
    assert res.status_code == 401
    assert res.json()["code"] == "auth_invalid"


async def test_bad_token_rejected(async_client):
    res = await async_client.get("/api/codes", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


async def test_session_cookie_accepted(async_client, owner_id):
    res = await async_client.get("/api/codes", headers={"Cookie": f"session={create_jwt(owner_id)}"})
    assert res.status_code == 200


# ── codes ───────────────────────────────────────────────────────────────────


class TestCodeRoutes:
    async def test_issue_and_list(self, async_client, owner_id):
        code = await _issue(async_client, owner_id, expires_in_hours=24, single_use=True)

        res = await async_client.get("/api/codes", headers=_auth(owner_id))

        assert res.status_code == 200
        data = res.json()
        assert [c["code"] for c in data] == [code]
        assert data[0]["status"] == "active"
        assert data[0]["single_use"] is True
        assert data[0]["expires_at"] is not None

    async def test_validate_records_scan(self, async_client, owner_id):
        code = await _issue(async_client, owner_id)

        res = await async_client.get(
            f"/api/codes/{code}",
            params={"fingerprint": "abc"},
            headers={"Referer": "https://twitter.com/someone"},
        )

        assert res.status_code == 200
        data = res.json()
        assert data["expired"] is False
        assert data["owner_summary"]["name"] == "Olivia Owner"
        assert data["scan_event_id"] is not None

    async def test_validate_unknown_code(self, async_client):
        res = await async_client.get("/api/codes/ZZZZZZZZ")
        assert res.status_code == 404
        assert res.json() == {"detail": "Code not found.", "code": "not_found"}

    async def test_validate_rate_limited(self, async_client, owner_id):
        code = await _issue(async_client, owner_id)
        for _ in range(30):
            assert (await async_client.get(f"/api/codes/{code}")).status_code == 200

        res = await async_client.get(f"/api/codes/{code}")

        assert res.status_code == 429
        assert res.json()["code"] == "rate_limited"
        assert int(res.headers["Retry-After"]) >= 1

    async def test_revoke_then_validate_reports_expired(self, async_client, owner_id):
        code = await _issue(async_client, owner_id)

        res = await async_client.post(f"/api/codes/{code}/revoke", headers=_auth(owner_id))
        assert res.status_code == 200
        assert res.json()["status"] == "expired"

        res = await async_client.get(f"/api/codes/{code}")
        assert res.status_code == 200
        assert res.json()["expired"] is True

        res = await async_client.post(f"/api/codes/{code}/revoke", headers=_auth(owner_id))
        assert res.status_code == 409
        assert res.json()["code"] == "already_terminal"

    async def test_revoke_someone_elses_code(self, async_client, owner_id, scanner_id):
        code = await _issue(async_client, owner_id)

        res = await async_client.post(f"/api/codes/{code}/revoke", headers=_auth(scanner_id))

        assert res.status_code == 403


# ── deferred linking and connections ────────────────────────────────────────


class TestLinkingRoutes:
    async def test_anonymous_scan_link_and_redeem(self, async_client, owner_id, notifier):
        code = await _issue(async_client, owner_id)
        scan = (await async_client.get(f"/api/codes/{code}")).json()

        res = await async_client.post(
            f"/api/codes/{code}/link",
            json={"email": "New.Person@Example.com", "scan_event_id": scan["scan_event_id"]},
        )
        assert res.status_code == 200
        redemption_code = res.json()["redemption_code"]
        notifier.assert_awaited_once_with("new.person@example.com", redemption_code, "Olivia Owner")

        new_user_id = uuid4()
        res = await async_client.post(
            "/api/links/redeem",
            json={"redemption_code": redemption_code},
            headers=_auth(new_user_id),
        )
        assert res.status_code == 201
        connection_request_id = res.json()["connection_request_id"]

        res = await async_client.post(
            "/api/links/redeem",
            json={"redemption_code": redemption_code},
            headers=_auth(new_user_id),
        )
        assert res.status_code == 409
        assert res.json()["code"] == "already_redeemed"

        incoming = (await async_client.get("/api/connections/incoming", headers=_auth(owner_id))).json()
        assert [r["id"] for r in incoming] == [connection_request_id]
        assert incoming[0]["origin_scan_event_id"] == scan["scan_event_id"]

    async def test_link_invalid_email(self, async_client, owner_id):
        code = await _issue(async_client, owner_id)

        res = await async_client.post(f"/api/codes/{code}/link", json={"email": "nope"})

        assert res.status_code == 422
        assert res.json()["code"] == "invalid_email"

    async def test_link_on_revoked_code(self, async_client, owner_id):
        code = await _issue(async_client, owner_id)
        await async_client.post(f"/api/codes/{code}/revoke", headers=_auth(owner_id))

        res = await async_client.post(f"/api/codes/{code}/link", json={"email": "e@x.com"})

        assert res.status_code == 410
        assert res.json()["code"] == "code_expired"

    async def test_redeem_unknown_code(self, async_client, scanner_id):
        res = await async_client.post(
            "/api/links/redeem",
            json={"redemption_code": "nope"},
            headers=_auth(scanner_id),
        )
        assert res.status_code == 404

    async def test_connect_and_accept(self, async_client, owner_id, scanner_id):
        code = await _issue(async_client, owner_id)

        res = await async_client.post(f"/api/codes/{code}/connect", json={}, headers=_auth(scanner_id))
        assert res.status_code == 201
        request_id = res.json()["connection_request_id"]

        outgoing = (await async_client.get("/api/connections/outgoing", headers=_auth(scanner_id))).json()
        assert [r["id"] for r in outgoing] == [request_id]

        res = await async_client.post(f"/api/connections/{request_id}/accept", headers=_auth(scanner_id))
        assert res.status_code == 403

        res = await async_client.post(f"/api/connections/{request_id}/accept", headers=_auth(owner_id))
        assert res.status_code == 200
        assert res.json()["state"] == "accepted"

    async def test_connect_with_own_code(self, async_client, owner_id):
        code = await _issue(async_client, owner_id)

        res = await async_client.post(f"/api/codes/{code}/connect", json={}, headers=_auth(owner_id))

        assert res.status_code == 422
        assert res.json()["code"] == "invalid_input"


# ── needs ───────────────────────────────────────────────────────────────────


class TestNeedRoutes:
    async def test_create_and_list(self, async_client, owner_id, scanner_id):
        res = await async_client.post(
            "/api/needs",
            json={"message": "Looking for a Rust mentor", "tags": ["Rust"], "duration_hours": 48},
            headers=_auth(owner_id),
        )
        assert res.status_code == 201
        need = res.json()
        assert need["tags"] == ["rust"]
        assert need["is_expired"] is False

        listing = (await async_client.get("/api/needs", headers=_auth(scanner_id))).json()
        assert [n["id"] for n in listing] == [need["id"]]

        res = await async_client.get(f"/api/needs/{need['id']}", headers=_auth(scanner_id))
        assert res.status_code == 200

    async def test_invalid_duration(self, async_client, owner_id):
        res = await async_client.post(
            "/api/needs",
            json={"message": "m", "duration_hours": 72},
            headers=_auth(owner_id),
        )
        assert res.status_code == 422
        assert res.json()["code"] == "invalid_input"

    async def test_private_replies_are_scoped(self, async_client, owner_id, scanner_id, third_user_id):
        need_id = (
            await async_client.post(
                "/api/needs",
                json={"message": "Intro to a VC?", "visibility": "private"},
                headers=_auth(owner_id),
            )
        ).json()["id"]

        res = await async_client.post(
            f"/api/needs/{need_id}/replies",
            json={"message": "I know one"},
            headers=_auth(scanner_id),
        )
        assert res.status_code == 201
        scanner_reply = res.json()["reply_id"]
        await async_client.post(
            f"/api/needs/{need_id}/replies",
            json={"message": "Me too"},
            headers=_auth(third_user_id),
        )
        res = await async_client.post(
            f"/api/needs/{need_id}/replies",
            json={"message": "Great, DM me", "reply_to_user_id": str(scanner_id)},
            headers=_auth(owner_id),
        )
        owner_reply = res.json()["reply_id"]

        owner_view = (await async_client.get(f"/api/needs/{need_id}/replies", headers=_auth(owner_id))).json()
        scanner_view = (await async_client.get(f"/api/needs/{need_id}/replies", headers=_auth(scanner_id))).json()

        assert len(owner_view) == 3
        assert [r["id"] for r in scanner_view] == [scanner_reply, owner_reply]

    async def test_satisfy_and_archive(self, async_client, owner_id, scanner_id):
        need_id = (
            await async_client.post("/api/needs", json={"message": "m"}, headers=_auth(owner_id))
        ).json()["id"]

        res = await async_client.post(f"/api/needs/{need_id}/satisfy", headers=_auth(scanner_id))
        assert res.status_code == 403

        res = await async_client.post(f"/api/needs/{need_id}/satisfy", headers=_auth(owner_id))
        assert res.status_code == 200
        assert res.json()["is_satisfied"] is True

        assert (await async_client.get("/api/needs", headers=_auth(owner_id))).json() == []
        archived = (await async_client.get("/api/needs/archived", headers=_auth(owner_id))).json()
        assert [n["id"] for n in archived] == [need_id]

    async def test_unknown_need(self, async_client, owner_id):
        res = await async_client.get(f"/api/needs/{uuid4()}", headers=_auth(owner_id))
        assert res.status_code == 404


# ── identity gateway ────────────────────────────────────────────────────────


class TestIdentityGateway:
    async def test_unknown_action(self, async_client):
        res = await async_client.post("/auth/impersonate", json={})
        assert res.status_code == 404

    async def test_login_sets_session_cookie(self, async_client):
        body = {
            "access_token": "access-token",
            "refresh_token": "refresh-token",
            "user_id": str(uuid4()),
            "email": "sam@example.com",
        }
        with patch.object(auth_routes.identity_client, "forward", AsyncMock(return_value=body)) as forward:
            res = await async_client.post("/auth/login", json={"email": "sam@example.com", "password": "pw"})

        assert res.status_code == 200
        assert res.json()["refresh_token"] == "refresh-token"
        assert "session=access-token" in res.headers["set-cookie"]
        forward.assert_awaited_once()
        async_client.cookies.clear()

    async def test_shape_check_before_forwarding(self, async_client):
        with patch.object(auth_routes.identity_client, "forward", AsyncMock()) as forward:
            res = await async_client.post(
                "/auth/signup",
                json={"email": "sam@example.com", "password": "short", "first_name": "S", "last_name": "S"},
            )

        assert res.status_code == 422
        assert res.json()["code"] == "invalid_input"
        forward.assert_not_awaited()

    async def test_rate_limit_precedes_validation(self, async_client):
        with patch.object(auth_routes.identity_client, "forward", AsyncMock(return_value={})):
            for _ in range(2):
                res = await async_client.post("/auth/reset_password", json={"email": "sam@example.com"})
                assert res.status_code == 200

            res = await async_client.post("/auth/reset_password", json={"not": "valid"})

        assert res.status_code == 429
        assert "Retry-After" in res.headers

    async def test_provider_rejection_is_generic(self, async_client):
        with patch.object(auth_routes.identity_client, "forward", AsyncMock(side_effect=InvalidCredentials())):
            res = await async_client.post("/auth/login", json={"email": "sam@example.com", "password": "wrong"})

        assert res.status_code == 401
        assert res.json() == {"detail": "Invalid credentials.", "code": "invalid_credentials"}

    async def test_provider_outage(self, async_client):
        with patch.object(auth_routes.identity_client, "forward", AsyncMock(side_effect=Transient())):
            res = await async_client.post("/auth/login", json={"email": "sam@example.com", "password": "pw"})

        assert res.status_code == 503
        assert res.json()["code"] == "transient"

    async def test_logout_clears_cookie(self, async_client):
        res = await async_client.post("/auth/logout")

        assert res.status_code == 200
        assert res.json() == {"message": "Signed out."}
        assert "session=" in res.headers["set-cookie"]
        assert "Max-Age=0" in res.headers["set-cookie"]
