"""
End-to-end API tests.

Requests go through the full middleware stack and exception handlers
against a temporary SQLite database.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from casebridge.db.orm import MatterStatus, PrincipalStatus
from casebridge.main import app, limiter
from casebridge.security.auth import create_access_token, create_refresh_token


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client bound to the app, with the test database and no rate limit."""
    app.state.db_session = session_factory
    previous = limiter.enabled
    limiter.enabled = False
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http:
        yield http
    limiter.enabled = previous


def bearer(principal) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(principal.id)}"}


class TestHealthEndpoint:
    """Tests for service endpoints."""

    @pytest.mark.asyncio
    async def test_health_reports_database(self, client):
        """Should report a healthy database."""
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["database"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_security_headers(self, client):
        """Should add security headers to every response."""
        response = await client.get("/")

        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_null_byte_in_query_is_rejected(self, client):
        """Should reject a query string carrying a null byte."""
        response = await client.get("/api/v1/matters?status=%00")

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"


class TestAuthentication:
    """Tests for login, refresh and identity errors."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client, seed):
        """Should answer 401 with a bearer challenge."""
        response = await client.get("/api/v1/matters")

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_refresh_token_is_not_an_access_token(self, client, seed):
        """Should refuse a refresh token used as a bearer token."""
        token = create_refresh_token(seed.client.id)

        response = await client.get("/api/v1/matters", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_and_refresh(self, client, seed, password):
        """Should issue tokens that work against the API."""
        response = await client.post(
            "/api/v1/auth/login", json={"email": seed.client.email, "password": password}
        )
        assert response.status_code == 200
        tokens = response.json()
        assert tokens["token_type"] == "bearer"
        assert tokens["principal"]["id"] == str(seed.client.id)
        assert "password_hash" not in tokens["principal"]

        refreshed = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert refreshed.status_code == 200

        me = await client.get(
            "/api/v1/accounts/me",
            headers={"Authorization": f"Bearer {refreshed.json()['access_token']}"},
        )
        assert me.status_code == 200
        assert me.json()["email"] == seed.client.email

    @pytest.mark.asyncio
    async def test_failed_logins_are_counted(self, client, seed):
        """Should persist failed attempts even though the request fails."""
        for _ in range(5):
            response = await client.post(
                "/api/v1/auth/login", json={"email": seed.associate.email, "password": "wrong-password"}
            )

        assert response.status_code == 403
        assert response.json()["error"] == "account_inactive"
        assert "Clear-Site-Data" in response.headers

    @pytest.mark.asyncio
    async def test_client_is_not_internal(self, client, seed):
        """Should keep clients out of staff endpoints."""
        response = await client.get("/api/v1/matters/associates", headers=bearer(seed.client))

        assert response.status_code == 403
        assert response.json()["error"] == "not_internal"

    @pytest.mark.asyncio
    async def test_suspended_principal_session_is_terminated(self, client, seed):
        """Should reject a suspended principal and clear the browser session."""
        suspend = await client.post(
            f"/api/v1/accounts/{seed.associate.id}/status",
            json={"status": PrincipalStatus.SUSPENDED.value, "reason": "Leave of absence"},
            headers=bearer(seed.admin),
        )
        assert suspend.status_code == 200

        response = await client.get("/api/v1/matters", headers=bearer(seed.associate))

        assert response.status_code == 403
        assert response.json()["error"] == "account_inactive"
        assert response.headers["Clear-Site-Data"] == '"cookies", "storage"'


class TestMatterFlow:
    """Tests for a matter's path through the API."""

    @pytest.mark.asyncio
    async def test_file_review_assign_and_work(self, client, seed):
        """Should carry a client filing through review, assignment and work."""
        filed = await client.post(
            "/api/v1/matters",
            json={
                "title": "Wrongful dismissal",
                "description": "Dismissed without notice",
                "category": "employment_labor",
                "service_tier": "priority",
                "payment": {"reference": "PSK-REF-001", "amount": 35000},
            },
            headers=bearer(seed.client),
        )
        assert filed.status_code == 201
        matter = filed.json()
        assert matter["status"] == "pending_review"
        matter_id = matter["id"]

        accepted = await client.post(
            f"/api/v1/matters/{matter_id}/transitions",
            json={"target": "in_review"},
            headers=bearer(seed.manager),
        )
        assert accepted.status_code == 200
        assert accepted.json()["firm_id"] == str(seed.firm.id)

        assigned = await client.post(
            f"/api/v1/matters/{matter_id}/assignment",
            json={"associate_id": str(seed.associate.id)},
            headers=bearer(seed.manager),
        )
        assert assigned.status_code == 201

        started = await client.post(
            f"/api/v1/matters/{matter_id}/transitions",
            json={"target": "in_progress", "note": "Kick-off call done"},
            headers=bearer(seed.manager),
        )
        assert started.status_code == 200
        assert started.json()["status"] == MatterStatus.IN_PROGRESS.value

        detail = await client.get(f"/api/v1/matters/{matter_id}", headers=bearer(seed.associate))
        assert detail.status_code == 200
        body = detail.json()
        assert body["assignment"]["associate_id"] == str(seed.associate.id)
        assert len(body["invoices"]) == 1
        assert [e["action"] for e in body["audit_trail"]][-1] == "case_status_changed"

        client_view = await client.get(f"/api/v1/matters/{matter_id}", headers=bearer(seed.client))
        assert client_view.json()["audit_trail"] == []
        assert client_view.json()["transitions"] == []

        inbox = await client.get("/api/v1/notifications", headers=bearer(seed.client))
        assert inbox.status_code == 200
        assert inbox.json()["unread_count"] >= 2

    @pytest.mark.asyncio
    async def test_tasks_over_http(self, client, seed, matter_factory):
        """Should create, complete and filter tasks through the matter routes."""
        matter = await matter_factory(MatterStatus.IN_PROGRESS, assigned_to=seed.associate)

        created = await client.post(
            f"/api/v1/matters/{matter.id}/tasks",
            json={"title": "Sign the engagement letter", "client_visible": True, "assigned_to": str(seed.associate.id)},
            headers=bearer(seed.manager),
        )
        assert created.status_code == 201
        task_id = created.json()["id"]
        await client.post(
            f"/api/v1/matters/{matter.id}/tasks",
            json={"title": "Research precedent"},
            headers=bearer(seed.manager),
        )

        mine = await client.get("/api/v1/tasks/mine", headers=bearer(seed.associate))
        assert [t["id"] for t in mine.json()] == [task_id]

        done = await client.patch(
            f"/api/v1/tasks/{task_id}/status", json={"status": "completed"}, headers=bearer(seed.associate)
        )
        assert done.status_code == 200
        assert done.json()["completed_at"] is not None

        client_tasks = await client.get(f"/api/v1/matters/{matter.id}/tasks", headers=bearer(seed.client))
        assert [t["title"] for t in client_tasks.json()] == ["Sign the engagement letter"]
        detail = await client.get(f"/api/v1/matters/{matter.id}", headers=bearer(seed.client))
        assert [t["id"] for t in detail.json()["tasks"]] == [task_id]

        denied = await client.patch(
            f"/api/v1/tasks/{task_id}/visibility", json={"client_visible": False}, headers=bearer(seed.associate)
        )
        assert denied.status_code == 403

    @pytest.mark.asyncio
    async def test_illegal_transition(self, client, seed, matter_factory):
        """Should answer 409 for a pair outside the transition table."""
        matter = await matter_factory(MatterStatus.PENDING_REVIEW)

        response = await client.post(
            f"/api/v1/matters/{matter.id}/transitions",
            json={"target": "completed"},
            headers=bearer(seed.manager),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "illegal_transition"

    @pytest.mark.asyncio
    async def test_other_firm_gets_not_found(self, client, seed, matter_factory):
        """Should hide another firm's matter behind a 404."""
        matter = await matter_factory(MatterStatus.IN_REVIEW, firm=seed.other_firm)

        response = await client.get(f"/api/v1/matters/{matter.id}", headers=bearer(seed.manager))

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_invalid_payload_is_rejected(self, client, seed):
        """Should validate request bodies before reaching the core."""
        response = await client.post(
            "/api/v1/matters",
            json={"title": "", "category": "space_law", "service_tier": "standard"},
            headers=bearer(seed.client),
        )

        assert response.status_code == 422


class TestOnboarding:
    """Tests for invitations and audit verification over HTTP."""

    @pytest.mark.asyncio
    async def test_invite_redeem_and_log_in(self, client, seed):
        """Should onboard an invited associate who can then log in."""
        created = await client.post(
            "/api/v1/invitations",
            json={"email": "junior@adebayo.example.com", "role": "associate_lawyer"},
            headers=bearer(seed.admin),
        )
        assert created.status_code == 201
        token = created.json()["token"]

        details = await client.get(f"/api/v1/invitations/{token}")
        assert details.status_code == 200
        assert details.json()["firm_name"] == seed.firm.name

        redeemed = await client.post(
            f"/api/v1/invitations/{token}/redeem",
            json={"password": "junior-password-1", "first_name": "Kemi", "last_name": "Junior"},
        )
        assert redeemed.status_code == 201
        assert redeemed.json()["role"] == "associate_lawyer"

        again = await client.post(
            f"/api/v1/invitations/{token}/redeem",
            json={"password": "junior-password-1", "first_name": "Kemi", "last_name": "Junior"},
        )
        assert again.status_code == 410
        assert again.json()["error"] == "invitation_invalid"

        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "junior@adebayo.example.com", "password": "junior-password-1"},
        )
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_audit_log_and_verification(self, client, seed):
        """Should let administrators read and verify their firm's chain."""
        await client.patch("/api/v1/firms/me", json={"address": "12 Marina, Lagos"}, headers=bearer(seed.admin))

        log = await client.get("/api/v1/audit", headers=bearer(seed.admin))
        assert log.status_code == 200
        assert [e["action"] for e in log.json()] == ["firm_profile_updated"]

        verified = await client.get("/api/v1/audit/verify", headers=bearer(seed.admin))
        assert verified.json() == {"valid": True, "first_invalid_sequence": None}

        denied = await client.get("/api/v1/audit", headers=bearer(seed.manager))
        assert denied.status_code == 403
        assert denied.json()["error"] == "forbidden"

    @pytest.mark.asyncio
    async def test_resend_and_revoke(self, client, seed):
        """Should retire a token on resend and refuse the new one once revoked."""
        created = await client.post(
            "/api/v1/invitations",
            json={"email": "walkin@example.com", "role": "client"},
            headers=bearer(seed.manager),
        )
        invitation_id = created.json()["id"]
        old_token = created.json()["token"]

        resent = await client.post(f"/api/v1/invitations/{invitation_id}/resend", headers=bearer(seed.manager))
        assert resent.status_code == 200
        assert resent.json()["resend_count"] == 1
        new_token = resent.json()["token"]
        assert (await client.get(f"/api/v1/invitations/{old_token}")).status_code == 410
        assert (await client.get(f"/api/v1/invitations/{new_token}")).status_code == 200

        revoked = await client.post(f"/api/v1/invitations/{invitation_id}/revoke", headers=bearer(seed.manager))
        assert revoked.status_code == 200
        assert revoked.json()["status"] == "revoked"
        assert (await client.get(f"/api/v1/invitations/{new_token}")).status_code == 410

        again = await client.post(f"/api/v1/invitations/{invitation_id}/revoke", headers=bearer(seed.manager))
        assert again.status_code == 409
