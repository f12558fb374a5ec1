"""HTTP-level tests: tenant context on the connection across the request lifecycle."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fakes import (
    ACME_ID,
    ALICE_ID,
    BOB_ID,
    DISABLED_ID,
    GLOBEX_ID,
    ROOT_ID,
    FakeSession,
    auth_headers,
)
from okrguard.database.tenant import (
    SESSION_VAR_ORG_ID,
    SESSION_VAR_SYSTEM_OWNER,
    SESSION_VAR_USER_ID,
)
from okrguard.modules.tenancy.dependencies import get_db
from okrguard.modules.tenancy.installer import PolicyStatus
from okrguard.modules.tenancy.scope import cleanup_health


class TestContextLifecycle:
    @pytest.mark.asyncio
    async def test_anonymous_request_runs_with_cleared_context(self, client, fake_engine):
        fake_engine.connection.variables = {SESSION_VAR_ORG_ID: str(GLOBEX_ID)}

        response = await client.get("/api/me/context")

        assert response.status_code == 200
        assert response.json() == {
            "user_id": None,
            "organization_id": None,
            "is_system_owner": False,
        }

    @pytest.mark.asyncio
    async def test_authenticated_request_sees_own_organization(self, client):
        response = await client.get("/api/me/context", headers=auth_headers(ALICE_ID))

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == str(ALICE_ID)
        assert body["organization_id"] == str(ACME_ID)
        assert body["is_system_owner"] is False

    @pytest.mark.asyncio
    async def test_connection_released_with_no_context(self, client, fake_engine):
        await client.get("/api/objectives", headers=auth_headers(ALICE_ID))

        assert fake_engine.checkouts == 1
        assert fake_engine.connection.closed is True
        assert fake_engine.connection.variables == {}
        assert FakeSession.observed[0][SESSION_VAR_ORG_ID] == str(ACME_ID)

    @pytest.mark.asyncio
    async def test_sequential_requests_on_same_connection_do_not_leak(self, client, fake_engine):
        await client.get("/api/objectives", headers=auth_headers(ALICE_ID))
        await client.get("/api/objectives", headers=auth_headers(BOB_ID))
        await client.get("/api/objectives")

        assert fake_engine.checkouts == 3
        first, second, third = FakeSession.observed
        assert first[SESSION_VAR_ORG_ID] == str(ACME_ID)
        assert second[SESSION_VAR_ORG_ID] == str(GLOBEX_ID)
        assert second[SESSION_VAR_USER_ID] == str(BOB_ID)
        assert third == {}

    @pytest.mark.asyncio
    async def test_invalid_token_is_anonymous(self, client):
        response = await client.get(
            "/api/me/context", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 200
        assert response.json()["user_id"] is None

    @pytest.mark.asyncio
    async def test_inactive_user_is_anonymous(self, client):
        response = await client.get("/api/me/context", headers=auth_headers(DISABLED_ID))

        assert response.json()["organization_id"] is None

    @pytest.mark.asyncio
    async def test_unknown_user_is_anonymous(self, client):
        response = await client.get("/api/me/context", headers=auth_headers(uuid.uuid4()))

        assert response.json()["user_id"] is None

    @pytest.mark.asyncio
    async def test_excluded_route_never_checks_out_a_connection(self, client, fake_engine):
        response = await client.get("/health", headers=auth_headers(ALICE_ID))

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert fake_engine.checkouts == 0


class TestCleanupOnFailure:
    @pytest.mark.asyncio
    async def test_handler_error_still_clears_context(self, app, client, fake_engine):
        @app.get("/api/explode")
        async def explode(db: AsyncSession = Depends(get_db)):
            raise RuntimeError("handler failed mid-request")

        response = await client.get("/api/explode", headers=auth_headers(ALICE_ID))

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"
        assert fake_engine.connection.variables == {}
        assert fake_engine.connection.closed is True

    @pytest.mark.asyncio
    async def test_clear_failure_discards_connection_without_changing_response(
        self, client, fake_engine
    ):
        fake_engine.connection.fail_on_clear = True

        response = await client.get("/api/objectives", headers=auth_headers(ALICE_ID))

        assert response.status_code == 200
        assert fake_engine.connection.invalidated is True
        assert cleanup_health.discarded == 1
        assert cleanup_health.healthy is True

    @pytest.mark.asyncio
    async def test_health_reports_degraded_after_unhealthy_cleanup(self, client, fake_engine):
        fake_engine.connection.fail_on_clear = True
        fake_engine.connection.fail_on_invalidate = True

        await client.get("/api/objectives", headers=auth_headers(ALICE_ID))
        response = await client.get("/health")

        assert cleanup_health.unhealthy == 1
        assert response.json()["status"] == "degraded"


class TestSlugResolution:
    @pytest.mark.asyncio
    async def test_member_reads_own_organization(self, client):
        response = await client.get("/api/org/acme/objectives", headers=auth_headers(ALICE_ID))

        assert response.status_code == 200
        assert FakeSession.observed[0][SESSION_VAR_ORG_ID] == str(ACME_ID)

    @pytest.mark.asyncio
    async def test_unknown_slug_is_not_found_and_sets_no_context(self, client, fake_engine):
        response = await client.get("/api/org/initech/objectives", headers=auth_headers(ALICE_ID))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"
        assert fake_engine.checkouts == 0

    @pytest.mark.asyncio
    async def test_other_organization_is_forbidden(self, client, fake_engine):
        response = await client.get("/api/org/globex/objectives", headers=auth_headers(ALICE_ID))

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Access denied to this organization"
        assert fake_engine.checkouts == 0

    @pytest.mark.asyncio
    async def test_anonymous_slug_request_is_unauthorized(self, client):
        response = await client.get("/api/org/acme/objectives")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_system_owner_enters_any_organization(self, client):
        response = await client.get("/api/org/globex/objectives", headers=auth_headers(ROOT_ID))

        assert response.status_code == 200
        observed = FakeSession.observed[0]
        assert observed[SESSION_VAR_ORG_ID] == str(GLOBEX_ID)
        assert observed[SESSION_VAR_SYSTEM_OWNER] == "true"


class TestSystemOwnerRoutes:
    @pytest.mark.asyncio
    async def test_policy_status_requires_system_owner(self, client):
        response = await client.get("/api/admin/policies", headers=auth_headers(ALICE_ID))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_policy_status_requires_authentication(self, client):
        response = await client.get("/api/admin/policies")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_policy_status_for_system_owner(self, client, fake_directory):
        status = PolicyStatus(missing_policies=["tasks_organization_policy"])
        with patch(
            "okrguard.modules.tenancy.router.verify_policies",
            new=AsyncMock(return_value=status),
        ):
            response = await client.get("/api/admin/policies", headers=auth_headers(ROOT_ID))

        assert response.status_code == 200
        body = response.json()
        assert body["healthy"] is False
        assert body["missing_policies"] == ["tasks_organization_policy"]
        assert body["cleanup_failures"] == 0

    @pytest.mark.asyncio
    async def test_stored_flag_is_reread(self, client, fake_directory):
        # Flag revoked after the middleware loaded the user
        original_get_user = fake_directory.get_user
        calls = []

        async def get_user(user_id):
            calls.append(user_id)
            record = await original_get_user(user_id)
            if len(calls) > 1:
                return record.model_copy(update={"is_system_owner": False})
            return record

        fake_directory.get_user = get_user

        response = await client.get("/api/admin/policies", headers=auth_headers(ROOT_ID))

        assert response.status_code == 403
        assert calls == [ROOT_ID, ROOT_ID]


class TestRequestId:
    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_request_id_in_error_body(self, client):
        response = await client.get(
            "/api/org/initech/objectives",
            headers={**auth_headers(ALICE_ID), "X-Request-ID": "req-456"},
        )

        assert response.json()["error"]["requestId"] == "req-456"


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_objective_listing_is_rate_limited(self, client):
        statuses = [
            (await client.get("/api/objectives", headers=auth_headers(ALICE_ID))).status_code
            for _ in range(60)
        ]
        response = await client.get("/api/objectives", headers=auth_headers(ALICE_ID))

        assert set(statuses) == {200}
        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMITED"
