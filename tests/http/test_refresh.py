"""Tests for single-flight token refresh coordination."""

import asyncio
import gc

import httpx
import pytest

from scoreapi.models.errors import ErrorCode, ScoreAPIError
from scoreapi.models.tokens import TenantType
from tests.conftest import token_body


class TestSingleFlight:
    async def test_concurrent_stale_requests_share_one_refresh(
        self, pipeline, token_manager, server, clock
    ):
        # Arrange
        await token_manager.save_tokens("A1", "R1", 3600)
        clock.advance(3500)

        async def refresh(request):
            # Yield so the other requests pile up behind this refresh
            await asyncio.sleep(0.01)
            return httpx.Response(200, json=token_body("A2", "R2"))

        server.route("GET", "/users/refresh-token", refresh)
        server.route("GET", "/users", lambda request: httpx.Response(200, json={}))

        # Act
        await asyncio.gather(*(pipeline.get("/users") for _ in range(10)))

        # Assert
        assert len(server.calls("/users/refresh-token")) == 1
        sent = server.calls("/users")
        assert len(sent) == 10
        assert {r.headers["Authorization"] for r in sent} == {"Bearer A2"}
        assert not pipeline.is_refreshing

    async def test_all_waiters_see_the_same_failure(self, pipeline, token_manager, server):
        # Arrange
        await token_manager.save_tokens("A1", "R1", 3600)

        async def refresh(request):
            await asyncio.sleep(0.01)
            return httpx.Response(401, json={"message": "refresh token revoked"})

        server.route("GET", "/users/refresh-token", refresh)

        # Act
        results = await asyncio.gather(
            *(pipeline.refresh_tokens() for _ in range(5)), return_exceptions=True
        )

        # Assert
        assert len(server.calls("/users/refresh-token")) == 1
        assert all(isinstance(r, ScoreAPIError) for r in results)
        assert len({id(r) for r in results}) == 1
        assert results[0].code is ErrorCode.TOKEN_REFRESH_FAILED
        assert results[0].status_code == 401

    async def test_slot_cleared_after_completion(self, pipeline, token_manager, server):
        await token_manager.save_tokens("A1", "R1", 3600)
        bodies = iter([token_body("A2", "R2"), token_body("A3", "R3")])
        server.route(
            "GET",
            "/users/refresh-token",
            lambda request: httpx.Response(200, json=next(bodies)),
        )

        await pipeline.refresh_tokens()
        await pipeline.refresh_tokens()

        refreshes = server.calls("/users/refresh-token")
        assert [r.url.params["token"] for r in refreshes] == ["R1", "R2"]
        assert await token_manager.get_access_token() == "A3"
        assert not pipeline.is_refreshing

    async def test_slot_cleared_after_failure(self, pipeline, token_manager, server):
        await token_manager.save_tokens("A1", "R1", 3600)
        responses = iter(
            [httpx.Response(500), httpx.Response(200, json=token_body("A2", "R2"))]
        )
        server.route("GET", "/users/refresh-token", lambda request: next(responses))

        with pytest.raises(ScoreAPIError):
            await pipeline.refresh_tokens()
        refreshed = await pipeline.refresh_tokens()

        assert refreshed.access_token == "A2"

    async def test_cancelled_waiter_does_not_cancel_refresh(
        self, pipeline, token_manager, server
    ):
        # Arrange
        await token_manager.save_tokens("A1", "R1", 3600)
        release = asyncio.Event()

        async def refresh(request):
            await release.wait()
            return httpx.Response(200, json=token_body("A2", "R2"))

        server.route("GET", "/users/refresh-token", refresh)

        impatient = asyncio.create_task(pipeline.refresh_tokens())
        patient = asyncio.create_task(pipeline.refresh_tokens())
        await asyncio.sleep(0.01)

        # Act
        impatient.cancel()
        release.set()
        refreshed = await patient

        # Assert
        assert impatient.cancelled()
        assert refreshed.access_token == "A2"
        assert await token_manager.get_access_token() == "A2"
        assert len(server.calls("/users/refresh-token")) == 1

    async def test_failure_with_no_waiters_left_is_not_reported(
        self, pipeline, token_manager, server
    ):
        # Arrange
        await token_manager.save_tokens("A1", "R1", 3600)
        release = asyncio.Event()

        async def refresh(request):
            await release.wait()
            return httpx.Response(500)

        server.route("GET", "/users/refresh-token", refresh)

        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda loop, context: reported.append(context))

        try:
            waiter = asyncio.create_task(pipeline.refresh_tokens())
            await asyncio.sleep(0.01)
            refresh_task = pipeline._refresh_task

            # Act: the only waiter gives up, then the refresh fails
            waiter.cancel()
            release.set()
            await asyncio.sleep(0.01)

            # Assert
            assert refresh_task.done() and not refresh_task.cancelled()
            del refresh_task, waiter
            gc.collect()
            assert reported == []
            assert not pipeline.is_refreshing
        finally:
            loop.set_exception_handler(None)


class TestRefreshOperation:
    async def test_missing_refresh_token_fails_without_network(self, pipeline, server):
        with pytest.raises(ScoreAPIError) as exc_info:
            await pipeline.refresh_tokens()

        assert exc_info.value.code is ErrorCode.TOKEN_REQUIRED
        assert server.requests == []

    @pytest.mark.parametrize(
        "tenant, endpoint",
        [
            (TenantType.USER, "/users/refresh-token"),
            (TenantType.CUSTOMER, "/customers/refresh-token"),
            (TenantType.DIRECT, "/direct/refresh-token"),
        ],
    )
    async def test_routes_by_tenant_and_preserves_it(
        self, pipeline, token_manager, server, tenant, endpoint
    ):
        # Arrange
        await token_manager.save_tokens("A1", "R1", 3600, tenant)
        server.route("GET", endpoint, httpx.Response(200, json=token_body("A2", "R2")))

        # Act
        await pipeline.refresh_tokens()

        # Assert
        assert [r.url.path for r in server.requests] == [endpoint]
        assert server.requests[0].url.params["token"] == "R1"
        tokens = await token_manager.get_tokens()
        assert tokens.access_token == "A2"
        assert tokens.refresh_token == "R2"
        assert tokens.tenant_type is tenant

    async def test_refresh_resets_issue_time(self, pipeline, token_manager, server, clock):
        await token_manager.save_tokens("A1", "R1", 3600)
        clock.advance(3500)
        server.route(
            "GET",
            "/users/refresh-token",
            httpx.Response(200, json=token_body("A2", "R2", expires_in=1800)),
        )

        await pipeline.refresh_tokens()

        assert not await token_manager.is_expired()
        tokens = await token_manager.get_tokens()
        assert tokens.issued_at == int(clock() * 1000)
        assert tokens.expires_in == 1800

    async def test_malformed_refresh_body(self, pipeline, token_manager, server):
        await token_manager.save_tokens("A1", "R1", 3600)
        server.route(
            "GET", "/users/refresh-token", httpx.Response(200, json={"accessToken": "A2"})
        )

        with pytest.raises(ScoreAPIError) as exc_info:
            await pipeline.refresh_tokens()

        assert exc_info.value.code is ErrorCode.TOKEN_REFRESH_FAILED
        # Proactive or explicit refresh failures leave the session alone
        assert await token_manager.get_access_token() == "A1"
