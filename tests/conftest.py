import inspect
from typing import Any, Callable

import httpx
import pytest

from scoreapi.auth.storage import MemoryStorage, TokenStore
from scoreapi.auth.token_manager import TokenManager
from scoreapi.http.pipeline import RequestPipeline

BASE_URL = "https://api.example.com"
T0 = 1_700_000_000.0  # seconds since epoch


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


Handler = Callable[[httpx.Request], Any]


class FakeServer:
    """Routes mock transport requests by (method, path) and records them."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, handler: Handler | httpx.Response) -> None:
        if isinstance(handler, httpx.Response):
            response = handler
            self.routes[(method, path)] = lambda request: httpx.Response(
                response.status_code,
                headers=response.headers,
                content=response.content,
            )
        else:
            self.routes[(method, path)] = handler

    async def handle(self, request: httpx.Request) -> httpx.Response:
        # Snapshot, since a retried request is the same object re-sent
        self.requests.append(
            httpx.Request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.content,
            )
        )
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "Not found"})

        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def token_body(access: str, refresh: str, expires_in: int = 3600, **extra: Any) -> dict:
    return {
        "accessToken": access,
        "refreshToken": refresh,
        "expiresIn": expires_in,
        **extra,
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def token_manager(storage: MemoryStorage, clock: FakeClock) -> TokenManager:
    return TokenManager(TokenStore(storage), clock=clock)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
async def pipeline(token_manager: TokenManager, server: FakeServer):
    http = RequestPipeline(
        BASE_URL,
        token_manager,
        headers={"X-Client": "tests"},
        customer_token="ctoken-configured",
        transport=server.transport,
    )
    yield http
    await http.close()


@pytest.fixture
async def logged_in(token_manager: TokenManager) -> None:
    await token_manager.save_tokens("A1", "R1", 3600)
