import json
from typing import Any, Callable, Union

import pytest

from toolbox.models.music_model import SearchResultItem


class FakeResponse:
    def __init__(self, payload: Any = None, text: str | None = None, status_code: int = 200):
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload, ensure_ascii=False)
        self.status_code = status_code

    def json(self) -> Any:
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


Handler = Union[FakeResponse, Exception, Callable[[dict], FakeResponse]]


class StubHttp:
    """Routes stubbed httpx.AsyncClient calls by (method, url)."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.calls: list[dict] = []
        self.client_kwargs: list[dict] = []

    def route(self, method: str, url: str, handler: Handler) -> None:
        self.routes[(method.upper(), url)] = handler

    def dispatch(self, call: dict) -> FakeResponse:
        self.calls.append(call)
        handler = self.routes.get((call["method"], call["url"]))
        if handler is None:
            raise AssertionError(f"unexpected request: {call['method']} {call['url']}")
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(call)
        return handler

    def client_class(self) -> type:
        stub = self

        class StubClient:
            def __init__(self, *args, **kwargs):
                stub.client_kwargs.append(kwargs)

            async def __aenter__(self):
                return self

            async def __aexit__(self, exc_type, exc, tb):
                return False

            async def get(self, url, params=None, headers=None, timeout=None):
                return stub.dispatch(
                    {"method": "GET", "url": url, "params": params, "headers": headers, "timeout": timeout}
                )

            async def post(self, url, json=None, headers=None, timeout=None):
                return stub.dispatch(
                    {"method": "POST", "url": url, "json": json, "headers": headers, "timeout": timeout}
                )

            async def request(self, method, url, params=None, headers=None, content=None, timeout=None):
                return stub.dispatch(
                    {
                        "method": method,
                        "url": url,
                        "params": params,
                        "headers": headers,
                        "content": content,
                        "timeout": timeout,
                    }
                )

        return StubClient


@pytest.fixture
def stub_http(monkeypatch) -> StubHttp:
    stub = StubHttp()
    monkeypatch.setattr("httpx.AsyncClient", stub.client_class())
    return stub


def make_items(platform: str, count: int) -> list[SearchResultItem]:
    return [
        SearchResultItem(
            id=f"{platform}-{i}",
            name=f"song {i}",
            artist="周杰伦",
            album="叶惠美",
            platform=platform,
        )
        for i in range(count)
    ]


class FakeTuneHubClient:
    """In-memory stand-in for TuneHubClient used by service and route tests."""

    def __init__(self, outcomes: dict[str, Any] | None = None, configured: bool = True):
        self.outcomes = outcomes or {}
        self.configured = configured
        self.search_calls: list[tuple] = []
        self.parse_payload: Any = None
        self.parse_error: Exception | None = None
        self.parse_calls: list[tuple] = []

    async def search(self, platform: str, keyword: str, page: int, limit: int) -> list[SearchResultItem]:
        self.search_calls.append((platform, keyword, page, limit))
        outcome = self.outcomes.get(platform, [])
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def parse(self, platform: str, song_id: str, quality: str) -> Any:
        self.parse_calls.append((platform, song_id, quality))
        if self.parse_error is not None:
            raise self.parse_error
        return self.parse_payload
