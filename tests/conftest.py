"""Shared fixtures: isolated settings, credentials and a client on a mock transport."""

import json
from pathlib import Path

import httpx
import pytest

from linkedin_cli.core.config import Settings
from linkedin_cli.linkedin.auth import resolve_credentials
from linkedin_cli.linkedin.client import LinkedInClient

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


def load_json_fixture(name: str):
    return json.loads(load_fixture(name))


class SleepRecorder:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with pacing disabled and every cache under tmp_path."""
    return Settings(
        _env_file=None,
        LINKEDIN_LI_AT=None,
        LINKEDIN_JSESSIONID=None,
        LI_REQUEST_DELAY_MIN_MS=0,
        LI_REQUEST_DELAY_MAX_MS=0,
        LINKEDIN_QUERY_ID_CACHE_PATH=str(tmp_path / "li" / "query-ids.json"),
        LINKEDIN_MESSAGING_HAR=str(tmp_path / "capture.har"),
        LI_RECIPIENT_CACHE_PATH=str(tmp_path / "recipient-cache.json"),
        DEBUG_RESPONSES_DIR=str(tmp_path / "debug_responses"),
    )


@pytest.fixture
def credentials(settings):
    return resolve_credentials(li_at="AQEDAtestcookie", jsession_id='"ajax:1234567890"', settings=settings)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_client(credentials, settings, sleep_recorder):
    """Factory: LinkedInClient whose requests are answered by `handler(request)`."""

    def factory(handler, **kwargs) -> LinkedInClient:
        return LinkedInClient(
            credentials,
            settings,
            transport=httpx.MockTransport(handler),
            sleep=sleep_recorder,
            **kwargs,
        )

    return factory


class RequestLog:
    """Handler that answers from a route table and records every request."""

    def __init__(self, routes=None, default=None):
        self.routes = list(routes or [])
        self.default = default
        self.requests = []

    def add(self, predicate, response):
        self.routes.append((predicate, response))
        return self

    @staticmethod
    def _answer(response, request: httpx.Request) -> httpx.Response:
        if callable(response):
            return response(request)
        # Fresh copy so a route can be hit more than once
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for predicate, response in self.routes:
            if predicate(request):
                return self._answer(response, request)
        if self.default is not None:
            return self._answer(self.default, request)
        return httpx.Response(404, json={"message": f"no route for {request.url}"})

    def urls(self):
        return [str(request.url) for request in self.requests]


@pytest.fixture
def request_log() -> RequestLog:
    return RequestLog()
