"""Tests for the paced, retrying LinkedIn HTTP client."""

import json

import httpx
import pytest

from linkedin_cli.core.exceptions import (
    AuthError,
    ForbiddenError,
    InvalidRequestError,
    LinkedInApiError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    StaleQueryIdError,
    UpstreamBlockedError,
)
from linkedin_cli.core.linkedin_rate_limit import FAST_DELAY_MAX_MS, FAST_DELAY_MIN_MS
from linkedin_cli.linkedin.client import LinkedInClient

ME_URL = "https://www.linkedin.com/voyager/api/me"


def sequence_handler(responses, seen):
    """Answer with the given responses in order, recording requests."""
    remaining = list(responses)

    def handler(request):
        seen.append(request)
        return remaining.pop(0)

    return handler


class TestRequest:
    async def test_sends_session_headers(self, make_client):
        seen = []
        client = make_client(sequence_handler([httpx.Response(200, json={"ok": True})], seen))

        response = await client.request("/me")

        assert response.json() == {"ok": True}
        request = seen[0]
        assert str(request.url) == ME_URL
        assert request.headers["cookie"] == 'li_at=AQEDAtestcookie; JSESSIONID="ajax:1234567890"'
        assert request.headers["csrf-token"] == "ajax:1234567890"
        assert request.headers["x-restli-protocol-version"] == "2.0.0"
        assert request.headers["accept"] == "application/vnd.linkedin.normalized+json+2.1"

    async def test_header_overrides_are_merged(self, make_client):
        seen = []
        client = make_client(sequence_handler([httpx.Response(200, json={})], seen))

        await client.request("/me", headers={"Accept": "application/graphql"})

        assert seen[0].headers["accept"] == "application/graphql"
        assert seen[0].headers["csrf-token"] == "ajax:1234567890"

    async def test_request_absolute_posts_json(self, make_client):
        seen = []
        client = make_client(sequence_handler([httpx.Response(200, text="ok")], seen))

        await client.request_absolute("https://www.linkedin.com/flagship-web/x", method="POST", json={"a": 1})

        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"a": 1}


class TestRateLimitRetry:
    async def test_retries_429_with_exponential_backoff(self, make_client, sleep_recorder):
        seen = []
        client = make_client(sequence_handler([
            httpx.Response(429),
            httpx.Response(429),
            httpx.Response(200, json={"ok": True}),
        ], seen))

        response = await client.request("/me")

        assert response.status_code == 200
        assert len(seen) == 3
        assert sleep_recorder.calls == [5.0, 10.0]

    async def test_gives_up_after_five_retries(self, make_client, sleep_recorder):
        seen = []
        client = make_client(sequence_handler([httpx.Response(429) for _ in range(6)], seen))

        with pytest.raises(RateLimitedError) as exc_info:
            await client.request("/me")

        assert exc_info.value.status == 429
        assert str(exc_info.value) == "Rate limited. Maximum retries exceeded."
        assert len(seen) == 6
        assert sleep_recorder.calls == [5.0, 10.0, 20.0, 40.0, 80.0]

    async def test_other_statuses_are_not_retried(self, make_client, sleep_recorder):
        seen = []
        client = make_client(sequence_handler([httpx.Response(500)], seen))

        with pytest.raises(LinkedInApiError):
            await client.request("/me")

        assert len(seen) == 1
        assert sleep_recorder.calls == []

    async def test_adaptive_client_slows_down_after_429(self, make_client):
        seen = []
        client = make_client(
            sequence_handler([httpx.Response(429), httpx.Response(200, json={})], seen),
            delay_min_ms=0,
            delay_max_ms=0,
            adaptive_pacing=True,
        )

        await client.request("/me")

        assert (client.pacer.min_delay_ms, client.pacer.max_delay_ms) == (2000, 5000)


class TestStatusMapping:
    @pytest.mark.parametrize("status,body,error_type,message", [
        (401, None, AuthError, "Session expired. Log into linkedin.com and retry."),
        (403, None, ForbiddenError, "Not authorized for this action. Check your permissions."),
        (404, {"message": "Profile gone"}, NotFoundError, "Resource not found: Profile gone."),
        (404, None, NotFoundError, "Resource not found."),
        (400, {"error": "bad field"}, InvalidRequestError, "Invalid request: bad field."),
        (999, None, UpstreamBlockedError,
         "LinkedIn is blocking requests. Try again later or rotate your session."),
        (500, None, LinkedInApiError, "Request failed with status 500."),
    ])
    async def test_maps_status_to_error(self, make_client, status, body, error_type, message):
        seen = []
        response = httpx.Response(status, json=body) if body else httpx.Response(status, text="")
        client = make_client(sequence_handler([response], seen))

        with pytest.raises(error_type) as exc_info:
            await client.request("/identity/profiles/someone/profileView")

        assert type(exc_info.value) is error_type
        assert exc_info.value.status == status
        assert str(exc_info.value) == message

    @pytest.mark.parametrize("status", [400, 403, 404])
    async def test_graphql_failures_look_like_stale_query_ids(self, make_client, status):
        seen = []
        client = make_client(sequence_handler([httpx.Response(status)], seen))

        with pytest.raises(StaleQueryIdError) as exc_info:
            await client.request("/voyagerMessagingGraphQL/graphql?queryId=messengerConversations.abc")

        assert exc_info.value.status == status

    async def test_graphql_500_is_not_stale(self, make_client):
        seen = []
        client = make_client(sequence_handler([httpx.Response(500)], seen))

        with pytest.raises(LinkedInApiError) as exc_info:
            await client.request("/graphql?queryId=x")

        assert not isinstance(exc_info.value, StaleQueryIdError)

    async def test_transport_failure_is_network_error(self, make_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(NetworkError) as exc_info:
            await client.request("/me")

        assert exc_info.value.status == 0
        assert str(exc_info.value) == "Network error: connection refused"


class TestRedirects:
    async def test_redirect_to_same_url_is_session_invalidation(self, make_client):
        seen = []
        client = make_client(sequence_handler([httpx.Response(302, headers={"location": ME_URL})], seen))

        with pytest.raises(AuthError) as exc_info:
            await client.request("/me")

        assert str(exc_info.value) == "Session expired. LinkedIn redirected the request (session invalidated)."
        assert len(seen) == 1

    @pytest.mark.parametrize("set_cookie", [
        'li_at=delete me; Path=/; Domain=.linkedin.com',
        'li_at=""; Path=/',
        "li_at=abc; Max-Age=0",
        "li_at=abc; Expires=Thu, 01 Jan 1970 00:00:00 GMT",
    ])
    async def test_cookie_deletion_is_session_invalidation(self, make_client, set_cookie):
        seen = []
        client = make_client(sequence_handler([
            httpx.Response(302, headers=[("location", "https://www.linkedin.com/login"), ("set-cookie", set_cookie)]),
        ], seen))

        with pytest.raises(AuthError):
            await client.request("/me")

    async def test_other_redirect_returned_when_allowed(self, make_client):
        seen = []
        client = make_client(sequence_handler([
            httpx.Response(302, headers={"location": "https://www.linkedin.com/in/someone-else/"}),
        ], seen))

        response = await client.request_absolute(
            "https://www.linkedin.com/in/someone/", allow_redirect_response=True
        )

        assert response.status_code == 302
        assert len(seen) == 1

    async def test_other_redirect_raises_by_default(self, make_client):
        seen = []
        client = make_client(sequence_handler([
            httpx.Response(301, headers={"location": "https://www.linkedin.com/elsewhere"}),
        ], seen))

        with pytest.raises(LinkedInApiError) as exc_info:
            await client.request("/me")

        assert exc_info.value.status == 301
        assert not isinstance(exc_info.value, AuthError)


class TestSessionAndWebFetch:
    async def test_validate_session(self, make_client):
        ok = make_client(lambda request: httpx.Response(200, json={}))
        expired = make_client(lambda request: httpx.Response(401))

        assert await ok.validate_session() is True
        assert await expired.validate_session() is False

    async def test_fetch_web_text_follows_redirects_without_raising(self, make_client):
        def handler(request):
            if request.url.path == "/feed":
                return httpx.Response(302, headers={"location": "https://www.linkedin.com/feed/"})
            if request.url.path == "/feed/":
                return httpx.Response(200, text="<!DOCTYPE html><html></html>",
                                      headers={"content-type": "text/html; charset=utf-8"})
            return httpx.Response(503, text="down")

        client = make_client(handler)

        page = await client.fetch_web_text("https://www.linkedin.com/feed")
        missing = await client.fetch_web_text("https://static.licdn.com/aero-v1/x.js", accept="*/*")

        assert page.ok
        assert page.url == "https://www.linkedin.com/feed/"
        assert page.content_type.startswith("text/html")
        assert page.text.startswith("<!DOCTYPE html>")
        assert missing.status == 503
        assert not missing.ok

    def test_fast_client_uses_adaptive_fast_range(self, credentials, settings):
        client = LinkedInClient.fast(credentials, settings)

        assert client.pacer.min_delay_ms == FAST_DELAY_MIN_MS
        assert client.pacer.max_delay_ms == FAST_DELAY_MAX_MS
        assert client.pacer.adaptive is True

    def test_delay_range_comes_from_settings(self, credentials, settings):
        client = LinkedInClient(credentials, settings.model_copy(update={
            "LI_REQUEST_DELAY_MIN_MS": 100,
            "LI_REQUEST_DELAY_MAX_MS": 300,
        }))

        assert (client.pacer.min_delay_ms, client.pacer.max_delay_ms) == (100, 300)
