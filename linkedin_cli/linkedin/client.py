"""
Rate-limited HTTP client for LinkedIn.

All Voyager and flagship-web traffic goes through LinkedInClient, which adds
the session headers, paces consecutive requests, retries 429 responses with
exponential backoff and maps every failure onto the LinkedInError taxonomy.
"""
import asyncio
import logging
from typing import Any, Dict, NamedTuple, Optional
from urllib.parse import urljoin, urlsplit

import httpx

from linkedin_cli.core.config import Settings
from linkedin_cli.core.exceptions import (
    AuthError,
    ForbiddenError,
    InvalidRequestError,
    LinkedInApiError,
    LinkedInError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    StaleQueryIdError,
    UpstreamBlockedError,
)
from linkedin_cli.core.linkedin_rate_limit import (
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MIN_DELAY_MS,
    FAST_DELAY_MAX_MS,
    FAST_DELAY_MIN_MS,
    MAX_RETRIES,
    RequestPacer,
    SleepFunc,
    backoff_seconds,
)
from .auth import LinkedInCredentials
from .headers import build_headers, build_web_headers

logger = logging.getLogger(__name__)

VOYAGER_BASE_URL = "https://www.linkedin.com/voyager/api"

SESSION_EXPIRED_MESSAGE = "Session expired. Log into linkedin.com and retry."
SESSION_INVALIDATED_MESSAGE = "Session expired. LinkedIn redirected the request (session invalidated)."


class WebTextResponse(NamedTuple):
    """Result of a navigation-style fetch (HTML page or static bundle)."""
    status: int
    content_type: str
    text: str
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _cookie_deletes_session(set_cookie: str) -> bool:
    """True if a Set-Cookie header clears li_at."""
    parts = [part.strip() for part in set_cookie.split(";")]
    name, _, value = parts[0].partition("=")
    if name.strip() != "li_at":
        return False
    value = value.strip().strip('"')
    if not value or value.lower() == "delete me":
        return True
    for attribute in parts[1:]:
        key, _, attr_value = attribute.partition("=")
        key = key.strip().lower()
        if key == "max-age" and attr_value.strip() in ("0", "-1"):
            return True
        if key == "expires" and "1970" in attr_value:
            return True
    return False


def _extract_error_detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


class LinkedInClient:
    """
    Authenticated, paced HTTP client.

    Redirects are never followed for API traffic: LinkedIn answers an
    invalidated session with a 302 to the same URL (or a Set-Cookie that clears
    li_at) and following it would loop or land on the login page.
    """

    BASE_URL = VOYAGER_BASE_URL

    def __init__(
        self,
        credentials: LinkedInCredentials,
        settings: Optional[Settings] = None,
        *,
        delay_min_ms: Optional[int] = None,
        delay_max_ms: Optional[int] = None,
        adaptive_pacing: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.credentials = credentials
        self.settings = settings or Settings()

        min_ms = delay_min_ms if delay_min_ms is not None else self.settings.LI_REQUEST_DELAY_MIN_MS
        max_ms = delay_max_ms if delay_max_ms is not None else self.settings.LI_REQUEST_DELAY_MAX_MS
        if min_ms is None:
            min_ms = DEFAULT_MIN_DELAY_MS
        if max_ms is None:
            max_ms = max(DEFAULT_MAX_DELAY_MS, min_ms)

        self.pacer = RequestPacer(min_ms, max_ms, adaptive=adaptive_pacing, sleep=sleep)
        self.timeout = self.settings.LI_REQUEST_TIMEOUT_SECONDS
        self.headers = build_headers(credentials)
        self._transport = transport
        self._sleep = sleep

        logger.debug(
            f"[CLIENT] Initialized (credentials from {credentials.source}, "
            f"pacing {min_ms}-{max_ms}ms, adaptive={adaptive_pacing})"
        )

    @classmethod
    def fast(
        cls,
        credentials: LinkedInCredentials,
        settings: Optional[Settings] = None,
        **kwargs: Any,
    ) -> "LinkedInClient":
        """Client with short delays that slows down after the first 429."""
        return cls(
            credentials,
            settings,
            delay_min_ms=FAST_DELAY_MIN_MS,
            delay_max_ms=FAST_DELAY_MAX_MS,
            adaptive_pacing=True,
            **kwargs,
        )

    async def request(
        self,
        path: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        allow_redirect_response: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Request a path relative to the Voyager API base URL.

        Args:
            path: Path starting with "/", query string included
            method: HTTP method
            headers: Header overrides merged over the session headers
            allow_redirect_response: Return non-invalidation 3xx responses instead of raising
            **kwargs: Passed to httpx (json, content, params, ...)

        Raises:
            LinkedInApiError: Any non-success outcome, see the taxonomy in core.exceptions
        """
        return await self._request_with_retry(
            f"{self.BASE_URL}{path}", method, headers, allow_redirect_response, **kwargs
        )

    async def request_absolute(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        allow_redirect_response: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        """Same as request() for a fully qualified URL on any host."""
        return await self._request_with_retry(url, method, headers, allow_redirect_response, **kwargs)

    async def validate_session(self) -> bool:
        """True iff GET /me succeeds with the current cookies."""
        try:
            await self.request("/me")
            return True
        except LinkedInError as e:
            logger.info(f"[CLIENT] Session validation failed: {e}")
            return False

    async def fetch_web_text(self, url: str, accept: str = "text/html") -> WebTextResponse:
        """
        Fetch a page or static asset the way a browser navigation would.

        Redirects are followed and pacing is bypassed. Non-2xx statuses are
        returned to the caller rather than raised.

        Raises:
            NetworkError: On transport failure
        """
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            try:
                response = await client.get(url, headers=build_web_headers(self.credentials, accept))
            except httpx.HTTPError as e:
                raise NetworkError(f"Network error: {str(e) or type(e).__name__}") from e
        return WebTextResponse(
            status=response.status_code,
            content_type=response.headers.get("content-type", ""),
            text=response.text,
            url=str(response.url),
        )

    async def _send(
        self,
        url: str,
        method: str,
        headers: Dict[str, str],
        **kwargs: Any,
    ) -> httpx.Response:
        await self.pacer.wait("CLIENT")
        logger.debug(f"[CLIENT] {method} {url[:120]}")
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=False,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(method=method, url=url, headers=headers, **kwargs)
            except httpx.HTTPError as e:
                logger.error(f"[CLIENT] Request failed before a response: {e!r}")
                raise NetworkError(f"Network error: {str(e) or type(e).__name__}") from e
        logger.debug(f"[CLIENT] Response status: {response.status_code}")
        return response

    async def _request_with_retry(
        self,
        url: str,
        method: str,
        headers: Optional[Dict[str, str]],
        allow_redirect_response: bool,
        **kwargs: Any,
    ) -> httpx.Response:
        request_headers = {**self.headers, **(headers or {})}

        for attempt in range(MAX_RETRIES + 1):
            response = await self._send(url, method, request_headers, **kwargs)
            status = response.status_code

            if status == 429:
                self.pacer.on_rate_limited()
                if attempt < MAX_RETRIES:
                    delay = backoff_seconds(attempt)
                    logger.warning(
                        f"[CLIENT] Rate limited (429), retry {attempt + 1}/{MAX_RETRIES} in {delay:.0f}s"
                    )
                    await self._sleep(delay)
                    continue
                raise RateLimitedError(429, "Rate limited. Maximum retries exceeded.")

            if 300 <= status < 400:
                if self._is_session_invalidation(url, response):
                    logger.error(f"[CLIENT] Session invalidated by redirect from {url[:100]}")
                    raise AuthError(status, SESSION_INVALIDATED_MESSAGE)
                if allow_redirect_response:
                    return response
                raise self._error_for(response, url)

            if response.is_success:
                return response

            raise self._error_for(response, url)

        # The loop always returns or raises; kept for type checkers.
        raise RateLimitedError(429, "Rate limited. Maximum retries exceeded.")

    @staticmethod
    def _is_session_invalidation(url: str, response: httpx.Response) -> bool:
        if response.status_code != 302:
            return False
        location = response.headers.get("location")
        if location and urljoin(url, location) == url:
            return True
        return any(_cookie_deletes_session(c) for c in response.headers.get_list("set-cookie"))

    @staticmethod
    def _error_for(response: httpx.Response, url: str) -> LinkedInApiError:
        status = response.status_code
        detail = _extract_error_detail(response)
        suffix = f": {detail}" if detail else ""
        logger.error(f"[CLIENT] LinkedIn API HTTP error: {status} - {response.text[:200]}")

        if status in (400, 403, 404) and "/graphql" in urlsplit(url).path:
            return StaleQueryIdError(
                status,
                f"GraphQL request failed with status {status}{suffix}. The query ID may be stale.",
            )
        if status == 401:
            return AuthError(status, SESSION_EXPIRED_MESSAGE)
        if status == 403:
            return ForbiddenError(status, "Not authorized for this action. Check your permissions.")
        if status == 404:
            return NotFoundError(status, f"Resource not found{suffix}.")
        if status == 400:
            return InvalidRequestError(status, f"Invalid request{suffix}.")
        if status == 999:
            return UpstreamBlockedError(
                status, "LinkedIn is blocking requests. Try again later or rotate your session."
            )
        return LinkedInApiError(status, f"Request failed with status {status}{suffix}.")
