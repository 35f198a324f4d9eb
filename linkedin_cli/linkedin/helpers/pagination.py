"""
Multi-page collection of connections and people-search results.

PaginationController drives one flagship-web endpoint page by page, parsing
each payload with the fallback cascade, skipping and deduplicating entries
and stopping on stalls, empty pages or an iteration cap. Backends wrap it (or
the Voyager search clusters endpoint) behind one fetch() interface.
"""
import logging
import math
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set
from urllib.parse import urlencode

from linkedin_cli.core.debug import get_debug_logger
from linkedin_cli.core.exceptions import LinkedInError, SearchBackendUnavailableError
from linkedin_cli.schemas.entities import NormalizedConnection
from ..utils.rsc_parsers import (
    SEARCH_RESULT_MARKER,
    extract_page_binding,
    parse_connection_page,
    parse_connections_from_search_dash_clusters,
)

logger = logging.getLogger(__name__)

MAX_STALL_PAGES = 3
MAX_EMPTY_SEARCH_PAGES = 4
DEFAULT_PAGE_SIZE = 50
UNBOUNDED_MAX_ITERATIONS = 1000
MIN_MAX_ITERATIONS = 20
DEBUG_PREVIEW_CHARS = 2000
DEBUG_DUMP_DIR = Path(tempfile.gettempdir())
MINI_PROFILE_MARKER = '"miniProfile"'

SEARCH_DASH_CLUSTERS_URL = "https://www.linkedin.com/voyager/api/search/dash/clusters"
SEARCH_DASH_PAGE_SIZE = 10
FACETED_SEARCH_ORIGIN = "FACETED_SEARCH"

ProgressCallback = Callable[[Dict[str, Any]], None]
BodyBuilder = Callable[[int, int], Dict[str, Any]]
RequestBuilder = Callable[[int, int], Dict[str, str]]


@dataclass
class PageBinding:
    """Server-issued page binding key, carried from one page into the next request body."""
    value: Optional[str] = None


@dataclass
class PaginationResult:
    connections: List[NormalizedConnection] = field(default_factory=list)
    hit_max_iterations: bool = False


def max_iterations_for(target_count: Optional[int], estimated_page_size: int) -> int:
    if target_count is None:
        return UNBOUNDED_MAX_ITERATIONS
    pages = math.ceil(max(1, target_count) / estimated_page_size)
    return max(MIN_MAX_ITERATIONS, pages + 5)


def _preview(text: str) -> str:
    return f"{text[:DEBUG_PREVIEW_CHARS]}…" if len(text) > DEBUG_PREVIEW_CHARS else text


class _Collector:
    """Skip, dedupe and stall bookkeeping shared by every backend."""

    def __init__(self, target_count: Optional[int], skip: int):
        self.target = math.inf if target_count is None else target_count
        self.connections: List[NormalizedConnection] = []
        self.seen: Set[str] = set()
        self.remaining_skip = max(0, skip)
        self.stall_pages = 0

    @property
    def done(self) -> bool:
        return len(self.connections) >= self.target

    @property
    def remaining(self) -> float:
        return self.target - len(self.connections)

    def add_page(self, page: List[NormalizedConnection]) -> int:
        added = 0
        for connection in page:
            if self.remaining_skip > 0:
                self.remaining_skip -= 1
                continue
            key = connection.dedupe_key
            if not key or key in self.seen:
                continue
            self.seen.add(key)
            self.connections.append(connection)
            added += 1
            if self.done:
                break
        return added

    def stalled(self, added: int) -> bool:
        """Track pages that add nothing; True once the stall limit is reached."""
        if added > 0:
            self.stall_pages = 0
            return False
        if self.remaining_skip > 0:
            return False
        self.stall_pages += 1
        return self.stall_pages >= MAX_STALL_PAGES


class PaginationController:
    """
    Page through a flagship-web RSC endpoint.

    Args:
        client: LinkedInClient
        request_url: Default POST URL
        headers: Request headers (Referer is replaced per page when build_request gives one)
        build_body: (start, page_size) -> JSON body
        build_request: (start, page_size) -> {"url", "referer"} overrides
        page_step: Fixed cursor advance per page; defaults to the parsed count
        prefer_search_parser: Parse with the search grammars first and tolerate empty pages
        page_binding: Shared PageBinding updated from each payload
        stop_when_first_page_empty: Stop at once if the first page (or any page before a result) is empty
        debug_dump: Write raw payloads of early or empty pages to /tmp
    """

    def __init__(
        self,
        client,
        request_url: str,
        headers: Dict[str, str],
        build_body: BodyBuilder,
        *,
        build_request: Optional[RequestBuilder] = None,
        page_step: Optional[int] = None,
        prefer_search_parser: bool = False,
        page_binding: Optional[PageBinding] = None,
        stop_when_first_page_empty: bool = False,
        debug_dump: bool = False,
    ):
        self.client = client
        self.request_url = request_url
        self.headers = headers
        self.build_body = build_body
        self.build_request = build_request
        self.page_step = page_step if page_step and page_step > 0 else None
        self.prefer_search_parser = prefer_search_parser
        self.page_binding = page_binding
        self.stop_when_first_page_empty = stop_when_first_page_empty
        self.debug_dump = debug_dump

        settings = getattr(client, "settings", None)
        self.debug = get_debug_logger(
            "connections", bool(settings and settings.LI_DEBUG_CONNECTIONS)
        )

    @property
    def estimated_page_size(self) -> int:
        return self.page_step or DEFAULT_PAGE_SIZE

    async def run(
        self,
        target_count: Optional[int],
        start: int = 0,
        skip: int = 0,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PaginationResult:
        """
        Collect up to `target_count` unique entries (None means everything).

        Args:
            target_count: Number of entries wanted, or None for no limit
            start: Cursor of the first page
            skip: Entries to drop from the first pages (non page-aligned start)
            on_progress: Called after each page with fetched/page/targetCount
        """
        collector = _Collector(target_count, skip)
        max_iterations = max_iterations_for(target_count, self.estimated_page_size)
        current_start = start
        iterations = 0
        empty_pages = 0

        while not collector.done and iterations < max_iterations:
            remaining = collector.remaining
            page_size = DEFAULT_PAGE_SIZE if math.isinf(remaining) else max(1, min(DEFAULT_PAGE_SIZE, int(remaining)))
            page_index = iterations + 1

            payload = await self._fetch_page(current_start, page_size)
            page = parse_connection_page(payload, prefer_search_parser=self.prefer_search_parser)

            if not page:
                if self.stop_when_first_page_empty and not collector.connections:
                    self.debug.debug(f"parsed=0 before any result start={current_start}; stopping")
                    break
                if not self.prefer_search_parser:
                    break
                empty_pages += 1
                self.debug.debug(f"parsed=0 emptySearchPages={empty_pages} start={current_start}")
                if empty_pages >= MAX_EMPTY_SEARCH_PAGES:
                    break
                current_start += self.estimated_page_size
                iterations += 1
                continue
            empty_pages = 0
            self.debug.debug(f"parsed={len(page)} start={current_start}")

            added = collector.add_page(page)
            if collector.stalled(added):
                self.debug.debug(f"added=0 stallPages={collector.stall_pages} start={current_start}")
                break
            if added:
                self.debug.debug(f"added={added} total={len(collector.connections)} start={current_start}")

            if on_progress:
                on_progress({
                    "fetched": len(collector.connections),
                    "page": page_index,
                    "targetCount": target_count,
                })

            current_start += self.page_step or len(page)
            iterations += 1

        hit_max_iterations = iterations >= max_iterations and not collector.done
        if hit_max_iterations:
            logger.warning("[PAGINATION] Reached max page limit; results may be incomplete")
        return PaginationResult(
            connections=collector.connections,
            hit_max_iterations=hit_max_iterations,
        )

    async def _fetch_page(self, current_start: int, page_size: int) -> str:
        body = self.build_body(current_start, page_size)
        override = self.build_request(current_start, page_size) if self.build_request else {}
        url = override.get("url") or self.request_url
        headers = dict(self.headers)
        if override.get("referer"):
            headers["Referer"] = override["referer"]

        binding = self.page_binding.value if self.page_binding else None
        self.debug.debug(
            f"url={url} start={current_start} pageSize={page_size} binding={binding or 'none'}"
        )
        response = await self.client.request_absolute(url, method="POST", headers=headers, json=body)
        self.debug.debug(f"status={response.status_code} url={url}")

        payload = response.content.decode("utf-8", errors="replace")
        if self.page_binding is not None:
            detected = extract_page_binding(payload)
            if detected:
                self.page_binding.value = detected
                self.debug.debug(f"detectedBinding={detected} start={current_start}")

        self._debug_payload(payload, current_start)
        return payload

    def _debug_payload(self, payload: str, current_start: int) -> None:
        if not self.debug.isEnabledFor(logging.DEBUG):
            return
        people_markers = payload.count(SEARCH_RESULT_MARKER)
        mini_profiles = payload.count(MINI_PROFILE_MARKER)
        if self.debug_dump and (people_markers == 0 or current_start <= 10):
            label = "empty" if people_markers == 0 else "page"
            dump_path = DEBUG_DUMP_DIR / f"li-connections-{label}-{current_start}.txt"
            try:
                dump_path.write_text(payload, encoding="utf-8")
            except OSError as e:
                self.debug.debug(f"dump failed path={dump_path} error={e}")
        self.debug.debug(
            f"payload_length={len(payload)} peopleMarkers={people_markers} "
            f"miniProfiles={mini_profiles} "
            f"commercialLimit={'commercial use limit' in payload} "
            f"authwall={'authwall' in payload} preview={_preview(payload)}"
        )


class ConnectionsBackend:
    """Interface shared by the connection-listing backends."""

    name = "base"

    async def fetch(
        self,
        start: int,
        count: Optional[int],
        skip: int = 0,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PaginationResult:
        raise NotImplementedError


class FlagshipBackend(ConnectionsBackend):
    name = "flagship"

    def __init__(self, controller: PaginationController):
        self.controller = controller

    async def fetch(self, start, count, skip=0, on_progress=None) -> PaginationResult:
        return await self.controller.run(count, start=start, skip=skip, on_progress=on_progress)


def build_search_dash_clusters_url(
    connection_of_id: str,
    start: int,
    count: int,
    network_filters: Optional[List[str]] = None,
) -> str:
    parameters = [
        "(key:resultType,value:List(PEOPLE))",
        f"(key:connectionOf,value:List({connection_of_id}))",
    ]
    if network_filters:
        parameters.append(f"(key:network,value:List({','.join(network_filters)}))")
    query = (
        f"(origin:{FACETED_SEARCH_ORIGIN},queryParameters:List({','.join(parameters)}),"
        f"includeFiltersInResponse:false)"
    )
    params = urlencode({"q": "all", "start": str(start), "count": str(count), "query": query})
    return f"{SEARCH_DASH_CLUSTERS_URL}?{params}"


class SearchDashClustersBackend(ConnectionsBackend):
    """
    Experimental "connections of" listing through Voyager's search clusters.

    Raises SearchBackendUnavailableError when the first page parses to nothing,
    which is how an endpoint shape change shows up.
    """

    name = "search-dash-clusters"

    def __init__(self, client, connection_of_id: str, network_filters: Optional[List[str]] = None):
        self.client = client
        self.connection_of_id = connection_of_id
        self.network_filters = network_filters
        settings = getattr(client, "settings", None)
        self.debug = get_debug_logger(
            "connections", bool(settings and settings.LI_DEBUG_CONNECTIONS)
        )

    async def fetch(self, start, count, skip=0, on_progress=None) -> PaginationResult:
        collector = _Collector(count, skip)
        max_iterations = max_iterations_for(count, SEARCH_DASH_PAGE_SIZE)
        current_start = start
        iterations = 0

        while not collector.done and iterations < max_iterations:
            remaining = collector.remaining
            page_count = SEARCH_DASH_PAGE_SIZE if math.isinf(remaining) else min(SEARCH_DASH_PAGE_SIZE, max(1, int(remaining)))
            url = build_search_dash_clusters_url(
                self.connection_of_id, current_start, page_count, self.network_filters
            )
            self.debug.debug(f"[experimental] url={url} start={current_start} pageSize={SEARCH_DASH_PAGE_SIZE}")

            response = await self.client.request_absolute(url)
            try:
                data = response.json()
            except ValueError:
                data = {}
            page = parse_connections_from_search_dash_clusters(data)
            self.debug.debug(f"[experimental] parsed={len(page)} start={current_start}")

            if not page:
                if iterations == 0:
                    raise SearchBackendUnavailableError("no parseable search results in first page")
                break

            added = collector.add_page(page)
            if collector.stalled(added):
                break

            if on_progress:
                on_progress({
                    "fetched": len(collector.connections),
                    "page": iterations + 1,
                    "targetCount": count,
                })

            if len(page) < SEARCH_DASH_PAGE_SIZE:
                break
            current_start += SEARCH_DASH_PAGE_SIZE
            iterations += 1

        return PaginationResult(
            connections=collector.connections,
            hit_max_iterations=iterations >= max_iterations and not collector.done,
        )


class FallbackBackend(ConnectionsBackend):
    """Use `primary`; on any LinkedInError warn and retry the whole fetch on `fallback`."""

    def __init__(self, primary: ConnectionsBackend, fallback: ConnectionsBackend):
        self.primary = primary
        self.fallback = fallback
        self.name = f"{primary.name}->{fallback.name}"

    async def fetch(self, start, count, skip=0, on_progress=None) -> PaginationResult:
        try:
            return await self.primary.fetch(start, count, skip=skip, on_progress=on_progress)
        except LinkedInError as e:
            logger.warning(
                f"[PAGINATION] {self.primary.name} backend failed ({e.message}); "
                f"falling back to {self.fallback.name}"
            )
        return await self.fallback.fetch(start, count, skip=skip, on_progress=on_progress)
