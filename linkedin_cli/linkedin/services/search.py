"""
LinkedIn people search service.

Uses the flagship people-search screen (the same request the web app sends
when paging through search results) with stream/HTML parser fallbacks.
"""
import logging
from typing import Any, Dict, Optional

from linkedin_cli.schemas.entities import Paging, SearchResult
from ..headers import build_flagship_headers
from ..helpers.pagination import PageBinding, PaginationController, ProgressCallback
from ..helpers.sdui import (
    FLAGSHIP_SEARCH_URL,
    SEARCH_RESULTS_BASE_URL,
    build_people_search_body,
    build_search_query,
)
from .base import LinkedInServiceBase

logger = logging.getLogger(__name__)

FLAGSHIP_SEARCH_PAGE_INSTANCE = "urn:li:page:d_flagship3_search_srp_people;4GLXsZt9SMWi+zWnoT3o9w=="
SEARCH_ORIGIN = "GLOBAL_SEARCH_HEADER"
DEFAULT_COUNT = 20
MAX_COUNT = 50
SEARCH_PAGE_SIZE = 10


def _search_params(query: str) -> Dict[str, str]:
    return {"origin": SEARCH_ORIGIN, "keywords": query, "spellCorrectionEnabled": "true"}


def build_search_request_url(query: str, page: int = 1) -> str:
    return f"{FLAGSHIP_SEARCH_URL}?{build_search_query(_search_params(query), page)}"


def build_search_referer(query: str, page: int = 1) -> str:
    return f"{SEARCH_RESULTS_BASE_URL}?{build_search_query(_search_params(query), page)}"


def build_search_body(start_index: int, query: str, page_binding: Optional[str] = None) -> Dict[str, Any]:
    return build_people_search_body(
        start_index,
        SEARCH_PAGE_SIZE,
        origin=SEARCH_ORIGIN,
        query_params=_search_params(query),
        filter_entries={"keywords": [{"filterKey": "keywords", "filterItemSingle": query}]},
        page_binding=page_binding,
    )


class LinkedInSearchService(LinkedInServiceBase):
    """Service for people search."""

    async def search_people(
        self,
        query: str,
        count: int = DEFAULT_COUNT,
        fetch_all: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SearchResult:
        """
        Search people by keywords.

        Args:
            query: Keywords
            count: Results wanted, capped at 50
            fetch_all: Ask for the maximum (50)
            on_progress: Per-page progress callback

        Raises:
            ValueError: If the query is empty
            LinkedInApiError: If a request fails
        """
        query = (query or "").strip()
        if not query:
            raise ValueError("Invalid query value: search query text is required.")

        limit = MAX_COUNT if fetch_all else min(MAX_COUNT, max(0, int(count)))
        page_binding = PageBinding()
        headers = build_flagship_headers(
            self.client.credentials,
            referer=build_search_referer(query, 1),
            page_instance=FLAGSHIP_SEARCH_PAGE_INSTANCE,
            rsc_stream=True,
            base_headers=self.client.headers,
        )

        def build_request(start_index: int, _page_size: int) -> Dict[str, str]:
            page = start_index // SEARCH_PAGE_SIZE + 1
            return {
                "url": build_search_request_url(query, page),
                "referer": build_search_referer(query, page),
            }

        controller = PaginationController(
            self.client,
            build_search_request_url(query, 1),
            headers,
            lambda start_index, _page_size: build_search_body(start_index, query, page_binding.value),
            build_request=build_request,
            page_step=SEARCH_PAGE_SIZE,
            prefer_search_parser=True,
            page_binding=page_binding,
            stop_when_first_page_empty=True,
            debug_dump=self.settings.LI_DEBUG_CONNECTIONS_DUMP,
        )

        logger.info(f"[SEARCH] Searching people for {query!r} limit={limit}")
        result = await controller.run(limit, on_progress=on_progress)
        logger.info(f"[SEARCH] Found {len(result.connections)} people")

        return SearchResult(
            query=query,
            results=result.connections,
            paging=Paging(start=0, count=len(result.connections), total=None),
            hit_max_iterations=result.hit_max_iterations,
        )
