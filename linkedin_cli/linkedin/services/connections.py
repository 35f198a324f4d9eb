"""
LinkedIn connections listing service.

Lists the caller's own connections through the flagship-web connections
pager, or another member's connections ("connections of") through the
people-search screen filtered by connectionOf.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from linkedin_cli.schemas.entities import ConnectionsPage, Paging
from ..headers import build_flagship_headers
from ..helpers.pagination import (
    ConnectionsBackend,
    FallbackBackend,
    FlagshipBackend,
    PageBinding,
    PaginationController,
    ProgressCallback,
    SearchDashClustersBackend,
)
from ..helpers.sdui import (
    FLAGSHIP_SEARCH_URL,
    SEARCH_RESULTS_BASE_URL,
    build_connections_pagination_body,
    build_people_search_body,
    build_search_query,
)
from ..utils.recipient import resolve_recipient
from ..utils.url_parser import extract_id_from_urn, parse_linkedin_url
from .base import LinkedInServiceBase

logger = logging.getLogger(__name__)

FLAGSHIP_CONNECTIONS_URL = (
    "https://www.linkedin.com/flagship-web/rsc-action/actions/pagination"
    "?sduiid=com.linkedin.sdui.pagers.mynetwork.connectionsList"
)
FLAGSHIP_CONNECTIONS_REFERER = "https://www.linkedin.com/mynetwork/invite-connect/connections/"
FLAGSHIP_PAGE_INSTANCE = "urn:li:page:d_flagship3_people_connections;fkBHD5OCSzq7lUUo2+5Oiw=="
FLAGSHIP_SEARCH_PAGE_INSTANCE = "urn:li:page:d_flagship3_search_srp_people;4GLXsZt9SMWi+zWnoT3o9w=="

CONNECTIONS_OF_PAGE_SIZE = 10
CONNECTIONS_OF_ORIGIN = "FACETED_SEARCH"
PROFILE_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
PROFILE_ID_PATTERN = re.compile(r"^ACo[A-Za-z0-9_-]+$")

NETWORK_FILTERS = {"1st": "F", "2nd": "S", "3rd": "O"}
DEFAULT_NETWORK_DEGREES = ("1st", "2nd", "3rd")

INVALID_OF_MESSAGE = (
    "Invalid connections-of value: {identifier}. "
    "Provide a profile username, profile URL, or profile URN."
)


async def normalize_connection_of_identifier(client, identifier: str) -> str:
    """
    Turn a username, profile URL or profile URN into the profile id used by
    the connectionOf search filter (`ACo...`).

    Raises:
        ValueError: If the input does not denote a profile or cannot be resolved
    """
    parsed = parse_linkedin_url(identifier)
    if parsed is None or parsed.type != "profile":
        raise ValueError(INVALID_OF_MESSAGE.format(identifier=identifier))

    trimmed = parsed.identifier.strip()
    is_urn = trimmed.startswith("urn:li:")
    value = extract_id_from_urn(trimmed).strip() if is_urn else trimmed
    if not value or not PROFILE_IDENTIFIER_PATTERN.match(value):
        raise ValueError(INVALID_OF_MESSAGE.format(identifier=identifier))

    if is_urn or PROFILE_ID_PATTERN.match(value):
        return value

    resolved = await resolve_recipient(client, identifier)
    resolved_id = extract_id_from_urn(resolved.urn).strip()
    if not resolved_id or not PROFILE_IDENTIFIER_PATTERN.match(resolved_id):
        raise ValueError(
            f"Could not resolve connections-of value: {identifier}. "
            f"Provide a profile username, profile URL, or profile URN."
        )
    return resolved_id


def network_filters_for(degrees: Optional[Sequence[str]]) -> List[str]:
    """
    Raises:
        ValueError: For a degree other than 1st, 2nd or 3rd
    """
    selected = list(degrees) if degrees else list(DEFAULT_NETWORK_DEGREES)
    unknown = [degree for degree in selected if degree not in NETWORK_FILTERS]
    if unknown:
        raise ValueError(f"Invalid network degree: {', '.join(unknown)}. Use 1st, 2nd or 3rd.")
    return [NETWORK_FILTERS[degree] for degree in selected]


def _connections_of_params(connection_of_id: str, network_filters: Optional[List[str]]) -> Dict[str, str]:
    params = {
        "origin": CONNECTIONS_OF_ORIGIN,
        "connectionOf": f'"{connection_of_id}"',
        "spellCorrectionEnabled": "true",
    }
    if network_filters:
        params["network"] = "[" + ",".join(f'"{f}"' for f in network_filters) + "]"
    return params


class LinkedInConnectionService(LinkedInServiceBase):
    """Service for listing connections."""

    def _build_connections_url(self, start_index: int, connection_of_id: Optional[str] = None,
                               network_filters: Optional[List[str]] = None) -> str:
        """
        URL for one page; the pager URL is fixed, the search URL carries the page number.
        """
        if not connection_of_id:
            return FLAGSHIP_CONNECTIONS_URL
        page = start_index // CONNECTIONS_OF_PAGE_SIZE + 1
        query = build_search_query(_connections_of_params(connection_of_id, network_filters), page)
        return f"{FLAGSHIP_SEARCH_URL}?{query}"

    def _build_connections_referer(self, start_index: int, connection_of_id: Optional[str] = None,
                                   network_filters: Optional[List[str]] = None) -> str:
        if not connection_of_id:
            return FLAGSHIP_CONNECTIONS_REFERER
        page = start_index // CONNECTIONS_OF_PAGE_SIZE + 1
        query = build_search_query(_connections_of_params(connection_of_id, network_filters), page)
        return f"{SEARCH_RESULTS_BASE_URL}?{query}"

    def _build_connections_of_payload(
        self,
        start_index: int,
        connection_of_id: str,
        network_filters: Optional[List[str]],
        page_binding: PageBinding,
    ) -> Dict[str, Any]:
        return build_people_search_body(
            start_index,
            CONNECTIONS_OF_PAGE_SIZE,
            origin=CONNECTIONS_OF_ORIGIN,
            query_params=_connections_of_params(connection_of_id, network_filters),
            filter_entries={
                "connectionOf": [{"filterKey": "connectionOf", "filterItemSingle": connection_of_id}],
            },
            network_filters=network_filters,
            page_binding=page_binding.value,
        )

    def _flagship_backend(
        self,
        connection_of_id: Optional[str],
        network_filters: Optional[List[str]],
    ) -> FlagshipBackend:
        credentials = self.client.credentials
        if not connection_of_id:
            controller = PaginationController(
                self.client,
                FLAGSHIP_CONNECTIONS_URL,
                build_flagship_headers(
                    credentials,
                    referer=FLAGSHIP_CONNECTIONS_REFERER,
                    page_instance=FLAGSHIP_PAGE_INSTANCE,
                    base_headers=self.client.headers,
                ),
                build_connections_pagination_body,
                debug_dump=self.settings.LI_DEBUG_CONNECTIONS_DUMP,
            )
            return FlagshipBackend(controller)

        page_binding = PageBinding()
        controller = PaginationController(
            self.client,
            self._build_connections_url(0, connection_of_id, network_filters),
            build_flagship_headers(
                credentials,
                referer=self._build_connections_referer(0, connection_of_id, network_filters),
                page_instance=FLAGSHIP_SEARCH_PAGE_INSTANCE,
                rsc_stream=True,
                base_headers=self.client.headers,
            ),
            lambda start_index, _page_size: self._build_connections_of_payload(
                start_index, connection_of_id, network_filters, page_binding
            ),
            build_request=lambda start_index, _page_size: {
                "url": self._build_connections_url(start_index, connection_of_id, network_filters),
                "referer": self._build_connections_referer(start_index, connection_of_id, network_filters),
            },
            page_step=CONNECTIONS_OF_PAGE_SIZE,
            prefer_search_parser=True,
            page_binding=page_binding,
            debug_dump=self.settings.LI_DEBUG_CONNECTIONS_DUMP,
        )
        return FlagshipBackend(controller)

    async def list_connections(
        self,
        start: int = 0,
        count: int = 20,
        fetch_all: bool = False,
        of: Optional[str] = None,
        network: Optional[Sequence[str]] = None,
        experimental_search_dash: Optional[bool] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ConnectionsPage:
        """
        List connections, optionally another member's.

        Args:
            start: Offset of the first connection
            count: Number of connections wanted (ignored with fetch_all)
            fetch_all: Collect until the list is exhausted
            of: Username, profile URL or URN whose connections to list
            network: Degree filters for `of` ("1st", "2nd", "3rd"); all three by default
            experimental_search_dash: Try the Voyager search-clusters backend first
                (defaults to LI_EXPERIMENTAL_CONNECTIONS_OF_SEARCH_DASH)
            on_progress: Per-page progress callback

        Raises:
            ValueError: If `of` or `network` is invalid
            LinkedInApiError: If a request fails
        """
        start = max(0, start)
        target = None if fetch_all else max(0, count)

        identifier = of.strip() if of else ""
        connection_of_id = (
            await normalize_connection_of_identifier(self.client, identifier) if identifier else None
        )
        network_filters = network_filters_for(network) if connection_of_id else None

        effective_start = start
        if connection_of_id and start > 0:
            effective_start = start // CONNECTIONS_OF_PAGE_SIZE * CONNECTIONS_OF_PAGE_SIZE
        skip = start - effective_start

        backend: ConnectionsBackend = self._flagship_backend(connection_of_id, network_filters)
        if experimental_search_dash is None:
            experimental_search_dash = self.settings.LI_EXPERIMENTAL_CONNECTIONS_OF_SEARCH_DASH
        if connection_of_id and experimental_search_dash:
            backend = FallbackBackend(
                SearchDashClustersBackend(self.client, connection_of_id, network_filters),
                backend,
            )

        label = f"connections of {connection_of_id}" if connection_of_id else "connections"
        logger.info(f"[CONNECTIONS] Fetching {label} start={start} target={target} via {backend.name}")
        result = await backend.fetch(effective_start, target, skip=skip, on_progress=on_progress)
        if result.hit_max_iterations:
            logger.warning("[CONNECTIONS] Reached max page limit while fetching connections; results may be incomplete")

        logger.info(f"[CONNECTIONS] Collected {len(result.connections)} connections")
        return ConnectionsPage(
            connections=result.connections,
            paging=Paging(start=start, count=len(result.connections), total=None),
            hit_max_iterations=result.hit_max_iterations,
        )
