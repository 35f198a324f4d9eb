"""
Request bodies for LinkedIn's server-driven UI (SDUI) flagship-web endpoints.

The connections pager and the people-search navigation both POST a protobuf
shaped JSON document; only a handful of fields vary between pages.
"""
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

CONNECTIONS_PAGER_ID = "com.linkedin.sdui.pagers.mynetwork.connectionsList"
CONNECTIONS_SCREEN_ID = "com.linkedin.sdui.flagshipnav.mynetwork.Connections"
SEARCH_PEOPLE_SCREEN_ID = "com.linkedin.sdui.flagshipnav.search.SearchResultsPeople"
PAGE_BINDING_PREFIX = "SearchResultsauto-binding-"

SEARCH_RESULTS_BASE_URL = "https://www.linkedin.com/search/results/people/"
FLAGSHIP_SEARCH_URL = "https://www.linkedin.com/flagship-web/search/results/people/"

# Filters the people-search screen always sends, in the order the web app sends them.
# The free-text name/title/company/school filters reuse the "firstName" key upstream.
_EMPTY_FILTERS_BEFORE = (
    ("geoUrn", "geoUrn"),
    ("activelyHiringForJobTitles", "-100"),
    ("companyHQBingGeo", "companyHQBingGeo"),
    ("companySizeV2", "companySizeV2"),
    ("functionV2", "functionV2"),
    ("seniorityV2", "seniorityV2"),
    ("openToVolunteer", "openToVolunteer"),
    ("firstName", "firstName"),
    ("lastName", "firstName"),
    ("title", "firstName"),
    ("company", "firstName"),
    ("schoolFreetext", "firstName"),
    ("currentCompany", "currentCompany"),
    ("industry", "industry"),
    ("schoolFilter", "schoolFilter"),
)
_EMPTY_FILTERS_AFTER = (
    ("pastCompany", "pastCompany"),
    ("followerOf", "followerOf"),
    ("serviceCategory", "serviceCategory"),
    ("profileLanguage", "profileLanguage"),
    ("eventAttending", "eventAttending"),
)


def _state_key(value: str, namespace: str) -> Dict[str, Any]:
    return {
        "$type": "proto.sdui.StateKey",
        "value": value,
        "key": {
            "$type": "proto.sdui.Key",
            "value": {"$case": "id", "id": value},
        },
        "namespace": namespace,
        "isEncrypted": False,
    }


def build_connections_pagination_body(start_index: int, page_size: int = 0) -> Dict[str, Any]:
    """
    Body for the "My Network > Connections" pager, sorted by recently added.

    Args:
        start_index: Zero-based offset into the connection list
        page_size: Unused; the pager decides its own page length
    """
    sort_binding = {
        "key": "connectionsListSortOption",
        "namespace": "connectionsListSortOptionMenu",
    }
    requested_payload = {"startIndex": start_index, "sortByOptionBinding": sort_binding}
    sort_state_key = _state_key("connectionsListSortOption", "connectionsListSortOptionMenu")

    return {
        "pagerId": CONNECTIONS_PAGER_ID,
        "clientArguments": {
            "$type": "proto.sdui.actions.requests.RequestedArguments",
            "payload": dict(requested_payload),
            "requestedStateKeys": [sort_state_key],
            "requestMetadata": {"$type": "proto.sdui.common.RequestMetadata"},
            "states": [
                {
                    "key": "connectionsListSortOption",
                    "namespace": "connectionsListSortOptionMenu",
                    "value": "sortByRecentlyAdded",
                    "originalProtoCase": "stringValue",
                }
            ],
            "screenId": CONNECTIONS_SCREEN_ID,
        },
        "paginationRequest": {
            "$type": "proto.sdui.actions.requests.PaginationRequest",
            "pagerId": CONNECTIONS_PAGER_ID,
            "requestedArguments": {
                "$type": "proto.sdui.actions.requests.RequestedArguments",
                "payload": dict(requested_payload),
                "requestedStateKeys": [dict(sort_state_key)],
                "requestMetadata": {"$type": "proto.sdui.common.RequestMetadata"},
            },
            "trigger": {
                "$case": "itemDistanceTrigger",
                "itemDistanceTrigger": {
                    "$type": "proto.sdui.actions.requests.ItemDistanceTrigger",
                    "preloadDistance": 3,
                    "preloadLength": 250,
                },
            },
            "retryCount": 2,
        },
    }


def build_search_query(params: Dict[str, str], page: int = 1) -> str:
    """Query string shared by the search request URL, its Referer and the SDUI path.

    `params` keeps its insertion order; `page` is appended from page 2 on.
    """
    query = dict(params)
    if page > 1:
        query["page"] = str(page)
    return urlencode(query)


def _screen_hierarchy(screen: str, child: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    hierarchy: Dict[str, Any] = {
        "$type": "proto.sdui.navigation.ScreenHierarchy",
        "screenHash": f"com.linkedin.sdui.flagshipnav.{screen}#0",
        "screenId": f"com.linkedin.sdui.flagshipnav.{screen}",
        "pageKey": "",
        "isAnchorPage": False,
    }
    if child is not None:
        hierarchy["childHierarchy"] = child
    hierarchy["url"] = ""
    return hierarchy


def build_people_search_body(
    start_index: int,
    page_size: int,
    origin: str,
    query_params: Dict[str, str],
    filter_entries: Dict[str, List[Dict[str, Any]]],
    network_filters: Optional[List[str]] = None,
    page_binding: Optional[str] = None,
) -> Dict[str, Any]:
    """
    NavigateToScreen body for one people-search results page.

    Args:
        start_index: Result offset; converted to a 1-based page of `page_size`
        page_size: Results per search page (10 on the web app)
        origin: Search origin (GLOBAL_SEARCH_HEADER, FACETED_SEARCH)
        query_params: Query parameters of the visible search URL (keywords, connectionOf, network)
        filter_entries: Extra filter lists placed between schoolFilter and pastCompany
        network_filters: Degree filters ("F", "S", "O")
        page_binding: Binding key echoed by the previous page, if any
    """
    page = start_index // page_size + 1
    page_key = page_binding or f"{PAGE_BINDING_PREFIX}{page}"
    # Once the server hands out its own binding the path stays on page 1
    page_for_path = 1 if page_binding else page

    network_filter: Dict[str, Any] = {"filterKey": "network"}
    if network_filters:
        network_filter["filterList"] = list(network_filters)

    payload: Dict[str, Any] = {"origin": origin, "network": [network_filter]}
    for name, key in _EMPTY_FILTERS_BEFORE:
        payload[name] = [{"filterKey": key}]
    payload.update(filter_entries)
    for name, key in _EMPTY_FILTERS_AFTER:
        payload[name] = [{"filterKey": key}]
    payload["page"] = [
        {
            "pageField": {
                "type": "com.linkedin.sdui.components.core.BindingImpl",
                "value": {"key": page_key, "namespace": "MemoryNamespace"},
            }
        }
    ]
    payload["spellCorrectionEnabled"] = True

    return {
        "$type": "proto.sdui.actions.core.NavigateToScreen",
        "screenId": SEARCH_PEOPLE_SCREEN_ID,
        "pageKey": "search_srp_people",
        "presentationStyle": "PresentationStyle_FULL_PAGE",
        "presentation": {
            "$case": "fullPage",
            "fullPage": {"$type": "proto.sdui.actions.core.presentation.FullPagePresentation"},
        },
        "title": "Search",
        "newHierarchy": _screen_hierarchy(
            "home.Home",
            _screen_hierarchy("search.SearchResults", _screen_hierarchy("search.SearchResultsPeople")),
        ),
        "url": f"/search/results/people/?{build_search_query(query_params, page_for_path)}",
        "inheritActor": False,
        "colorScheme": "ColorScheme_UNKNOWN",
        "disableScreenGutters": False,
        "shouldHideMobileTopNavBar": True,
        "shouldHideLoadingSpinner": False,
        "screenTitle": ["Search"],
        "replaceCurrentScreen": False,
        "shouldHideMobileTopNavBarDivider": False,
        "requestedArguments": {
            "payload": payload,
            "requestedStateKeys": [_state_key(page_key, "MemoryNamespace")],
            "states": [
                {
                    "key": page_key,
                    "namespace": "MemoryNamespace",
                    "value": page,
                    "originalProtoCase": "intValue",
                }
            ],
            "requestMetadata": {"$type": "proto.sdui.common.RequestMetadata"},
            "screenId": "",
        },
    }
