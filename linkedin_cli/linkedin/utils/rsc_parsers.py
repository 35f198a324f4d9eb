"""
Parsers for flagship-web payloads (React Server Component streams and HTML).

These payloads are not JSON documents, so people entries are recovered with
bounded regular expressions. Each grammar is a separate function;
`parse_connection_page` chains them in a fixed fallback order.
"""
import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Set
from urllib.parse import unquote

from linkedin_cli.schemas.entities import NormalizedConnection, profile_url_for

logger = logging.getLogger(__name__)

# Flagship connections pager: profile URL followed by name and headline text nodes.
FLAGSHIP_CONNECTION_RE = re.compile(
    r'"url":"(https:\/\/www\.linkedin\.com\/in\/[^"]+)"[\s\S]{0,800}?'
    r'"children":\["([^"]+)"\][\s\S]{0,800}?"children":\["([^"]+)"\]'
)
USERNAME_IN_PATH_RE = re.compile(r"\/in\/([^/?#]+)")
USERNAME_IN_URL_RE = re.compile(r"linkedin\.com\/in\/([^/?#]+)", re.IGNORECASE)

PAGE_BINDING_RE = re.compile(
    r'currentIndicatorIndexBinding"\s*:\s*\{[\s\S]{0,300}?"value":"(SearchResultsauto-binding-[A-Za-z0-9-]+)"'
)

# People search stream
SEARCH_RESULT_MARKER = 'viewName":"people-search-result"'
SEARCH_BLOCK_MAX_CHARS = 6000
SEARCH_URL_RE = re.compile(r'"url":"(https:\/\/www\.linkedin\.com\/in\/[^"?]+)[^"]*"')
CHILDREN_TEXT_RE = re.compile(r'"children":\["((?:[^"\\]|\\.){1,300})"\]')
PROFILE_ID_RE = re.compile(
    r'(?:urn:li:fsd_profile:|profileUrn=urn%3Ali%3Afsd_profile%3A|"profileId":")(ACo[A-Za-z0-9_-]+)'
)
DEGREE_RE = re.compile(r"^[•·]?\s*(1st|2nd|3rd\+?)$")
ACTION_SLOT_RE = re.compile(r'"(?:[A-Za-z]+ActionSlot|actionSlots?)"\s*:')
ACTION_SLOT_WINDOW = 3000

# Search HTML
MINI_PROFILE_RE = re.compile(r'"miniProfile"\s*:\s*\{([^{}]{0,3000})\}')

BOILERPLATE_TEXT = {
    "Message", "Connect", "Follow", "Unfollow", "Pending", "View profile",
    "Send message", "Show more actions", "Remove connection", "More", "Save",
    "Status is offline", "Status is online", "Status is reachable",
}


def _decode_json_string(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value


def _split_name(name: str) -> List[str]:
    parts = name.split()
    first_name = parts[0] if parts else ""
    return [first_name, " ".join(parts[1:])]


def _is_boilerplate(text: str) -> bool:
    stripped = text.strip()
    if not stripped or stripped in BOILERPLATE_TEXT:
        return True
    if stripped.startswith(("http", "$", "View ", "Connected on")):
        return True
    if DEGREE_RE.match(stripped):
        return True
    return "mutual connection" in stripped or stripped.endswith(" followers")


def is_html_payload(payload: str) -> bool:
    """Whether a page is a full HTML document rather than an RSC stream."""
    return payload.lstrip()[:9].upper() == "<!DOCTYPE"


def extract_page_binding(payload: str) -> Optional[str]:
    """Search page-indicator binding key, echoed back on the next page request."""
    match = PAGE_BINDING_RE.search(payload)
    return match.group(1) if match else None


def parse_connections_from_flagship_rsc(payload: str) -> List[NormalizedConnection]:
    """
    Connections pager stream: url, then name, then headline.
    """
    results: List[NormalizedConnection] = []
    seen: Set[str] = set()
    for match in FLAGSHIP_CONNECTION_RE.finditer(payload):
        profile_url = match.group(1).rstrip("/")
        username_match = USERNAME_IN_PATH_RE.search(profile_url)
        username = username_match.group(1) if username_match else ""
        if not username or username in seen:
            continue
        first_name, last_name = _split_name(match.group(2).strip())
        seen.add(username)
        results.append(NormalizedConnection(
            urn="",
            username=username,
            first_name=first_name,
            last_name=last_name,
            headline=match.group(3).strip(),
            profile_url=profile_url,
        ))
    return results


def extract_action_slot_profile_ids(payload: str) -> Set[str]:
    """
    Profile ids that carry action buttons (Connect/Message/Follow).

    Real result cards always have actions; decorative people references
    (e.g. "X and Y are mutual connections") do not. A slot's window ends at
    the next result card.
    """
    allowed: Set[str] = set()
    for match in ACTION_SLOT_RE.finditer(payload):
        end = match.end() + ACTION_SLOT_WINDOW
        next_result = payload.find(SEARCH_RESULT_MARKER, match.end(), end)
        window = payload[match.end():next_result if next_result != -1 else end]
        allowed.update(m.group(1) for m in PROFILE_ID_RE.finditer(window))
    return allowed


def _search_blocks(payload: str) -> Iterable[str]:
    starts = [m.start() for m in re.finditer(re.escape(SEARCH_RESULT_MARKER), payload)]
    for index, start in enumerate(starts):
        end = starts[index + 1] if index + 1 < len(starts) else len(payload)
        yield payload[start:min(end, start + SEARCH_BLOCK_MAX_CHARS)]


def _parse_search_block(block: str) -> Optional[Dict[str, Any]]:
    url_match = SEARCH_URL_RE.search(block)
    if not url_match:
        return None
    profile_url = url_match.group(1).rstrip("/")
    username_match = USERNAME_IN_PATH_RE.search(profile_url)
    if not username_match:
        return None

    texts = [_decode_json_string(m.group(1)).strip() for m in CHILDREN_TEXT_RE.finditer(block)]
    degree = None
    for text in texts:
        degree_match = DEGREE_RE.match(text)
        if degree_match:
            degree = degree_match.group(1)
            break
    candidates = [text for text in texts if not _is_boilerplate(text)]
    name = candidates[0] if candidates else ""
    headline = candidates[1] if len(candidates) > 1 else ""

    profile_id_match = PROFILE_ID_RE.search(block)
    return {
        "username": unquote(username_match.group(1)),
        "profile_url": profile_url,
        "name": name,
        "headline": headline,
        "degree": degree,
        "profile_id": profile_id_match.group(1) if profile_id_match else None,
    }


def parse_connections_from_search_stream(
    payload: str,
    enforce_action_slots: bool = True,
) -> List[NormalizedConnection]:
    """
    People-search RSC stream.

    Each `people-search-result` view opens a block; url, name, headline and
    degree are read from inside that block only. With `enforce_action_slots`
    a block is kept only when its profile id also appears in an action slot.
    """
    allowed = extract_action_slot_profile_ids(payload) if enforce_action_slots else set()
    results: List[NormalizedConnection] = []
    seen: Set[str] = set()
    for block in _search_blocks(payload):
        entry = _parse_search_block(block)
        if entry is None or entry["username"] in seen:
            continue
        if enforce_action_slots and entry["profile_id"] not in allowed:
            continue
        first_name, last_name = _split_name(entry["name"])
        seen.add(entry["username"])
        results.append(NormalizedConnection(
            urn=f"urn:li:fsd_profile:{entry['profile_id']}" if entry["profile_id"] else "",
            username=entry["username"],
            first_name=first_name,
            last_name=last_name,
            headline=entry["headline"],
            profile_url=entry["profile_url"],
            connection_degree=entry["degree"],
        ))
    return results


def _unescape_html_json(payload: str) -> str:
    return (
        payload.replace("&quot;", '"')
        .replace("&#34;", '"')
        .replace("&#x22;", '"')
        .replace("\\u002F", "/")
        .replace("\\/", "/")
        .replace("&amp;", "&")
    )


def _fragment_field(fragment: str, name: str) -> str:
    match = re.search(rf'"{name}"\s*:\s*"((?:[^"\\]|\\.)*)"', fragment)
    return _decode_json_string(match.group(1)) if match else ""


def parse_connections_from_search_html(payload: str) -> List[NormalizedConnection]:
    """
    Full HTML page with embedded (entity-escaped) JSON data islands.
    """
    text = _unescape_html_json(payload)
    results: List[NormalizedConnection] = []
    seen: Set[str] = set()
    for match in MINI_PROFILE_RE.finditer(text):
        fragment = match.group(1)
        username = _fragment_field(fragment, "publicIdentifier")
        if not username or username in seen:
            continue
        seen.add(username)
        results.append(NormalizedConnection(
            urn=_fragment_field(fragment, "entityUrn"),
            username=username,
            first_name=_fragment_field(fragment, "firstName"),
            last_name=_fragment_field(fragment, "lastName"),
            headline=_fragment_field(fragment, "occupation"),
            profile_url=profile_url_for(username),
        ))
    return results


def _read_non_empty_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _read_nested_text(value: Any) -> Optional[str]:
    if not isinstance(value, dict):
        return None
    return _read_non_empty_string(value.get("text"))


def _username_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = USERNAME_IN_URL_RE.search(url)
    return unquote(match.group(1)) if match else None


def parse_connections_from_search_dash_clusters(payload: Any) -> List[NormalizedConnection]:
    """
    Voyager /search/dash/clusters JSON: people live in `included`.
    """
    root = payload if isinstance(payload, dict) else {}
    included = root.get("included") if isinstance(root.get("included"), list) else []
    results: List[NormalizedConnection] = []
    seen: Set[str] = set()

    for entry in included:
        if not isinstance(entry, dict):
            continue
        mini = entry.get("miniProfile") if isinstance(entry.get("miniProfile"), dict) else {}

        username = (
            _read_non_empty_string(entry.get("publicIdentifier"))
            or _read_non_empty_string(mini.get("publicIdentifier"))
            or _username_from_url(
                _read_non_empty_string(entry.get("navigationUrl"))
                or _read_non_empty_string(entry.get("publicProfileUrl"))
                or _read_non_empty_string(mini.get("publicProfileUrl"))
            )
        )
        if not username or username in seen:
            continue

        headline = (
            _read_non_empty_string(entry.get("occupation"))
            or _read_non_empty_string(entry.get("headline"))
            or _read_nested_text(entry.get("headline"))
            or _read_nested_text(entry.get("subline"))
            or ""
        )
        seen.add(username)
        results.append(NormalizedConnection(
            urn=_read_non_empty_string(entry.get("entityUrn")) or _read_non_empty_string(mini.get("entityUrn")) or "",
            username=username,
            first_name=_read_non_empty_string(entry.get("firstName")) or _read_non_empty_string(mini.get("firstName")) or "",
            last_name=_read_non_empty_string(entry.get("lastName")) or _read_non_empty_string(mini.get("lastName")) or "",
            headline=headline,
            profile_url=(
                _read_non_empty_string(entry.get("publicProfileUrl"))
                or _read_non_empty_string(mini.get("publicProfileUrl"))
                or profile_url_for(username)
            ),
            connection_degree=(
                _read_non_empty_string(entry.get("connectionDistance"))
                or _read_non_empty_string(entry.get("distance"))
            ),
        ))
    return results


def parse_connection_page(payload: str, prefer_search_parser: bool = False) -> List[NormalizedConnection]:
    """
    Parse one page with the fallback cascade; stops at the first non-empty result.

    Search-preferring order:
        html ? search_html : search_stream
        -> search_stream without action-slot enforcement (non-HTML only)
        -> search_html -> flagship_rsc
    Connections order:
        html ? search_html : flagship_rsc
        -> search_html -> search_stream
    """
    is_html = is_html_payload(payload)

    if prefer_search_parser:
        connections = (
            parse_connections_from_search_html(payload) if is_html
            else parse_connections_from_search_stream(payload)
        )
        if not connections and not is_html:
            connections = parse_connections_from_search_stream(payload, enforce_action_slots=False)
        if not connections:
            connections = parse_connections_from_search_html(payload)
        if not connections:
            connections = parse_connections_from_flagship_rsc(payload)
        return connections

    connections = (
        parse_connections_from_search_html(payload) if is_html
        else parse_connections_from_flagship_rsc(payload)
    )
    if not connections:
        connections = parse_connections_from_search_html(payload)
    if not connections:
        connections = parse_connections_from_search_stream(payload)
    return connections
