"""
Reading GraphQL query IDs out of a browser network capture (HAR file).
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs, urlsplit

from linkedin_cli.core.exceptions import DiscoveryFailedError

logger = logging.getLogger(__name__)

MESSAGING_GRAPHQL_MARKER = "voyagerMessagingGraphQL/graphql"
CAPTURED_HEADER_NAMES = {"x-li-page-instance", "x-li-track", "x-li-lang", "x-li-graphql-token"}


def load_har_entries(har_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Raises:
        DiscoveryFailedError: If the capture file is missing or is not a HAR document
    """
    path = Path(har_path)
    if not path.exists():
        raise DiscoveryFailedError(f"Capture file not found: {path}")
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise DiscoveryFailedError(f"Could not read capture file {path}: {e}") from e
    log = document.get("log") if isinstance(document, dict) else None
    entries = log.get("entries") if isinstance(log, dict) else None
    return [entry for entry in entries if isinstance(entry, dict)] if isinstance(entries, list) else []


def _request(entry: Dict[str, Any]) -> Dict[str, Any]:
    request = entry.get("request")
    return request if isinstance(request, dict) else {}


def _request_url(entry: Dict[str, Any]) -> str:
    url = _request(entry).get("url")
    return url if isinstance(url, str) else ""


def _query_param(url: str, name: str) -> Optional[str]:
    values = parse_qs(urlsplit(url).query, keep_blank_values=False).get(name)
    return values[0] if values else None


def _is_operation_request(url: str, operation: str) -> bool:
    if MESSAGING_GRAPHQL_MARKER not in url:
        return False
    query_id = _query_param(url, "queryId")
    if query_id:
        # messengerConversations is a prefix of messengerConversationsBySyncToken
        return query_id.split(".", 1)[0] == operation
    return operation in url


def _matching_entries(entries: List[Dict[str, Any]], operation: str) -> List[Dict[str, Any]]:
    return [entry for entry in entries if _is_operation_request(_request_url(entry), operation)]


def extract_query_id(entries: List[Dict[str, Any]], operation: str) -> Optional[str]:
    """queryId of the most recent captured request for `operation`."""
    for entry in reversed(_matching_entries(entries, operation)):
        query_id = _query_param(_request_url(entry), "queryId")
        if query_id:
            return query_id
    return None


def extract_variables(entries: List[Dict[str, Any]], operation: str) -> Optional[str]:
    for entry in reversed(_matching_entries(entries, operation)):
        variables = _query_param(_request_url(entry), "variables")
        if variables:
            return variables
    return None


def extract_headers(entries: List[Dict[str, Any]], operation: str) -> Optional[Dict[str, str]]:
    """Page-instance/track/lang/graphql-token headers from the first captured request that has any."""
    for entry in _matching_entries(entries, operation):
        selected = {}
        headers = _request(entry).get("headers")
        for header in headers if isinstance(headers, list) else []:
            if not isinstance(header, dict):
                continue
            name = header.get("name") or ""
            if isinstance(name, str) and name.lower() in CAPTURED_HEADER_NAMES:
                selected[name] = str(header.get("value") or "")
        if selected:
            return selected
    return None
