"""
Live query-ID discovery.

LinkedIn's web app ships GraphQL query IDs (`<operation>.<hash>`) inside its
HTML and JS bundles. Discovery loads a few logged-in entry pages, looks for an
ID directly in the HTML, and otherwise collects bundle URLs and scans them
concurrently until every requested operation is resolved or the deadline hits.
"""
import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from linkedin_cli.core.config import Settings
from linkedin_cli.core.debug import get_debug_logger
from linkedin_cli.core.exceptions import DiscoveryFailedError, LinkedInError

logger = logging.getLogger(__name__)

ENTRYPOINTS = (
    "https://www.linkedin.com/messaging/",
    "https://www.linkedin.com/messaging",
    "https://www.linkedin.com/feed/",
    "https://www.linkedin.com/feed",
)
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
STATIC_HOST = "https://static.licdn.com"
SETTINGS_OPERATION = "voyagerMessagingDashMessagingSettings"
WORKER_COUNT = 3
JS_URLS_WINDOW = 8000

SOURCE_HTML = "linkedIn-html"
SOURCE_BUNDLES = "linkedIn-bundles"

ID_CHARS = r"[a-zA-Z0-9._-]+"
GENERIC_QUERY_ID_RES = (
    re.compile(rf"queryId=({ID_CHARS})", re.IGNORECASE),
    re.compile(rf"queryId%3D({ID_CHARS})", re.IGNORECASE),
    re.compile(rf"queryId\\u003d({ID_CHARS})", re.IGNORECASE),
    re.compile(rf'"queryId"\s*:\s*"({ID_CHARS})"', re.IGNORECASE),
)

BUNDLE_URL_RE = re.compile(r"https:\\/\\/static(?:-exp\d+)?\.licdn\.com\\/[^\"'\s]+?\.js")
ESCAPED_URL_RE = re.compile(r"https:\\/\\/[^\"\s]+?\.js")
UNICODE_URL_RE = re.compile(r"https:\\u002F\\u002F[^\"\s]+?\.js")
RELATIVE_URL_RE = re.compile(r"\"(\\?/?(?:aero-v1|assets|sc)\\?/[^\"']+?\.js)\"")
SCRIPT_SRC_RE = re.compile(r"<script[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)
LINK_HREF_RE = re.compile(r"<link[^>]+href=[\"']([^\"']+\.js[^\"']*)[\"']", re.IGNORECASE)
JSON_SCRIPT_RE = re.compile(
    r"<script[^>]+type=[\"']application/json[\"'][^>]*>([\s\S]*?)</script>",
    re.IGNORECASE,
)


def unescape_url(value: str) -> str:
    return value.replace("\\u002F", "/").replace("\\u002f", "/").replace("\\/", "/")


def _operation_of(query_id: str) -> str:
    return query_id.split(".", 1)[0]


def extract_generic_query_id(text: str, operations: Sequence[str]) -> Optional[Tuple[str, str]]:
    """First `queryId` occurrence whose operation prefix was requested."""
    wanted = set(operations)
    for pattern in GENERIC_QUERY_ID_RES:
        for match in pattern.finditer(text):
            candidate = match.group(1)
            if _operation_of(candidate) in wanted:
                return _operation_of(candidate), candidate
    return None


def extract_direct_query_id(text: str, operations: Sequence[str]) -> Optional[Tuple[str, str]]:
    """
    Look for an ID written straight into a page.

    Tries the generic queryId forms first, then per operation: an assignment
    (`queryId: "op.hash"`), a URL parameter, a %2E-encoded id and finally the
    bare `op.hash` token.
    """
    generic = extract_generic_query_id(text, operations)
    if generic:
        return generic
    for operation in operations:
        op = re.escape(operation)
        match = re.search(rf"queryId\s*[:=]\s*[\"']({op}\.{ID_CHARS})[\"']", text, re.IGNORECASE)
        if match:
            return operation, match.group(1)
        match = re.search(rf"queryId=({op}\.{ID_CHARS})", text)
        if match:
            return operation, match.group(1)
        match = re.search(rf"{op}%2E({ID_CHARS})", text)
        if match:
            return operation, f"{operation}.{match.group(1)}"
        match = re.search(rf"{op}\.{ID_CHARS}", text)
        if match:
            return operation, match.group(0)
    return None


def extract_query_id_from_bundle(text: str, operations: Sequence[str]) -> Optional[Tuple[str, str]]:
    """Bundles also carry operation-to-hash maps (`"op":"hash"`)."""
    generic = extract_generic_query_id(text, operations)
    if generic:
        return generic
    for operation in operations:
        op = re.escape(operation)
        match = re.search(rf"\"{op}\"\s*:\s*\"({ID_CHARS})\"", text, re.IGNORECASE)
        if match:
            return operation, f"{operation}.{match.group(1)}"
        match = re.search(rf"{op}\.{ID_CHARS}", text)
        if match:
            return operation, match.group(0)
    return None


def _normalize_src(src: str, require_licdn: bool = False) -> Optional[str]:
    if src.startswith("//"):
        return f"https:{src}"
    if src.startswith(("/aero-v1/", "/assets/")):
        return f"{STATIC_HOST}{src}"
    if src.startswith("https://"):
        if require_licdn and "licdn.com" not in src:
            return None
        return src
    return None


def _escaped_bundle_urls(text: str) -> List[str]:
    urls = []
    for pattern in (ESCAPED_URL_RE, UNICODE_URL_RE):
        for match in pattern.finditer(text):
            url = unescape_url(match.group(0))
            if "licdn.com" in url:
                urls.append(url)
    urls.extend(unescape_url(m.group(0)) for m in BUNDLE_URL_RE.finditer(text))
    return urls


def _js_urls_array(window: str) -> List[str]:
    unescaped = unescape_url(window)
    start = unescaped.find("[")
    end = unescaped.find("]", start + 1) if start != -1 else -1
    if start == -1 or end == -1:
        return []
    try:
        entries = json.loads(unescaped[start:end + 1])
    except ValueError:
        return []
    urls = []
    for entry in entries if isinstance(entries, list) else []:
        if not isinstance(entry, str):
            continue
        if entry.startswith("//"):
            urls.append(f"https:{entry}")
        elif entry.startswith("/"):
            urls.append(f"{STATIC_HOST}{entry}")
        elif entry.startswith("https://"):
            urls.append(entry)
    return urls


def extract_bundle_urls(html: str) -> List[str]:
    """
    Every JS bundle URL referenced by an entry page, deduplicated in first-seen order.
    """
    found: List[str] = []
    found.extend(_escaped_bundle_urls(html))

    for match in RELATIVE_URL_RE.finditer(html):
        path = unescape_url(match.group(1))
        found.append(f"{STATIC_HOST}{path if path.startswith('/') else '/' + path}")

    for match in SCRIPT_SRC_RE.finditer(html):
        url = _normalize_src(match.group(1))
        if url:
            found.append(url)
    for match in LINK_HREF_RE.finditer(html):
        url = _normalize_src(match.group(1), require_licdn=True)
        if url:
            found.append(url)

    for match in JSON_SCRIPT_RE.finditer(html):
        found.extend(_escaped_bundle_urls(match.group(1)))

    js_urls_at = html.find("jsUrls")
    if js_urls_at != -1:
        window = html[js_urls_at:js_urls_at + JS_URLS_WINDOW]
        found.extend(_escaped_bundle_urls(window))
        found.extend(_js_urls_array(window))

    return list(dict.fromkeys(url for url in found if url.endswith(".js") or ".js?" in url))


@dataclass
class DiscoveryResult:
    ids: Dict[str, str]
    source: str
    bundles_scanned: int = 0


@dataclass
class _EntrypointScan:
    bundles: List[str] = field(default_factory=list)
    direct: Optional[Tuple[str, str]] = None


class QueryIdDiscovery:
    """
    Resolve query IDs from LinkedIn's live web app.

    Args:
        client: LinkedInClient used for page, bundle and GraphQL fetches
        settings: Bundle limit, deadline and debug toggle
        clock: Monotonic clock in seconds, replaceable in tests
    """

    def __init__(self, client, settings: Optional[Settings] = None, clock=time.monotonic):
        self.client = client
        self.settings = settings or getattr(client, "settings", None) or Settings()
        self.max_bundles = self.settings.LI_QUERY_ID_MAX_BUNDLES
        self.timeout_ms = self.settings.LI_QUERY_ID_TIMEOUT_MS
        self.debug = get_debug_logger("query-ids", self.settings.LI_DEBUG_QUERY_IDS)
        self._clock = clock

    async def discover(self, operations: Sequence[str]) -> DiscoveryResult:
        """
        Raises:
            DiscoveryFailedError: No bundles were found, or no operation was resolved
        """
        operations = list(operations)
        scan = await self._scan_entrypoints(operations)

        if scan.direct:
            operation, query_id = scan.direct
            ids = {operation: query_id}
            if operation == SETTINGS_OPERATION:
                ids.update(await self._ids_from_settings(query_id, operations))
            logger.info(f"[QUERY IDS] Found {operation} directly in page HTML")
            return DiscoveryResult(ids=ids, source=SOURCE_HTML)

        bundles = scan.bundles[:self.max_bundles]
        if not bundles:
            raise DiscoveryFailedError("No LinkedIn bundles discovered for query ID refresh")

        ids, scanned = await self._scan_bundles(bundles, operations)
        if not ids:
            raise DiscoveryFailedError(
                f"No query IDs discovered from LinkedIn bundles "
                f"(scanned {scanned}, timeout {self.timeout_ms}ms)",
                bundles_scanned=scanned,
                timeout_ms=self.timeout_ms,
            )
        logger.info(f"[QUERY IDS] Resolved {len(ids)}/{len(operations)} operations from {scanned} bundles")
        return DiscoveryResult(ids=ids, source=SOURCE_BUNDLES, bundles_scanned=scanned)

    async def _scan_entrypoints(self, operations: List[str]) -> _EntrypointScan:
        for url in ENTRYPOINTS:
            try:
                page = await self.client.fetch_web_text(url, accept=HTML_ACCEPT)
            except LinkedInError as e:
                self.debug.debug(f"entrypoint error url={url} error={e}")
                continue
            self.debug.debug(f"entrypoint status={page.status} url={url}")
            if not page.ok:
                continue

            direct = extract_direct_query_id(page.text, operations)
            if direct:
                self.debug.debug(f"entrypoint direct {direct[0]} url={url}")
                return _EntrypointScan(direct=direct)

            bundles = extract_bundle_urls(page.text)
            self.debug.debug(f"entrypoint bundles={len(bundles)} url={url}")
            if bundles:
                return _EntrypointScan(bundles=bundles)
        return _EntrypointScan()

    async def _ids_from_settings(self, settings_query_id: str, operations: List[str]) -> Dict[str, str]:
        """The messaging-settings response sometimes names the inbox operations too."""
        path = f"/graphql?includeWebMetadata=true&variables=()&queryId={settings_query_id}"
        headers = {
            "Accept": "application/graphql",
            "X-Li-Graphql-Token": self.client.credentials.csrf_token,
        }
        try:
            response = await self.client.request(path, headers=headers)
        except LinkedInError as e:
            self.debug.debug(f"settings fetch failed error={e}")
            return {}
        found = extract_generic_query_id(response.text, operations)
        return {found[0]: found[1]} if found else {}

    async def _scan_bundles(self, bundles: List[str], operations: List[str]) -> Tuple[Dict[str, str], int]:
        deadline = self._clock() + self.timeout_ms / 1000
        queue: "asyncio.Queue[str]" = asyncio.Queue()
        for url in bundles:
            queue.put_nowait(url)

        ids: Dict[str, str] = {}
        remaining: Set[str] = set(operations)
        scanned = 0

        async def worker() -> None:
            nonlocal scanned
            while remaining and not queue.empty():
                if self._clock() > deadline:
                    self.debug.debug("bundle scan deadline reached")
                    return
                url = queue.get_nowait()
                scanned += 1
                try:
                    bundle = await self.client.fetch_web_text(url, accept="*/*")
                except LinkedInError as e:
                    self.debug.debug(f"bundle error url={url} error={e}")
                    continue
                if not bundle.ok:
                    self.debug.debug(f"bundle status={bundle.status} url={url}")
                    continue
                self.debug.debug(f"bundle ok url={url}")
                if not remaining:
                    return
                found = extract_query_id_from_bundle(bundle.text, sorted(remaining, key=operations.index))
                if not found:
                    continue
                operation, query_id = found
                if operation in remaining:
                    remaining.discard(operation)
                    ids[operation] = query_id
                    self.debug.debug(f"bundle contains {operation} url={url}")

        await asyncio.gather(*(worker() for _ in range(WORKER_COUNT)))
        return ids, scanned
