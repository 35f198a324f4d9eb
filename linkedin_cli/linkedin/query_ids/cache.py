"""
On-disk cache of rotating GraphQL query IDs.

The snapshot lives in a per-user cache directory as query-ids.json, owner
read/write only. Freshness (7 days) is advisory: a stale ID is still returned
by get_id; callers decide whether to refresh first.
"""
import json
import logging
import math
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import ValidationError

from linkedin_cli.core.config import Settings
from linkedin_cli.core.exceptions import DiscoveryFailedError
from linkedin_cli.schemas.query_ids import (
    QueryIdDiscoveryInfo,
    QueryIdSnapshot,
    QueryIdSnapshotInfo,
)
from . import har

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "query-ids.json"
FRESH_FOR = timedelta(days=7)


def default_cache_dir() -> Path:
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA") or str(Path.home())
        return Path(base) / "li"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / "li"
    base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / "li"


def resolve_cache_path(settings: Optional[Settings] = None) -> Path:
    if settings is not None and settings.LINKEDIN_QUERY_ID_CACHE_PATH:
        return Path(settings.LINKEDIN_QUERY_ID_CACHE_PATH)
    return default_cache_dir() / CACHE_FILE_NAME


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class QueryIdCache:
    """
    Reads and writes the query-ID snapshot.

    Args:
        cache_path: Explicit snapshot path (defaults to the settings override or the platform cache dir)
        settings: Settings for the path override and discovery limits
        now: Clock used for freshness and fetchedAt
    """

    def __init__(
        self,
        cache_path: Optional[Union[str, Path]] = None,
        settings: Optional[Settings] = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or Settings()
        self.cache_path = Path(cache_path) if cache_path else resolve_cache_path(self.settings)
        self._now = now

    def read_snapshot(self) -> Optional[QueryIdSnapshot]:
        if not self.cache_path.exists():
            return None
        try:
            raw = json.loads(self.cache_path.read_text(encoding="utf-8"))
            return QueryIdSnapshot.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"[QUERY IDS] Ignoring unreadable cache {self.cache_path}: {e}")
            return None

    def write_snapshot(self, snapshot: QueryIdSnapshot) -> None:
        """
        Atomically replace the snapshot: write a private temp file beside the
        target, then rename it over the target.
        """
        directory = self.cache_path.parent
        if not directory.exists():
            directory.mkdir(parents=True, mode=0o700, exist_ok=True)

        body = json.dumps(snapshot.model_dump(by_alias=True, exclude_none=True), indent=2) + "\n"
        fd, temp_path = tempfile.mkstemp(prefix=".query-ids.", suffix=".tmp", dir=str(directory))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(body)
                handle.flush()
                os.fsync(handle.fileno())
            try:
                os.chmod(temp_path, 0o600)
            except OSError as e:
                logger.debug(f"[QUERY IDS] chmod failed for {temp_path}: {e}")
            os.replace(temp_path, self.cache_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
        logger.info(f"[QUERY IDS] Wrote {len(snapshot.ids)} query IDs to {self.cache_path}")

    def get_snapshot_info(self) -> Optional[QueryIdSnapshotInfo]:
        snapshot = self.read_snapshot()
        if snapshot is None:
            return None
        fetched_at = _parse_timestamp(snapshot.fetched_at)
        if fetched_at is None:
            age_ms = math.inf
        else:
            age_ms = (self._now() - fetched_at).total_seconds() * 1000
        return QueryIdSnapshotInfo(
            cache_path=self.cache_path,
            snapshot=snapshot,
            age_ms=age_ms,
            is_fresh=age_ms < FRESH_FOR.total_seconds() * 1000,
        )

    def get_id(self, operation: str) -> Optional[str]:
        """Cached query ID for an operation; never touches the network."""
        snapshot = self.read_snapshot()
        if snapshot is None:
            return None
        return snapshot.ids.get(operation)

    def refresh_from_har(self, operations: List[str], har_path: Union[str, Path]) -> QueryIdSnapshot:
        """
        Offline refresh from a browser capture.

        Raises:
            DiscoveryFailedError: If the capture file is missing or unreadable,
                or it holds none of `operations` (the current snapshot is kept)
        """
        entries = har.load_har_entries(har_path)
        ids = {}
        variables = {}
        headers = None
        for operation in operations:
            query_id = har.extract_query_id(entries, operation)
            if query_id:
                ids[operation] = query_id
            if headers is None:
                headers = har.extract_headers(entries, operation)
            operation_variables = har.extract_variables(entries, operation)
            if operation_variables:
                variables[operation] = operation_variables

        if not ids:
            raise DiscoveryFailedError(f"Capture file {har_path} has no requests for {', '.join(operations)}")

        snapshot = QueryIdSnapshot(
            fetched_at=format_timestamp(self._now()),
            ids=ids,
            discovery=QueryIdDiscoveryInfo(har_path=str(har_path)),
            headers=headers,
            variables=variables or None,
        )
        logger.info(f"[QUERY IDS] Capture file {har_path} yielded {len(ids)}/{len(operations)} operations")
        self.write_snapshot(snapshot)
        return snapshot

    async def refresh_from_linkedin(self, client, operations: List[str]) -> QueryIdSnapshot:
        """
        Live refresh: discover IDs from LinkedIn's pages and JS bundles.

        Raises:
            DiscoveryFailedError: If nothing could be resolved
        """
        from .discovery import QueryIdDiscovery

        result = await QueryIdDiscovery(client, self.settings).discover(operations)
        snapshot = QueryIdSnapshot(
            fetched_at=format_timestamp(self._now()),
            ids=result.ids,
            discovery=QueryIdDiscoveryInfo(har_path=result.source),
        )
        self.write_snapshot(snapshot)
        return snapshot
