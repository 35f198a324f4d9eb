"""
Stale query-ID recovery for GraphQL calls.
"""
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from linkedin_cli.core.config import Settings
from linkedin_cli.core.exceptions import LinkedInError, StaleQueryIdError
from .cache import QueryIdCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

MESSAGING_OPERATIONS = ("messengerConversationsBySyncToken", "messengerConversations")

MANUAL_REFRESH_HINT = (
    "Run `li query-ids --refresh --auto` or capture a fresh HAR and run "
    "`li query-ids --refresh --har <path>`"
)


class GraphQLQueryRunner:
    """
    Runs GraphQL calls with a cached query ID and retries once after a refresh
    when LinkedIn rejects the ID.

    Args:
        client: LinkedInClient used for live discovery
        cache: Query-ID cache (defaults to the settings-derived location)
        operations: Operations refreshed together
        settings: Settings (capture-file fallback path)
    """

    def __init__(
        self,
        client,
        cache: Optional[QueryIdCache] = None,
        operations: Sequence[str] = MESSAGING_OPERATIONS,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.settings = settings or getattr(client, "settings", None) or Settings()
        self.cache = cache or QueryIdCache(settings=self.settings)
        self.operations = list(operations)

    @property
    def har_path(self) -> Path:
        return Path(self.settings.LINKEDIN_MESSAGING_HAR)

    async def refresh(self) -> None:
        """
        Live discovery first; the configured capture file is used if discovery fails.

        Raises:
            LinkedInError: If both sources fail
        """
        try:
            await self.cache.refresh_from_linkedin(self.client, self.operations)
            return
        except LinkedInError as e:
            if not self.har_path.exists():
                raise
            logger.warning(f"[QUERY IDS] Live discovery failed ({e}); using capture file {self.har_path}")
        self.cache.refresh_from_har(self.operations, self.har_path)

    async def resolve_query_id(self, operation: str) -> str:
        """
        Raises:
            LinkedInError: If no ID is cached and the refresh fails
            StaleQueryIdError: If a refresh succeeded but still has no ID for `operation`
        """
        info = self.cache.get_snapshot_info()
        cached = info.snapshot.ids.get(operation) if info else None
        if cached and info.is_fresh:
            return cached

        if cached:
            try:
                await self.refresh()
            except LinkedInError as e:
                logger.warning(f"[QUERY IDS] Refresh failed, using stale {operation} id: {e}")
                return cached
        else:
            await self.refresh()

        refreshed = self.cache.get_id(operation) or cached
        if not refreshed:
            raise StaleQueryIdError(0, f"No query ID available for {operation}. {MANUAL_REFRESH_HINT}")
        return refreshed

    async def run(self, operation: str, call: Callable[[str], Awaitable[T]]) -> T:
        """
        Invoke `call(query_id)`; on a stale-ID rejection refresh and retry exactly once.

        Raises:
            StaleQueryIdError: If the retry is rejected too
        """
        query_id = await self.resolve_query_id(operation)
        try:
            return await call(query_id)
        except StaleQueryIdError as e:
            logger.warning(f"[QUERY IDS] {operation} rejected ({e.status}); refreshing query IDs")
            rejected = e

        try:
            await self.refresh()
        except LinkedInError as e:
            raise StaleQueryIdError(
                rejected.status,
                f"Query ID for {operation} was rejected and could not be refreshed ({e}). {MANUAL_REFRESH_HINT}",
            ) from e
        retry_id = self.cache.get_id(operation) or query_id
        try:
            return await call(retry_id)
        except StaleQueryIdError as e:
            raise StaleQueryIdError(
                e.status,
                f"Query ID for {operation} is stale even after refresh. {MANUAL_REFRESH_HINT}",
            ) from e
