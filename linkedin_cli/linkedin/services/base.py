"""
Base service for LinkedIn API operations.

Services share one LinkedInClient (pacing, retries and error mapping live
there) and decode Voyager JSON the same way.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from linkedin_cli.schemas.entities import Paging
from ..client import LinkedInClient

logger = logging.getLogger(__name__)


def read_paging(data: Dict[str, Any], start: int, count: int) -> Paging:
    """
    Read a Voyager `paging` block, keeping the requested start/count for any
    field that is missing, null or not a non-negative integer.
    """
    paging = data.get("paging")
    paging = paging if isinstance(paging, dict) else {}

    def field(name: str, default: Optional[int]) -> Optional[int]:
        value = paging.get(name)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            return default
        return value

    return Paging(start=field("start", start), count=field("count", count), total=field("total", None))


class LinkedInServiceBase:
    """
    Base class for LinkedIn API services.

    Args:
        client: Authenticated LinkedInClient
    """

    VOYAGER_BASE_URL = "https://www.linkedin.com/voyager/api"

    def __init__(self, client: LinkedInClient):
        self.client = client
        self.settings = client.settings

    def _save_raw_response(self, url: str, response_data: Any, endpoint_type: str = "unknown") -> None:
        """
        Save a raw LinkedIn response to disk for debugging.

        Only active when DEBUG_LINKEDIN_RESPONSES is set; files land in
        DEBUG_RESPONSES_DIR as `<endpoint_type>_<timestamp>.json`.
        """
        if not self.settings.DEBUG_LINKEDIN_RESPONSES:
            return

        try:
            debug_dir = Path(self.settings.DEBUG_RESPONSES_DIR)
            debug_dir.mkdir(parents=True, exist_ok=True)

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            filepath = debug_dir / f"{endpoint_type}_{timestamp}.json"
            debug_data = {
                "timestamp": timestamp,
                "endpoint_type": endpoint_type,
                "url": url,
                "response": response_data,
            }
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(debug_data, f, indent=2, ensure_ascii=False)

            logger.info(f"[DEBUG] Saved raw response to: {filepath}")
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"[DEBUG] Failed to save raw response: {e}")

    async def _make_request(
        self,
        path: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        debug_endpoint_type: str = "unknown",
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Request a Voyager path and decode the JSON body.

        Args:
            path: Path relative to the Voyager base URL
            method: HTTP method
            headers: Header overrides
            debug_endpoint_type: Label for the raw-response dump
            **kwargs: Passed to the client

        Returns:
            Decoded JSON object, or {} for a non-JSON body

        Raises:
            LinkedInApiError: If the request fails
        """
        logger.info(f"Making {method} request to LinkedIn API: {path[:100]}")
        response = await self.client.request(path, method=method, headers=headers, **kwargs)

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"[{debug_endpoint_type.upper()}] Non-JSON response body ({len(response.text)} chars)")
            return {}

        self._save_raw_response(f"{self.VOYAGER_BASE_URL}{path}", data, debug_endpoint_type)
        return data if isinstance(data, dict) else {}
