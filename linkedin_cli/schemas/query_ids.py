"""
Pydantic schemas for the persisted query-ID snapshot.
"""
from pathlib import Path
from typing import Dict, Optional

from pydantic import Field

from .entities import LinkedInModel


class QueryIdDiscoveryInfo(LinkedInModel):
    """Where the snapshot came from: a capture-file path or a live-discovery label."""
    har_path: Optional[str] = None


class QueryIdSnapshot(LinkedInModel):
    """On-disk layout of query-ids.json."""
    fetched_at: str = Field(..., description="ISO-8601 refresh timestamp")
    ids: Dict[str, str] = Field(default_factory=dict)
    discovery: QueryIdDiscoveryInfo = Field(default_factory=QueryIdDiscoveryInfo)
    headers: Optional[Dict[str, str]] = None
    variables: Optional[Dict[str, str]] = None


class QueryIdSnapshotInfo(LinkedInModel):
    cache_path: Path
    snapshot: QueryIdSnapshot
    age_ms: float
    is_fresh: bool
