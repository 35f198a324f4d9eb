"""
Pydantic schemas for normalized LinkedIn data.
"""
from linkedin_cli.schemas import entities
from linkedin_cli.schemas import query_ids

__all__ = ["entities", "query_ids"]
