"""
Base store — shared Supabase client access for all stores.

Domain-specific stores inherit from this class to get standardised
insert / select / update primitives. PostgREST errors surface as
DatabaseTransientError so callers can skip the affected job and retry later.
The helpers are coroutines, but the supabase-py client underneath is
synchronous and blocks the event loop for each round trip.
"""

import logging
from typing import Any, Dict, List

from postgrest.exceptions import APIError

from supplier_sync.core.config import settings
from supplier_sync.core.exceptions import DatabaseTransientError
from supplier_sync.clients.supabase_client import SupabaseClient

logger = logging.getLogger("base_store")


class BaseStore:
    """Base class for Supabase stores providing shared CRUD operations."""

    def __init__(self, supabase_client: SupabaseClient | None = None) -> None:
        self._supabase_client = supabase_client

    @property
    def _client(self):
        """Get the Supabase client instance (created lazily)."""
        if self._supabase_client is None:
            self._supabase_client = SupabaseClient(settings)
        return self._supabase_client.client

    async def _insert(self, table: str, rows: List[Dict[str, Any]]) -> None:
        """Insert rows into a table."""
        if not rows:
            return
        try:
            self._client.table(table).insert(rows).execute()
        except APIError as e:
            logger.info("supabase error table=%s detail=%s", table, str(e))
            raise DatabaseTransientError(f"Supabase insert into {table} failed: {e}") from e

    async def _select_in(
        self, table: str, column: str, values: List[Any], columns: str = "*"
    ) -> List[Dict[str, Any]]:
        """Select rows whose column matches any of the given values."""
        if not values:
            return []
        try:
            response = self._client.table(table).select(columns).in_(column, values).execute()
            return response.data or []
        except APIError as e:
            logger.info("supabase error table=%s detail=%s", table, str(e))
            raise DatabaseTransientError(f"Supabase select from {table} failed: {e}") from e

    async def _update(
        self, table: str, filters: Dict[str, Any], payload: Dict[str, Any]
    ) -> None:
        """Update rows in a table matching the filters."""
        try:
            query = self._client.table(table).update(payload)
            for key, value in filters.items():
                query = query.eq(key, value)
            query.execute()
        except APIError as e:
            logger.info("supabase error table=%s detail=%s", table, str(e))
            raise DatabaseTransientError(f"Supabase update {table} failed: {e}") from e

    async def _update_in(
        self, table: str, column: str, values: List[Any], payload: Dict[str, Any]
    ) -> None:
        """Update every row whose column matches any of the given values."""
        if not values:
            return
        try:
            self._client.table(table).update(payload).in_(column, values).execute()
        except APIError as e:
            logger.info("supabase error table=%s detail=%s", table, str(e))
            raise DatabaseTransientError(f"Supabase update {table} failed: {e}") from e
