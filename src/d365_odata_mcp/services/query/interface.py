"""
Query Service Interface

Defines contract for the read-only D365 query service behind the MCP tools
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional


class IQueryService(ABC):
    """Interface for query services"""

    @abstractmethod
    async def query_entity(
        self,
        entity: str,
        filter: Optional[str] = None,
        select: Optional[str] = None,
        orderby: Optional[str] = None,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        expand: Optional[str] = None,
        cross_company: bool = False,
        count: bool = False,
    ) -> Dict[str, Any]:
        """
        Query an entity set, following next links up to `top` records.

        Args:
            entity: Entity set name (e.g. 'accounts', 'CustomersV3')
            filter: OData $filter expression
            select: Comma-separated field names
            orderby: OData $orderby expression
            top: Maximum records (clamped to 1..1000, default 50)
            skip: Records to skip
            expand: Comma-separated navigation properties
            cross_company: Query all legal entities (Finance & Operations only)
            count: Include the server-side total count

        Returns:
            Dict with entity, count, records and optionally total_count
        """
        pass

    @abstractmethod
    async def get_record(
        self,
        entity: str,
        key: str,
        select: Optional[str] = None,
        expand: Optional[str] = None,
        cross_company: bool = False,
    ) -> Dict[str, Any]:
        """
        Get a single record by key.

        Returns:
            Dict with entity, key and record
        """
        pass

    @abstractmethod
    async def list_entities(self, pattern: Optional[str] = None) -> Dict[str, Any]:
        """
        List entity sets from the service $metadata.

        Args:
            pattern: Case-insensitive substring filter on entity set names

        Returns:
            Dict with entities and total
        """
        pass

    @abstractmethod
    def get_environment_info(self) -> Dict[str, Any]:
        """
        Describe the configured environment without secrets.

        Returns:
            Product, endpoint, auth and retry settings
        """
        pass
