"""
D365 Query Executor Interface

Defines the contract for OData query executors, the result envelope and the
query error taxonomy.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Sequence

from ..auth.interface import Token
from .query import ODataQuerySpec


@dataclass
class QueryResult:
    """One OData response envelope (or a bounded accumulation of several)"""

    records: List[Dict[str, Any]] = field(default_factory=list)
    total_count: Optional[int] = None
    next_link: Optional[str] = None


class QueryError(Exception):
    """Base class for data endpoint failures"""

    def to_dict(self) -> Dict[str, Any]:
        return {"error": "query_failed", "message": str(self)}


class QueryRejectedError(QueryError):
    """Non-transient HTTP failure (4xx other than 429); never retried"""

    def __init__(self, status_code: int, body: str, url: Optional[str] = None):
        super().__init__(f"D365 rejected the request with status {status_code}: {body[:1000]}")
        self.status_code = status_code
        self.body = body
        self.url = url

    def to_dict(self) -> Dict[str, Any]:
        return {"error": "rejected", "status_code": self.status_code, "body": self.body}


class QueryExhaustedError(QueryError):
    """Transient failures (network, timeout, 429, 5xx) persisted past the retry budget"""

    def __init__(
        self,
        attempts: int,
        last_error: str,
        status_code: Optional[int] = None,
    ):
        super().__init__(f"Request failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "retries_exhausted",
            "attempts": self.attempts,
            "status_code": self.status_code,
            "last_error": self.last_error,
        }


class QueryDecodeError(QueryError):
    """Successful response whose body is not the expected JSON shape"""

    def __init__(self, message: str, body_excerpt: str = ""):
        super().__init__(message)
        self.body_excerpt = body_excerpt

    def to_dict(self) -> Dict[str, Any]:
        return {"error": "decode_failed", "message": str(self), "body_excerpt": self.body_excerpt}


class IQueryExecutor(ABC):
    """Interface for D365 OData query executors"""

    @abstractmethod
    async def execute(
        self,
        spec: ODataQuerySpec,
        token: Token,
        next_link: Optional[str] = None,
    ) -> QueryResult:
        """
        Execute one OData GET against an entity set.

        Args:
            spec: Structured query
            token: Valid bearer token
            next_link: Continuation URL from a previous page; used verbatim

        Returns:
            Parsed response envelope

        Raises:
            QueryError: Rejected, exhausted or undecodable response
        """
        pass

    @abstractmethod
    async def get_record(
        self,
        entity: str,
        key: str,
        token: Token,
        select: Optional[Sequence[str]] = None,
        expand: Optional[Sequence[str]] = None,
        cross_company: bool = False,
    ) -> Dict[str, Any]:
        """
        Fetch a single record by key.

        Args:
            entity: Entity set name
            key: OData key predicate content (e.g. a GUID or "dataAreaId='usmf',CustomerAccount='US-001'")
            token: Valid bearer token

        Returns:
            The record as a JSON object
        """
        pass

    @abstractmethod
    async def fetch_metadata(self, token: Token) -> str:
        """
        Get raw OData $metadata XML.

        Returns:
            Complete CSDL metadata document
        """
        pass

    @abstractmethod
    def get_client_info(self) -> Dict[str, Any]:
        """
        Get executor information.

        Returns:
            Executor metadata (product, endpoint, retry policy)
        """
        pass
