"""
D365 Client module

Read-only OData query pipeline for Dataverse and Finance & Operations:
query building, product shapes, retry policy, execution and pagination.
"""

from .query import ODataQuerySpec, to_query_string, clamp_top
from .interface import (
    IQueryExecutor,
    QueryResult,
    QueryError,
    QueryRejectedError,
    QueryExhaustedError,
    QueryDecodeError,
)
from .product import ProductShape, DataverseShape, FinOpsShape, product_shape_for, CROSS_COMPANY_HEADER
from .retry import RetryPolicy, DEFAULT_RETRY
from .executor import D365QueryExecutor
from .pagination import collect

__all__ = [
    "ODataQuerySpec",
    "to_query_string",
    "clamp_top",
    "IQueryExecutor",
    "QueryResult",
    "QueryError",
    "QueryRejectedError",
    "QueryExhaustedError",
    "QueryDecodeError",
    "ProductShape",
    "DataverseShape",
    "FinOpsShape",
    "product_shape_for",
    "CROSS_COMPANY_HEADER",
    "RetryPolicy",
    "DEFAULT_RETRY",
    "D365QueryExecutor",
    "collect",
]
