"""Query service implementations"""

from .interface import IQueryService
from .service import QueryService

__all__ = [
    "IQueryService",
    "QueryService"
]
