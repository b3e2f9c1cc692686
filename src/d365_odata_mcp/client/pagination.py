"""
Next-link pagination accumulator
"""

from typing import Any, Dict, List, Optional

import structlog

from ..auth.token_provider import TokenProvider
from .interface import IQueryExecutor, QueryResult
from .query import ODataQuerySpec

logger = structlog.get_logger(__name__)


async def collect(
    spec: ODataQuerySpec,
    executor: IQueryExecutor,
    token_provider: TokenProvider,
) -> QueryResult:
    """
    Follow @odata.nextLink until `spec.top` records are gathered or the server runs dry.

    Pages are fetched strictly in link order. The token is re-resolved before
    every page, so a token expiring mid-collection is refreshed. Any error
    aborts the whole collection; no partial result is returned.

    Returns:
        QueryResult with at most `spec.top` records and no continuation link
    """
    records: List[Dict[str, Any]] = []
    total_count: Optional[int] = None
    next_link: Optional[str] = None
    page = 0

    while True:
        page += 1
        token = await token_provider.get_valid_token()
        result = await executor.execute(spec, token, next_link)

        records.extend(result.records)
        if total_count is None:
            total_count = result.total_count

        logger.debug(
            "Fetched page",
            entity=spec.entity,
            page=page,
            page_records=len(result.records),
            accumulated=len(records),
        )

        if len(records) >= spec.top or not result.next_link:
            break
        next_link = result.next_link

    logger.info(
        "Collection complete",
        entity=spec.entity,
        pages=page,
        records=min(len(records), spec.top),
        total_count=total_count,
    )
    return QueryResult(records=records[: spec.top], total_count=total_count, next_link=None)
