"""
D365 OData Query Executor

Issues read-only OData GET requests against Dataverse or Finance & Operations,
retrying transient failures with bounded exponential backoff.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

import httpx
import structlog

from ..auth.interface import Token
from .interface import (
    IQueryExecutor,
    QueryDecodeError,
    QueryExhaustedError,
    QueryRejectedError,
    QueryResult,
)
from .product import ProductShape
from .query import ODataQuerySpec, to_query_string, normalize_fields, encode_component
from .retry import DEFAULT_RETRY, RetryPolicy, is_transient_status, parse_retry_after

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class D365QueryExecutor(IQueryExecutor):
    """HTTP executor for D365 OData APIs with retry on transient failures"""

    def __init__(
        self,
        shape: ProductShape,
        policy: RetryPolicy = DEFAULT_RETRY,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep,
        verify: bool = True,
    ):
        self.shape = shape
        self.policy = policy
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep
        self._verify = verify

    async def _get_with_retry(self, url: str, headers: Dict[str, str]) -> httpx.Response:
        """
        GET `url`, retrying network errors, timeouts, 429 and 5xx.

        Raises:
            QueryRejectedError: Non-transient status, returned on first sight
            QueryExhaustedError: Transient failures outlasted the retry budget
        """
        retry_number = 0
        while True:
            attempt = retry_number + 1
            status_code: Optional[int] = None
            retry_after: Optional[float] = None

            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self._transport, verify=self._verify
                ) as client:
                    response = await client.get(url, headers=headers)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                if response.is_success:
                    if attempt > 1:
                        logger.info("Retry succeeded", url=url, attempts=attempt)
                    return response

                status_code = response.status_code
                if not is_transient_status(status_code):
                    logger.error(
                        "HTTP request rejected",
                        url=url,
                        status_code=status_code,
                        response_text=response.text[:1000],
                    )
                    raise QueryRejectedError(status_code, response.text, url)

                last_error = f"HTTP {status_code}: {response.text[:500]}"
                retry_after = parse_retry_after(response.headers.get("Retry-After"))

            retry_number += 1
            if not self.policy.should_retry(retry_number):
                logger.error(
                    "Max retries exhausted",
                    url=url,
                    attempts=attempt,
                    status_code=status_code,
                    error=last_error,
                )
                raise QueryExhaustedError(attempt, last_error, status_code)

            delay = self.policy.compute_delay(retry_number, retry_after)
            logger.warning(
                "Transient failure, will retry",
                url=url,
                attempt=attempt,
                max_attempts=self.policy.max_attempts,
                status_code=status_code,
                delay_seconds=round(delay, 2),
                delay_source="server" if retry_after is not None else "exponential_backoff",
                error=last_error,
            )
            await self._sleep(delay)

    def _headers(self, token: Token, cross_company: bool = False) -> Dict[str, str]:
        headers = self.shape.request_headers(cross_company)
        headers["Authorization"] = token.authorization_header
        return headers

    async def execute(
        self,
        spec: ODataQuerySpec,
        token: Token,
        next_link: Optional[str] = None,
    ) -> QueryResult:
        if next_link:
            url = next_link
        else:
            url = f"{self.shape.entity_url(spec.entity)}?{to_query_string(spec)}"

        logger.info(
            "Querying D365 entity",
            entity=spec.entity,
            product=self.shape.product.value,
            cross_company=spec.cross_company,
            url=url,
        )

        response = await self._get_with_retry(url, self._headers(token, spec.cross_company))
        result = _parse_envelope(response)

        logger.info(
            "D365 query successful",
            entity=spec.entity,
            record_count=len(result.records),
            has_next_link=result.next_link is not None,
        )
        return result

    async def get_record(
        self,
        entity: str,
        key: str,
        token: Token,
        select: Optional[Sequence[str]] = None,
        expand: Optional[Sequence[str]] = None,
        cross_company: bool = False,
    ) -> Dict[str, Any]:
        if not entity or not key:
            raise ValueError("entity and key are required")

        url = self.shape.record_url(entity, key)
        params = []
        select_fields = normalize_fields(select)
        expand_fields = normalize_fields(expand)
        if select_fields:
            params.append(f"$select={','.join(encode_component(f) for f in select_fields)}")
        if expand_fields:
            params.append(f"$expand={','.join(encode_component(e) for e in expand_fields)}")
        if params:
            url = f"{url}?{'&'.join(params)}"

        logger.info("Fetching D365 record", entity=entity, url=url)

        response = await self._get_with_retry(url, self._headers(token, cross_company))
        body = _decode_json(response)
        if not isinstance(body, dict):
            raise QueryDecodeError("Expected a JSON object for a single record", response.text[:500])
        return body

    async def fetch_metadata(self, token: Token) -> str:
        url = self.shape.metadata_url()
        headers = self._headers(token)
        headers["Accept"] = "application/xml"

        logger.info("Fetching D365 metadata", url=url)
        response = await self._get_with_retry(url, headers)
        metadata_xml = response.text

        logger.info("D365 metadata retrieved", size_bytes=len(metadata_xml))
        return metadata_xml

    def get_client_info(self) -> Dict[str, Any]:
        return {
            "type": "odata_executor",
            "product": self.shape.product.value,
            "endpoint": self.shape.endpoint,
            "page_size": self.shape.page_size,
            "timeout_seconds": self.timeout,
            "verify_ssl": self._verify,
            "retry_policy": {
                "max_retries": self.policy.max_retries,
                "base_delay": self.policy.base_delay,
                "max_delay": self.policy.max_delay,
                "jitter": self.policy.jitter,
                "max_retry_after": self.policy.max_retry_after,
            },
            "capabilities": ["query", "get_record", "list_metadata"],
        }


def _decode_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        logger.error("Response body is not JSON", status_code=response.status_code, error=str(e))
        raise QueryDecodeError(f"Response body is not valid JSON: {e}", response.text[:500]) from e


def _parse_envelope(response: httpx.Response) -> QueryResult:
    """Parse an OData collection envelope: value, @odata.count, @odata.nextLink"""
    body = _decode_json(response)
    if not isinstance(body, dict) or not isinstance(body.get("value"), list):
        raise QueryDecodeError(
            "Expected an OData envelope with a 'value' array", response.text[:500]
        )

    total_count = body.get("@odata.count")
    if total_count is not None:
        try:
            total_count = int(total_count)
        except (TypeError, ValueError):
            raise QueryDecodeError(
                f"Invalid @odata.count: {total_count!r}", response.text[:500]
            ) from None

    next_link = body.get("@odata.nextLink")
    if next_link is not None and not isinstance(next_link, str):
        raise QueryDecodeError(f"Invalid @odata.nextLink: {next_link!r}", response.text[:500])

    return QueryResult(records=body["value"], total_count=total_count, next_link=next_link or None)
