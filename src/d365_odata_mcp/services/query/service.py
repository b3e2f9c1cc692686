"""
Query Service Implementation

Maps tool arguments onto the OData query pipeline and shapes plain results.
"""

import xml.etree.ElementTree as ET
from typing import Dict, Any, List, Optional

import structlog

from .interface import IQueryService
from ...auth.token_provider import TokenProvider
from ...client import IQueryExecutor, ODataQuerySpec, QueryDecodeError, collect

logger = structlog.get_logger(__name__)


class QueryService(IQueryService):
    """Query service over a single configured D365 environment"""

    def __init__(self, executor: IQueryExecutor, token_provider: TokenProvider):
        self.executor = executor
        self.token_provider = token_provider

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
        spec = ODataQuerySpec.from_arguments(
            entity=entity,
            filter=filter,
            select=select,
            orderby=orderby,
            top=top,
            skip=skip,
            expand=expand,
            cross_company=cross_company,
            count=count,
        )

        result = await collect(spec, self.executor, self.token_provider)

        response: Dict[str, Any] = {
            "entity": spec.entity,
            "count": len(result.records),
            "records": result.records,
        }
        if spec.count:
            response["total_count"] = result.total_count
        return response

    async def get_record(
        self,
        entity: str,
        key: str,
        select: Optional[str] = None,
        expand: Optional[str] = None,
        cross_company: bool = False,
    ) -> Dict[str, Any]:
        token = await self.token_provider.get_valid_token()
        record = await self.executor.get_record(
            entity,
            key,
            token,
            select=select.split(",") if select else None,
            expand=expand.split(",") if expand else None,
            cross_company=cross_company,
        )
        return {"entity": entity, "key": key, "record": record}

    async def list_entities(self, pattern: Optional[str] = None) -> Dict[str, Any]:
        token = await self.token_provider.get_valid_token()
        metadata_xml = await self.executor.fetch_metadata(token)
        entities = parse_entity_sets(metadata_xml)

        if pattern:
            needle = pattern.lower()
            entities = [e for e in entities if needle in e["name"].lower()]

        logger.info("Entity sets listed", total=len(entities), pattern=pattern)
        return {"entities": entities, "pattern": pattern, "total": len(entities)}

    def get_environment_info(self) -> Dict[str, Any]:
        return {
            "client": self.executor.get_client_info(),
            "auth": self.token_provider.get_provider_info(),
        }


def parse_entity_sets(metadata_xml: str) -> List[Dict[str, str]]:
    """Extract EntitySet names and types from a CSDL $metadata document"""
    try:
        root = ET.fromstring(metadata_xml)
    except ET.ParseError as e:
        raise QueryDecodeError(f"Invalid $metadata XML: {e}", metadata_xml[:500]) from e

    entity_sets = []
    for element in root.iter():
        # Namespaced tag, e.g. {http://docs.oasis-open.org/odata/ns/edm}EntitySet
        if element.tag.rsplit("}", 1)[-1] == "EntitySet" and element.get("Name"):
            entity_sets.append({
                "name": element.get("Name", ""),
                "entity_type": element.get("EntityType", ""),
            })
    return sorted(entity_sets, key=lambda e: e["name"].lower())
