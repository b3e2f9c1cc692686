"""
Product shapes for the two D365 OData APIs

Dataverse (`.../api/data/v9.2/`) and Finance & Operations (`.../data/`) share
OData v4 query syntax but differ in company handling. The shape is selected
once from configuration so the executor never branches on product.
"""

from typing import Dict
from urllib.parse import quote

import structlog

from ..config import ProductType

logger = structlog.get_logger(__name__)

CROSS_COMPANY_HEADER = "cross-company"


class ProductShape:
    """Common OData v4 request shape"""

    product: ProductType

    def __init__(self, endpoint: str, page_size: int = 500):
        self.endpoint = endpoint if endpoint.endswith("/") else f"{endpoint}/"
        self.page_size = page_size

    def entity_url(self, entity: str) -> str:
        return f"{self.endpoint}{quote(entity, safe='')}"

    def record_url(self, entity: str, key: str) -> str:
        return f"{self.entity_url(entity)}({quote(key, safe=_KEY_SAFE)})"

    def metadata_url(self) -> str:
        return f"{self.endpoint}$metadata"

    def base_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
            "Prefer": f'odata.include-annotations="*",odata.maxpagesize={self.page_size}',
        }

    def request_headers(self, cross_company: bool = False) -> Dict[str, str]:
        return self.base_headers()


class DataverseShape(ProductShape):
    """Dataverse Web API; no legal-entity partitioning"""

    product = ProductType.DATAVERSE

    def request_headers(self, cross_company: bool = False) -> Dict[str, str]:
        if cross_company:
            logger.warning("cross_company ignored: Dataverse has no cross-company concept")
        return self.base_headers()


class FinOpsShape(ProductShape):
    """Finance & Operations OData; cross-company spans all legal entities"""

    product = ProductType.FINOPS

    def request_headers(self, cross_company: bool = False) -> Dict[str, str]:
        headers = self.base_headers()
        if cross_company:
            headers[CROSS_COMPANY_HEADER] = "true"
        return headers


# Key predicates keep quotes, commas and '=' for composite keys like dataAreaId='usmf',Id='1'
_KEY_SAFE = "',=:@-"

_SHAPES = {
    ProductType.DATAVERSE: DataverseShape,
    ProductType.FINOPS: FinOpsShape,
}


def product_shape_for(product: ProductType, endpoint: str, page_size: int = 500) -> ProductShape:
    """Select the request shape for the configured product"""
    try:
        shape_cls = _SHAPES[ProductType(product)]
    except (KeyError, ValueError):
        raise ValueError(f"Unsupported product: {product}") from None
    return shape_cls(endpoint, page_size)
