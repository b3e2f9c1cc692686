"""
OData query model and query-string builder
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union
from urllib.parse import quote

DEFAULT_TOP = 50
MIN_TOP = 1
MAX_TOP = 1000

# Literal in OData expressions and field lists; '&', '=', '+', '#' and spaces are encoded
_ODATA_SAFE = "',()*:/@$"

FieldList = Union[str, Iterable[str], None]


def clamp_top(top: Optional[int]) -> int:
    """Clamp a requested record count into [MIN_TOP, MAX_TOP]"""
    if top is None:
        return DEFAULT_TOP
    return max(MIN_TOP, min(MAX_TOP, int(top)))


def normalize_fields(fields: FieldList) -> Optional[Tuple[str, ...]]:
    """Normalize a comma-separated string or iterable of field names"""
    if fields is None:
        return None
    if isinstance(fields, str):
        fields = fields.split(",")
    cleaned = tuple(f.strip() for f in fields if f and f.strip())
    return cleaned or None


@dataclass(frozen=True)
class ODataQuerySpec:
    """One structured query against an entity set"""

    entity: str
    filter: Optional[str] = None
    select: Optional[Tuple[str, ...]] = None
    orderby: Optional[str] = None
    top: int = DEFAULT_TOP
    skip: Optional[int] = None
    expand: Optional[Tuple[str, ...]] = None
    cross_company: bool = False
    count: bool = False

    def __post_init__(self) -> None:
        if not self.entity or not self.entity.strip():
            raise ValueError("entity must be a non-empty entity set name")
        if self.skip is not None and self.skip < 0:
            raise ValueError("skip must be >= 0")
        object.__setattr__(self, "entity", self.entity.strip())
        object.__setattr__(self, "top", clamp_top(self.top))
        object.__setattr__(self, "select", normalize_fields(self.select))
        object.__setattr__(self, "expand", normalize_fields(self.expand))

    @classmethod
    def from_arguments(
        cls,
        entity: str,
        filter: Optional[str] = None,
        select: FieldList = None,
        orderby: Optional[str] = None,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        expand: FieldList = None,
        cross_company: bool = False,
        count: bool = False,
    ) -> "ODataQuerySpec":
        """Build a spec from loosely-typed tool arguments"""
        return cls(
            entity=entity or "",
            filter=filter.strip() if filter and filter.strip() else None,
            select=normalize_fields(select),
            orderby=orderby.strip() if orderby and orderby.strip() else None,
            top=clamp_top(top),
            skip=skip or None,
            expand=normalize_fields(expand),
            cross_company=bool(cross_company),
            count=bool(count),
        )


def encode_component(value: str) -> str:
    return quote(value, safe=_ODATA_SAFE)


def to_query_string(spec: ODataQuerySpec) -> str:
    """
    Serialize a spec into an OData query string (without leading '?').

    Only present parameters are emitted; `$top` always is. Cross-company is
    not a query parameter, the product shape turns it into a header.
    """
    params = []
    if spec.filter:
        params.append(f"$filter={encode_component(spec.filter)}")
    if spec.select:
        params.append(f"$select={','.join(encode_component(f) for f in spec.select)}")
    if spec.orderby:
        params.append(f"$orderby={encode_component(spec.orderby)}")
    params.append(f"$top={clamp_top(spec.top)}")
    if spec.skip:
        params.append(f"$skip={int(spec.skip)}")
    if spec.expand:
        params.append(f"$expand={','.join(encode_component(e) for e in spec.expand)}")
    if spec.count:
        params.append("$count=true")
    return "&".join(params)
