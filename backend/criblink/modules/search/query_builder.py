"""
Small SQL builder for the listings search.

Predicates are written with ``?`` markers and carry their bound values as
``Param`` objects. Placeholder names are only assigned when the final
statement is rendered, in a single left-to-right pass; the same ``Param``
object used in several fragments (e.g. in the WHERE clause and in the rank
expression) is bound once and shares one name.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple


class Param:
    """A bound value; identity decides whether two markers share a placeholder"""

    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"Param({self.value!r})"


@dataclass(frozen=True)
class SqlFragment:
    """SQL text with one ``?`` marker per entry in ``params``"""
    sql: str
    params: Tuple[Param, ...] = ()

    def __post_init__(self):
        markers = self.sql.count("?")
        if markers != len(self.params):
            raise ValueError(f"Fragment has {markers} markers but {len(self.params)} params: {self.sql}")

    @property
    def values(self) -> List[Any]:
        return [p.value for p in self.params]


def fragment(sql: str, *values: Any) -> SqlFragment:
    """Build a fragment, wrapping raw values in fresh Params"""
    return SqlFragment(sql, tuple(v if isinstance(v, Param) else Param(v) for v in values))


def any_of(fragments: Sequence[SqlFragment]) -> SqlFragment:
    """OR together fragments as one parenthesized fragment"""
    params: List[Param] = []
    for f in fragments:
        params.extend(f.params)
    return SqlFragment("(" + " OR ".join(f.sql for f in fragments) + ")", tuple(params))


@dataclass
class CompiledQueryPlan:
    """Everything needed to render the listings SELECT and its COUNT"""
    strict: List[SqlFragment] = field(default_factory=list)
    search_group: List[SqlFragment] = field(default_factory=list)
    rank: Optional[SqlFragment] = None
    order_by: List[str] = field(default_factory=list)
    order_strategy: str = "default"
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def predicates(self) -> List[SqlFragment]:
        """The WHERE conditions: strict predicates, then the search OR-group as one predicate"""
        predicates = list(self.strict)
        if self.search_group:
            predicates.append(any_of(self.search_group))
        return predicates


BASE_FROM = """
FROM property_listings pl
LEFT JOIN property_details pd ON pl.property_id = pd.property_id
LEFT JOIN users u ON pl.agent_id = u.user_id
LEFT JOIN agencies a ON pl.agency_id = a.agency_id
""".strip()

DETAIL_COLUMNS = (
    "pd.description", "pd.square_footage", "pd.lot_size", "pd.year_built", "pd.heating_type",
    "pd.cooling_type", "pd.parking", "pd.amenities", "pd.land_size", "pd.zoning_type", "pd.title_type",
)

EFFECTIVE_PRIORITY = "COALESCE(a.featured_priority, u.featured_priority, 0)"

FEATURED_NOW = "pl.is_featured = TRUE AND pl.featured_expires_at > NOW()"


class _Renderer:
    """Assigns :p1, :p2, ... names to Params in order of first appearance"""

    def __init__(self):
        self.names: Dict[Param, str] = {}
        self.bound: Dict[str, Any] = {}

    def render(self, frag: SqlFragment) -> str:
        pieces = frag.sql.split("?")
        out = [pieces[0]]
        for param, piece in zip(frag.params, pieces[1:]):
            out.append(":" + self.bind(param))
            out.append(piece)
        return "".join(out)

    def bind(self, param: Param) -> str:
        if param not in self.names:
            name = f"p{len(self.names) + 1}"
            self.names[param] = name
            self.bound[name] = param.value
        return self.names[param]


def _where(renderer: _Renderer, plan: CompiledQueryPlan) -> str:
    conditions = [renderer.render(p) for p in plan.predicates]
    return ("WHERE " + " AND ".join(conditions)) if conditions else ""


def render_select(plan: CompiledQueryPlan) -> Tuple[str, Dict[str, Any]]:
    """Render the paginated SELECT; LIMIT and OFFSET are always the last parameters"""
    renderer = _Renderer()

    columns = ["pl.*", *DETAIL_COLUMNS, f"{EFFECTIVE_PRIORITY} AS effective_priority"]
    if plan.rank is not None:
        columns.append(f"{renderer.render(plan.rank)} AS rank")

    where = _where(renderer, plan)
    order_by = ("ORDER BY " + ", ".join(plan.order_by)) if plan.order_by else ""
    limit_name = renderer.bind(Param(plan.limit))
    offset_name = renderer.bind(Param(plan.offset))

    parts = [
        "SELECT " + ", ".join(columns),
        BASE_FROM,
        where,
        order_by,
        f"LIMIT :{limit_name} OFFSET :{offset_name}",
    ]
    return "\n".join(p for p in parts if p), renderer.bound


def render_count(plan: CompiledQueryPlan) -> Tuple[str, Dict[str, Any]]:
    """Render the COUNT over the same predicates, without ranking or pagination"""
    renderer = _Renderer()
    where = _where(renderer, plan)
    parts = ["SELECT COUNT(*) AS count", BASE_FROM, where]
    return "\n".join(p for p in parts if p), renderer.bound
