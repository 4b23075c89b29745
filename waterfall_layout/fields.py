"""
Field metadata and field resolution for the stacked waterfall layout.

A query result arrives with three categories of fields:
- dimensions: the stage dimension lives here (one bar per stage)
- pivots: the subcategories stacked inside each bar
- measures: the numeric value being decomposed

`resolve_fields` picks the stage dimension and measure to use (configured
override first, positional default second) and reports a `LayoutFailure`
instead of raising when a required category is empty.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)


class FailureKind(Enum):
    MISSING_STAGE_DIMENSION = "MissingStageDimension"
    MISSING_PIVOT_BREAKDOWN = "MissingPivotBreakdown"
    MISSING_MEASURE = "MissingMeasure"


_FAILURE_MESSAGES = {
    FailureKind.MISSING_STAGE_DIMENSION: "Waterfall requires at least one dimension for the stages.",
    FailureKind.MISSING_PIVOT_BREAKDOWN: "Stacked waterfall requires a pivot to break each stage down.",
    FailureKind.MISSING_MEASURE: "Waterfall requires at least one measure.",
}


@dataclass(frozen=True)
class LayoutFailure:
    """Structured failure returned instead of a layout."""
    kind: FailureKind
    message: str

    @classmethod
    def of(cls, kind: FailureKind) -> "LayoutFailure":
        return cls(kind=kind, message=_FAILURE_MESSAGES[kind])

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.kind.value, "message": self.message}


@dataclass(frozen=True)
class Field:
    name: str
    label: Optional[str] = None

    @property
    def display_label(self) -> str:
        return self.label or self.name


@dataclass(frozen=True)
class PivotSeries:
    """One subcategory; position in FieldMeta.pivots is the stacking order."""
    key: str
    label: Optional[str] = None

    @property
    def display_label(self) -> str:
        return self.label or self.key


def _as_field(item: Union[str, Field, Mapping[str, Any]]) -> Field:
    if isinstance(item, Field):
        return item
    if isinstance(item, str):
        return Field(name=item)
    if isinstance(item, Mapping) and "name" in item:
        return Field(name=str(item["name"]), label=item.get("label_short") or item.get("label"))
    raise ValueError(f"Cannot interpret field entry: {item!r}")


def _as_pivot(item: Union[str, PivotSeries, Mapping[str, Any]]) -> PivotSeries:
    if isinstance(item, PivotSeries):
        return item
    if isinstance(item, str):
        return PivotSeries(key=item)
    if isinstance(item, Mapping) and "key" in item:
        return PivotSeries(key=str(item["key"]), label=item.get("label"))
    raise ValueError(f"Cannot interpret pivot entry: {item!r}")


@dataclass(frozen=True)
class FieldMeta:
    dimensions: Tuple[Field, ...] = ()
    pivots: Tuple[PivotSeries, ...] = ()
    measures: Tuple[Field, ...] = ()

    @classmethod
    def build(
        cls,
        dimensions: Iterable = (),
        pivots: Iterable = (),
        measures: Iterable = (),
    ) -> "FieldMeta":
        """Build from plain names, mappings or Field/PivotSeries objects."""
        return cls(
            dimensions=tuple(_as_field(d) for d in dimensions),
            pivots=tuple(_as_pivot(p) for p in pivots),
            measures=tuple(_as_field(m) for m in measures),
        )

    @classmethod
    def from_dict(cls, meta: Mapping[str, Any]) -> "FieldMeta":
        """
        Build from a mapping of field lists.

        Accepts either `dimensions`/`measures` or the query-response names
        `dimension_like`/`measure_like`; pivots are read from `pivots`.
        """
        dimensions = meta.get("dimensions", meta.get("dimension_like")) or []
        measures = meta.get("measures", meta.get("measure_like")) or []
        pivots = meta.get("pivots") or []
        return cls.build(dimensions=dimensions, pivots=pivots, measures=measures)

    def dimension_names(self) -> Sequence[str]:
        return [d.name for d in self.dimensions]

    def measure_names(self) -> Sequence[str]:
        return [m.name for m in self.measures]


@dataclass(frozen=True)
class FieldResolution:
    """Fields chosen for one layout computation."""
    stage_dimension: Field
    measure: Field
    pivots: Tuple[PivotSeries, ...]
    sort_field: Optional[str] = None


def _pick(fields: Sequence[Field], override: Optional[str]) -> Field:
    if override:
        for field in fields:
            if field.name == override:
                return field
        logger.debug(f"[FIELDS] Override '{override}' not present, using first field '{fields[0].name}'")
    return fields[0]


def resolve_fields(
    field_meta: FieldMeta,
    stage_dimension_override: Optional[str] = None,
    measure_override: Optional[str] = None,
    sort_field_override: Optional[str] = None,
    require_pivots: bool = True,
) -> Union[FieldResolution, LayoutFailure]:
    """
    Choose the stage dimension, measure and sort field.

    Args:
        field_meta: Available dimensions, pivots and measures
        stage_dimension_override: Dimension name to prefer over the first dimension
        measure_override: Measure name to prefer over the first measure
        sort_field_override: Field to order rows by; kept as-is here, the
            builder only applies it when rows actually carry it
        require_pivots: Report MissingPivotBreakdown when no pivots exist

    Returns:
        FieldResolution, or LayoutFailure naming the first missing category
        (checked in order: dimensions, pivots, measures)
    """
    if not field_meta.dimensions:
        return LayoutFailure.of(FailureKind.MISSING_STAGE_DIMENSION)
    if require_pivots and not field_meta.pivots:
        return LayoutFailure.of(FailureKind.MISSING_PIVOT_BREAKDOWN)
    if not field_meta.measures:
        return LayoutFailure.of(FailureKind.MISSING_MEASURE)

    stage_dimension = _pick(field_meta.dimensions, stage_dimension_override)
    measure = _pick(field_meta.measures, measure_override)

    logger.debug(
        f"[FIELDS] stage={stage_dimension.name}, measure={measure.name}, "
        f"pivots={len(field_meta.pivots)}, sort={sort_field_override}"
    )
    return FieldResolution(
        stage_dimension=stage_dimension,
        measure=measure,
        pivots=tuple(field_meta.pivots),
        sort_field=sort_field_override or None,
    )
