"""
Stacked Waterfall Layout Builder

Turns a pivoted query result into an immutable, renderer-agnostic layout:

    rows + field metadata + config
        -> resolve fields (stage dimension, measure, pivots, sort field)
        -> order rows
        -> classify each stage's sign once
        -> stack signed pivot segments on a running base
        -> value domain + band scale
        -> Layout

Usage:
    from waterfall_layout import FieldMeta, LayoutConfig, build_layout

    meta = FieldMeta.build(dimensions=["stage"], pivots=["x", "y"], measures=["amount"])
    rows = [
        {"stage": "Start", "amount": {"x": 100, "y": 50}},
        {"stage": "Drop", "amount": {"x": 30, "y": 10}},
    ]
    layout = build_layout(rows, meta, LayoutConfig(start_stage_label="Start",
                                                   treat_after_start_as_negative=True))

`build_layout` is a pure function: it keeps no state between calls and
returns a LayoutFailure (rather than raising) when a required field
category is missing.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .aggregator import (
    StageEntry,
    aggregate_stages,
    coerce_numeric,
    read_cell,
    unwrap_cell,
    validate_stacking,
)
from .fields import FieldMeta, LayoutFailure, PivotSeries, resolve_fields
from .scale import (
    BandScale,
    SurfaceSpec,
    ValueDomain,
    compute_band_scale,
    compute_value_domain,
    value_to_offset,
)
from .sign_policy import SignTier, resolve_sign_policy, stage_signs

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]


class WarningKind(Enum):
    AMBIGUOUS_START_STAGE = "AmbiguousStartStage"
    START_STAGE_NOT_FOUND = "StartStageNotFound"
    INVALID_NUMERIC_CELL = "InvalidNumericCell"


@dataclass(frozen=True)
class LayoutWarning:
    kind: WarningKind
    message: str
    details: Tuple[Tuple[str, Any], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"warning": self.kind.value, "message": self.message, **dict(self.details)}


@dataclass(frozen=True)
class LayoutConfig:
    """Flat configuration read by the engine."""
    stage_dimension_override: Optional[str] = None
    measure_override: Optional[str] = None
    sort_field_override: Optional[str] = None
    negative_stage_labels: Tuple[str, ...] = ()
    start_stage_label: Optional[str] = None
    treat_after_start_as_negative: bool = False
    require_pivots: bool = True


@dataclass(frozen=True)
class Layout:
    stages: Tuple[StageEntry, ...]
    pivots: Tuple[PivotSeries, ...]
    domain: ValueDomain
    bands: BandScale
    surface: SurfaceSpec
    stage_dimension: str
    measure: str
    sign_tier: SignTier
    warnings: Tuple[LayoutWarning, ...] = field(default=())

    def offset(self, value: float) -> float:
        return value_to_offset(value, self.domain, self.surface)

    @property
    def end_value(self) -> float:
        return self.stages[-1].end if self.stages else 0.0

    def to_frame(self) -> pd.DataFrame:
        """One row per segment, in stage then pivot order."""
        labels = {p.key: p.display_label for p in self.pivots}
        records = []
        for entry in self.stages:
            for segment in entry.segments:
                records.append({
                    "stage_index": entry.index,
                    "stage": entry.label,
                    "sign": entry.sign,
                    "base": entry.base,
                    "signed_total": entry.signed_total,
                    "pivot_key": segment.pivot_key,
                    "pivot_label": labels.get(segment.pivot_key, segment.pivot_key),
                    "raw_value": segment.raw_value,
                    "signed_value": segment.signed_value,
                    "bottom": segment.bottom,
                    "top": segment.top,
                    "renders": segment.renders,
                    "band_left": self.bands.positions[entry.index],
                    "band_width": self.bands.band_width,
                })
        columns = ["stage_index", "stage", "sign", "base", "signed_total", "pivot_key", "pivot_label",
                   "raw_value", "signed_value", "bottom", "top", "renders", "band_left", "band_width"]
        return pd.DataFrame.from_records(records, columns=columns)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable representation."""
        return {
            "stage_dimension": self.stage_dimension,
            "measure": self.measure,
            "sign_tier": self.sign_tier.value,
            "pivots": [{"key": p.key, "label": p.display_label} for p in self.pivots],
            "stages": [
                {
                    "label": entry.label,
                    "index": entry.index,
                    "sign": entry.sign,
                    "base": entry.base,
                    "signed_total": entry.signed_total,
                    "band_left": self.bands.positions[entry.index],
                    "segments": [
                        {
                            "pivot_key": s.pivot_key,
                            "raw_value": s.raw_value,
                            "signed_value": s.signed_value,
                            "bottom": s.bottom,
                            "top": s.top,
                            "renders": s.renders,
                        }
                        for s in entry.segments
                    ],
                }
                for entry in self.stages
            ],
            "domain": {"min": self.domain.min_y, "max": self.domain.max_y},
            "bands": {
                "count": self.bands.count,
                "band_width": self.bands.band_width,
                "gap": self.bands.gap,
                "extent": self.bands.extent,
            },
            "warnings": [w.to_dict() for w in self.warnings],
        }


def stage_label(row: Row, stage_dimension: str) -> str:
    value = unwrap_cell(row.get(stage_dimension))
    return "" if value is None else str(value)


def order_rows(rows: Sequence[Row], sort_field: Optional[str]) -> List[Row]:
    """
    Stable ascending sort by `sort_field` when rows carry it.

    Values that all read as numbers sort numerically, otherwise as text;
    rows missing the value go last. Without a usable sort field the caller's
    order is kept.
    """
    rows = list(rows)
    if not sort_field or not any(sort_field in row for row in rows):
        if sort_field:
            logger.debug(f"[LAYOUT] Sort field '{sort_field}' not present on rows, keeping input order")
        return rows

    keys = pd.Series([unwrap_cell(row.get(sort_field)) for row in rows], dtype="object")
    numeric = pd.to_numeric(keys, errors="coerce")
    if numeric.notna().sum() == keys.notna().sum():
        sort_keys = numeric
    else:
        sort_keys = keys.map(lambda v: None if pd.isna(v) else str(v))

    order = sort_keys.sort_values(kind="mergesort", na_position="last").index
    return [rows[i] for i in order]


def build_layout(
    rows: Sequence[Row],
    field_meta: Union[FieldMeta, Mapping[str, Any]],
    config: Optional[LayoutConfig] = None,
    surface: Optional[SurfaceSpec] = None,
) -> Union[Layout, LayoutFailure]:
    """
    Compute the stacked waterfall layout.

    Args:
        rows: Query-result rows; row[measure] maps pivot key -> cell
        field_meta: FieldMeta or a mapping accepted by FieldMeta.from_dict
        config: Field overrides and sign policy (defaults: positional signs)
        surface: Drawing surface size, margins, gap and minimum band width

    Returns:
        Layout, or LayoutFailure when a required field category is empty
    """
    config = config or LayoutConfig()
    surface = surface or SurfaceSpec()
    if not isinstance(field_meta, FieldMeta):
        field_meta = FieldMeta.from_dict(field_meta)

    resolution = resolve_fields(
        field_meta,
        stage_dimension_override=config.stage_dimension_override,
        measure_override=config.measure_override,
        sort_field_override=config.sort_field_override,
        require_pivots=config.require_pivots,
    )
    if isinstance(resolution, LayoutFailure):
        logger.warning(f"[LAYOUT] {resolution.kind.value}: {resolution.message}")
        return resolution

    dimension = resolution.stage_dimension.name
    measure = resolution.measure.name
    pivoted = bool(resolution.pivots)
    pivots = resolution.pivots or (PivotSeries(key=measure, label=resolution.measure.label),)

    ordered = order_rows(rows, resolution.sort_field)
    labels = [stage_label(row, dimension) for row in ordered]
    logger.info(f"[LAYOUT] INPUT: {len(ordered)} stages x {len(pivots)} pivots, stage={dimension}, measure={measure}")

    warnings = []

    cells = [read_cell(row, measure, p.key, pivoted) for row in ordered for p in pivots]
    flat, invalid = coerce_numeric(cells)
    width = len(pivots)
    raw_values = [flat[i * width:(i + 1) * width] for i in range(len(ordered))]
    if invalid:
        warnings.append(LayoutWarning(
            kind=WarningKind.INVALID_NUMERIC_CELL,
            message=f"{invalid} cell(s) could not be read as numbers and were treated as 0.",
            details=(("count", invalid),),
        ))

    policy = resolve_sign_policy(
        labels,
        negative_stage_labels=config.negative_stage_labels,
        start_stage_label=config.start_stage_label,
        treat_after_start_as_negative=config.treat_after_start_as_negative,
    )
    if policy.tier is SignTier.START_STAGE:
        if policy.ambiguous_start:
            warnings.append(LayoutWarning(
                kind=WarningKind.AMBIGUOUS_START_STAGE,
                message=f"{policy.start_match_count} stages match start stage '{policy.start_label}'; "
                        f"using the first (position {policy.start_index}).",
                details=(("start_stage", policy.start_label), ("matches", policy.start_match_count)),
            ))
        elif not policy.start_found and labels:
            warnings.append(LayoutWarning(
                kind=WarningKind.START_STAGE_NOT_FOUND,
                message=f"Start stage '{policy.start_label}' not found; treating the first stage as the start.",
                details=(("start_stage", policy.start_label),),
            ))

    signs = stage_signs(labels, policy)
    entries = aggregate_stages(labels, raw_values, signs, pivots)
    validate_stacking(entries)

    domain = compute_value_domain(entries)
    bands = compute_band_scale(len(entries), surface)

    for warning in warnings:
        logger.warning(f"[LAYOUT] {warning.kind.value}: {warning.message}")

    return Layout(
        stages=tuple(entries),
        pivots=tuple(pivots),
        domain=domain,
        bands=bands,
        surface=surface,
        stage_dimension=dimension,
        measure=measure,
        sign_tier=policy.tier,
        warnings=tuple(warnings),
    )
