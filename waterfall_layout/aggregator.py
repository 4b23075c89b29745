"""
Stacked aggregation: signed segments, cumulative bases and stage totals.

Stages are walked in presentation order. Each stage starts at the running
base, its pivot segments are stacked on top of each other in pivot order,
and the stage's signed total moves the base for the next stage:

    bottom_j = acc,  top_j = acc + signed_j,  acc += signed_j
    signed_total_i = sum_j signed_j
    base_{i+1} = base_i + signed_total_i
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd

from .fields import PivotSeries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedSegment:
    stage_index: int
    pivot_key: str
    raw_value: float
    signed_value: float
    bottom: float
    top: float

    @property
    def renders(self) -> bool:
        """Zero segments stay in the model for traceability but draw nothing."""
        return self.signed_value != 0


@dataclass(frozen=True)
class StageEntry:
    label: str
    index: int
    sign: int
    base: float
    signed_total: float
    segments: Tuple[SignedSegment, ...]

    @property
    def end(self) -> float:
        return self.base + self.signed_total

    @property
    def raw_total(self) -> float:
        return float(sum(s.raw_value for s in self.segments))


def unwrap_cell(cell: Any) -> Any:
    """Query-result cells arrive as {"value": ...}; bare values pass through."""
    if isinstance(cell, Mapping):
        return cell.get("value")
    return cell


def read_cell(row: Mapping[str, Any], measure: str, pivot_key: str, pivoted: bool = True) -> Any:
    """
    Read the raw (uncoerced) cell for one (measure, pivot) pair.

    Pivoted rows hold a mapping pivot_key -> cell under the measure name;
    unpivoted rows hold the cell directly.
    """
    measure_cell = row.get(measure)
    if not pivoted:
        return unwrap_cell(measure_cell)
    if isinstance(measure_cell, Mapping):
        return unwrap_cell(measure_cell.get(pivot_key))
    return None


def to_number(value: Any) -> float:
    """
    Read one cell as a finite float.

    Returns NaN for a missing cell and raises ValueError when the cell is
    present but cannot be read as a finite number (text, booleans,
    containers, infinities, integers beyond the float range).
    """
    if value is None:
        return float("nan")
    if isinstance(value, (bool, np.bool_)) or not pd.api.types.is_scalar(value):
        raise ValueError(f"Not a numeric cell: {value!r}")
    if pd.isna(value):
        return float("nan")
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (OverflowError, TypeError, ValueError) as e:
        raise ValueError(f"Not a numeric cell: {value!r}") from e
    if not math.isfinite(number):
        raise ValueError(f"Not a finite cell: {value!r}")
    return number


def coerce_numeric(values: Sequence[Any]) -> Tuple[List[float], int]:
    """
    Coerce raw cells to floats.

    Missing cells become 0. Cells that cannot be read as a finite number also
    become 0 and are counted as invalid.

    Returns:
        (floats, invalid_count)
    """
    numbers = []
    invalid = 0
    for value in values:
        try:
            number = to_number(value)
        except ValueError:
            invalid += 1
            number = 0.0
        numbers.append(0.0 if math.isnan(number) else number)
    return numbers, invalid


def aggregate_stages(
    stage_labels: Sequence[str],
    raw_values: Sequence[Sequence[float]],
    signs: Sequence[int],
    pivots: Sequence[PivotSeries],
) -> List[StageEntry]:
    """
    Build the ordered StageEntry list.

    Args:
        stage_labels: Stage labels in presentation order
        raw_values: Per stage, one coerced raw value per pivot (pivot order)
        signs: Per stage, +1 or -1 from the sign classifier
        pivots: Pivot series in stacking order

    Returns:
        List of StageEntry; the first stage's base is always 0
    """
    if not (len(stage_labels) == len(raw_values) == len(signs)):
        raise ValueError(
            f"Mismatched stage inputs: labels={len(stage_labels)}, "
            f"values={len(raw_values)}, signs={len(signs)}"
        )

    entries = []
    base = 0.0
    for i, (label, values, sign) in enumerate(zip(stage_labels, raw_values, signs)):
        if len(values) != len(pivots):
            raise ValueError(f"Stage {i} has {len(values)} values for {len(pivots)} pivots")

        acc = base
        signed_total = 0.0
        segments = []
        for pivot, raw in zip(pivots, values):
            # `or 0.0` folds -0.0 from negative stages into 0.0
            signed = float(sign * raw) or 0.0
            segments.append(SignedSegment(
                stage_index=i,
                pivot_key=pivot.key,
                raw_value=float(raw),
                signed_value=signed,
                bottom=acc,
                top=acc + signed,
            ))
            acc += signed
            signed_total += signed

        entries.append(StageEntry(
            label=label,
            index=i,
            sign=sign,
            base=base,
            signed_total=signed_total,
            segments=tuple(segments),
        ))
        logger.debug(f"[MATH] STAGE {i} '{label}': sign={sign:+d}, base={base:.4f}, total={signed_total:+.4f}")
        base = base + signed_total

    return entries


def validate_stacking(entries: Sequence[StageEntry]) -> Dict[str, float]:
    """Check the reconciliation and cumulative invariants (fail fast)."""
    expected_base = 0.0
    segment_count = 0
    for entry in entries:
        parts = sum(s.signed_value for s in entry.segments)
        assert entry.signed_total == parts, (
            f"Stage '{entry.label}' total {entry.signed_total!r} != sum of segments {parts!r}"
        )
        assert entry.base == expected_base, (
            f"Stage '{entry.label}' base {entry.base!r} != cumulative {expected_base!r}"
        )
        expected_base = entry.base + entry.signed_total
        segment_count += len(entry.segments)

    logger.debug(f"[MATH] STACKING_VALIDATION: stages={len(entries)}, segments={segment_count}, end={expected_base:.4f}")
    return {"stages": len(entries), "segments": segment_count, "end_value": expected_base}
