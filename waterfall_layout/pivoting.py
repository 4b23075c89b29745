"""
Long-format ingestion.

Most tables come tidy (one row per stage x subcategory). This turns such a
DataFrame into the pivoted row shape `build_layout` reads, keeping stage and
subcategory order as first seen in the data.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .aggregator import to_number
from .fields import FieldMeta

logger = logging.getLogger(__name__)


def _combine_cells(values: List[Any]) -> Any:
    """
    Merge the measure values of one (stage, pivot) pair into a single cell.

    Readable values are summed (None when all are missing). If any value
    cannot be read as a number the raw value is kept, so the layout treats
    the pair as 0 and reports it.
    """
    present = []
    for value in values:
        try:
            number = to_number(value)
        except ValueError:
            return value
        if not math.isnan(number):
            present.append(number)
    return sum(present) if present else None


def rows_from_long_frame(
    df: pd.DataFrame,
    stage_column: str,
    pivot_column: str,
    measure_column: str,
    sort_column: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], FieldMeta]:
    """
    Pivot a long-format DataFrame into query-result rows plus field metadata.

    Args:
        df: Long-format data, one row per (stage, pivot)
        stage_column: Column holding the stage label
        pivot_column: Column holding the subcategory
        measure_column: Numeric column to stack
        sort_column: Optional column copied onto each row (first value per stage)
            so the layout can order stages by it

    Returns:
        (rows, field_meta); duplicate (stage, pivot) pairs are summed, a pair
        holding an unreadable value keeps that raw value, and
        absent pairs are left missing
    """
    required = [stage_column, pivot_column, measure_column] + ([sort_column] if sort_column else [])
    missing_columns = [c for c in required if c not in df.columns]
    if missing_columns:
        raise ValueError(f"Missing required columns: {missing_columns}")

    if df.empty:
        logger.warning("Long-format frame is empty, no stages or pivots to build")
        return [], FieldMeta.build(dimensions=[stage_column], measures=[measure_column])

    data = df.copy()
    data[stage_column] = data[stage_column].astype(str)
    data[pivot_column] = data[pivot_column].astype(str)

    stages = list(pd.unique(data[stage_column]))
    pivots = list(pd.unique(data[pivot_column]))

    cells_by_stage = {stage: {p: None for p in pivots} for stage in stages}
    for (stage, pivot), values in data.groupby([stage_column, pivot_column], sort=False)[measure_column]:
        cells_by_stage[stage][pivot] = _combine_cells(values.tolist())

    sort_values = data.groupby(stage_column, sort=False)[sort_column].first() if sort_column else None

    rows = []
    for stage in stages:
        row = {stage_column: stage, measure_column: cells_by_stage[stage]}
        if sort_values is not None:
            value = sort_values.get(stage)
            row[sort_column] = None if pd.isna(value) else value
        rows.append(row)

    logger.info(f"Pivoted {len(data)} long rows into {len(rows)} stages x {len(pivots)} pivots")
    meta = FieldMeta.build(dimensions=[stage_column], pivots=pivots, measures=[measure_column])
    return rows, meta
