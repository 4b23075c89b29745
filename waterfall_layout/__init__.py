"""
Stacked Waterfall Layout package.

Computes a deterministic, renderer-agnostic stacked waterfall layout from a
pivoted result set: signed stage totals on a running base, per-subcategory
stacked segments, the value domain and the band scale.
"""

__version__ = "0.1.0"

# Import field metadata and resolution
from .fields import (
    Field,
    PivotSeries,
    FieldMeta,
    FieldResolution,
    FailureKind,
    LayoutFailure,
    resolve_fields
)

# Import sign classification
from .sign_policy import (
    SignTier,
    SignPolicy,
    resolve_sign_policy,
    classify_sign,
    stage_signs
)

# Import stacked aggregation
from .aggregator import (
    SignedSegment,
    StageEntry,
    coerce_numeric,
    aggregate_stages,
    validate_stacking
)

# Import scale calculation
from .scale import (
    SurfaceSpec,
    ValueDomain,
    BandScale,
    compute_value_domain,
    compute_band_scale,
    value_to_offset
)

# Import the layout builder
from .layout import (
    Layout,
    LayoutConfig,
    LayoutWarning,
    WarningKind,
    order_rows,
    build_layout
)

from .config_loader import load_config, layout_config_from_dict, surface_from_dict
from .pivoting import rows_from_long_frame

# Define what should be available in "from waterfall_layout import *"
__all__ = [
    # Fields
    'Field',
    'PivotSeries',
    'FieldMeta',
    'FieldResolution',
    'FailureKind',
    'LayoutFailure',
    'resolve_fields',

    # Signs
    'SignTier',
    'SignPolicy',
    'resolve_sign_policy',
    'classify_sign',
    'stage_signs',

    # Aggregation
    'SignedSegment',
    'StageEntry',
    'coerce_numeric',
    'aggregate_stages',
    'validate_stacking',

    # Scale
    'SurfaceSpec',
    'ValueDomain',
    'BandScale',
    'compute_value_domain',
    'compute_band_scale',
    'value_to_offset',

    # Layout
    'Layout',
    'LayoutConfig',
    'LayoutWarning',
    'WarningKind',
    'order_rows',
    'build_layout',

    # Configuration and ingestion
    'load_config',
    'layout_config_from_dict',
    'surface_from_dict',
    'rows_from_long_frame'
]
