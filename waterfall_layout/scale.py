"""
Value domain and band scale for a stacked waterfall.

The engine stays renderer-agnostic: it reports the value range to draw, the
band width and the left edge of every band, and a linear value -> vertical
offset mapping (higher value, smaller offset from the top).
"""

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .aggregator import StageEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SurfaceSpec:
    """Drawing surface size and spacing, in renderer units (usually px)."""
    width: float = 800.0
    height: float = 400.0
    margin_top: float = 20.0
    margin_right: float = 20.0
    margin_bottom: float = 40.0
    margin_left: float = 50.0
    gap: float = 8.0
    min_band_width: float = 12.0

    def __post_init__(self):
        for name in ("width", "height", "gap", "min_band_width"):
            if getattr(self, name) < 0:
                raise ValueError(f"SurfaceSpec.{name} must be non-negative, got {getattr(self, name)}")

    @property
    def plot_width(self) -> float:
        return max(0.0, self.width - self.margin_left - self.margin_right)

    @property
    def plot_height(self) -> float:
        return max(0.0, self.height - self.margin_top - self.margin_bottom)


@dataclass(frozen=True)
class ValueDomain:
    min_y: float
    max_y: float

    @property
    def span(self) -> float:
        return self.max_y - self.min_y

    def contains(self, value: float) -> bool:
        return self.min_y <= value <= self.max_y


@dataclass(frozen=True)
class BandScale:
    count: int
    band_width: float
    gap: float
    left: float
    positions: Tuple[float, ...]

    def center(self, index: int) -> float:
        return self.positions[index] + self.band_width / 2.0

    @property
    def extent(self) -> float:
        """Total width taken by the bands, which may exceed the plot width."""
        if not self.count:
            return 0.0
        return self.count * self.band_width + (self.count - 1) * self.gap


def compute_value_domain(entries: Sequence[StageEntry]) -> ValueDomain:
    """Min/max over zero, every base, every stage end and every segment edge."""
    values = [0.0]
    for entry in entries:
        values.append(entry.base)
        values.append(entry.base + entry.signed_total)
        for segment in entry.segments:
            values.append(segment.bottom)
            values.append(segment.top)

    arr = np.asarray(values, dtype=float)
    domain = ValueDomain(min_y=float(arr.min()), max_y=float(arr.max()))
    logger.debug(f"[SCALE] domain=[{domain.min_y:.4f}, {domain.max_y:.4f}] over {len(arr)} values")
    return domain


def compute_band_scale(count: int, surface: SurfaceSpec) -> BandScale:
    """
    Band width = max(min_band_width, (plot_width - gap * (n - 1)) / n).

    The minimum wins even when the bands then overflow the plot width; the
    renderer decides how to handle the overflow.
    """
    if count <= 0:
        return BandScale(count=0, band_width=float(surface.min_band_width), gap=float(surface.gap),
                         left=float(surface.margin_left), positions=())

    fitted = (surface.plot_width - surface.gap * (count - 1)) / count
    band_width = max(float(surface.min_band_width), fitted)
    if band_width > fitted:
        logger.debug(f"[SCALE] min band width {surface.min_band_width} exceeds fitted width {fitted:.2f}, bands overflow")

    positions = tuple(surface.margin_left + i * (band_width + surface.gap) for i in range(count))
    return BandScale(count=count, band_width=band_width, gap=float(surface.gap),
                     left=float(surface.margin_left), positions=positions)


def value_to_offset(value: float, domain: ValueDomain, surface: SurfaceSpec) -> float:
    """Vertical offset from the top of the surface for `value`."""
    if domain.max_y == domain.min_y:
        # degenerate domain: everything sits on the bottom edge of the plot
        return surface.margin_top + surface.plot_height
    return surface.margin_top + (domain.max_y - value) * surface.plot_height / domain.span
