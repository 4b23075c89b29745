"""
Reference matplotlib renderer for a stacked waterfall Layout.

The layout engine decides geometry; this module only turns it into pixels
(colours per pivot, legend, labels, connectors).

Usage:
    from waterfall_layout.viz_waterfall import plot_stacked_waterfall

    fig, ax = plot_stacked_waterfall(layout, title="Pipeline walk")
    fig.savefig("walk.png")
"""

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from .layout import Layout

# Color scheme for visualizations
COLORS = {
    'connector': '#34495e',   # Dark blue-gray for stage-to-stage connectors
    'baseline': 'black',
}
PIVOT_CMAP = 'tab10'


def _pivot_colors(n: int):
    cmap = plt.get_cmap(PIVOT_CMAP)
    return [cmap(i % cmap.N) for i in range(n)]


def plot_stacked_waterfall(layout: Layout, title: Optional[str] = None, ax=None,
                           show_totals: bool = True):
    """
    Floating stacked bars per stage, one colour per pivot, with dashed
    connectors from each stage's end to the next stage's base.

    Returns:
        (fig, ax)
    """
    n = len(layout.stages)
    if ax is None:
        dpi = 100.0
        fig, ax = plt.subplots(figsize=(max(layout.surface.width / dpi, 4.0),
                                        max(layout.surface.height / dpi, 3.0)))
    else:
        fig = ax.figure

    # bar width in stage units keeps the engine's band/gap proportions
    pitch = layout.bands.band_width + layout.bands.gap
    width = layout.bands.band_width / pitch if pitch else 0.8
    x = np.arange(n)
    colors = _pivot_colors(len(layout.pivots))
    color_by_key = {p.key: colors[i] for i, p in enumerate(layout.pivots)}

    labelled = set()
    for entry in layout.stages:
        for segment in entry.segments:
            if not segment.renders:
                continue
            label = None
            if segment.pivot_key not in labelled:
                labelled.add(segment.pivot_key)
                label = next(p.display_label for p in layout.pivots if p.key == segment.pivot_key)
            ax.bar(entry.index, segment.top - segment.bottom, bottom=segment.bottom, width=width,
                   color=color_by_key[segment.pivot_key], alpha=0.8, label=label)

        if show_totals:
            y = max(entry.base, entry.end)
            ax.text(entry.index, y, f"{entry.signed_total:+,.0f}", ha="center", va="bottom",
                    fontweight='bold', fontsize=9)

    # Connect with lines
    for i in range(n - 1):
        level = layout.stages[i].end
        ax.plot([i + width / 2, i + 1 - width / 2], [level, level], '--',
                color=COLORS['connector'], alpha=0.5, linewidth=1)

    ax.set_xticks(x)
    ax.set_xticklabels([entry.label for entry in layout.stages], rotation=0)
    if layout.domain.span:
        pad = layout.domain.span * 0.08
        ax.set_ylim(layout.domain.min_y - pad, layout.domain.max_y + pad)
    ax.set_ylabel(layout.measure)
    ax.set_title(title or "Stacked Waterfall")
    ax.axhline(0, color=COLORS['baseline'], linewidth=1, alpha=0.3)
    if labelled:
        ax.legend(loc="best")
    ax.grid(True, alpha=0.3, axis='y')
    fig.tight_layout()
    return fig, ax
