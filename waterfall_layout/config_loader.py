import logging
from typing import Any, Dict, Optional

import yaml

from .layout import LayoutConfig
from .scale import SurfaceSpec

logger = logging.getLogger(__name__)


def load_config(yaml_path: str) -> Dict[str, Any]:
    """
    Load and parse the YAML configuration file.

    Args:
        yaml_path: Path to the YAML configuration file

    Returns:
        Dictionary containing the parsed configuration (empty for an empty file)
    """
    try:
        with open(yaml_path, 'r') as file:
            config = yaml.safe_load(file)
        return config or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Error parsing YAML configuration: {e}")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "on")
    return bool(value)


def _negative_stages(value: Any) -> tuple:
    if not value:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(v).strip() for v in value if str(v).strip())


def layout_config_from_dict(config: Dict[str, Any]) -> LayoutConfig:
    """
    Build a LayoutConfig from the `waterfall` section of a configuration.

    Args:
        config: Loaded configuration dictionary

    Returns:
        LayoutConfig; missing keys fall back to the dataclass defaults
    """
    section = config.get('waterfall', {}) or {}
    return LayoutConfig(
        stage_dimension_override=section.get('stage_dimension') or None,
        measure_override=section.get('measure') or None,
        sort_field_override=section.get('sort_field') or None,
        negative_stage_labels=_negative_stages(section.get('negative_stages')),
        start_stage_label=section.get('start_stage') or None,
        treat_after_start_as_negative=_as_bool(section.get('treat_after_start_as_negative', False)),
        require_pivots=_as_bool(section.get('require_pivots', True)),
    )


def surface_from_dict(config: Dict[str, Any], width: Optional[float] = None,
                      height: Optional[float] = None) -> SurfaceSpec:
    """
    Build a SurfaceSpec from the `surface` section of a configuration.

    Args:
        config: Loaded configuration dictionary
        width: Overrides surface.width when given
        height: Overrides surface.height when given

    Returns:
        SurfaceSpec
    """
    section = config.get('surface', {}) or {}
    margin = section.get('margin', {}) or {}
    defaults = SurfaceSpec()
    surface = SurfaceSpec(
        width=float(width if width is not None else section.get('width', defaults.width)),
        height=float(height if height is not None else section.get('height', defaults.height)),
        margin_top=float(margin.get('top', defaults.margin_top)),
        margin_right=float(margin.get('right', defaults.margin_right)),
        margin_bottom=float(margin.get('bottom', defaults.margin_bottom)),
        margin_left=float(margin.get('left', defaults.margin_left)),
        gap=float(section.get('gap', defaults.gap)),
        min_band_width=float(section.get('min_band_width', defaults.min_band_width)),
    )
    logger.debug(f"Surface: {surface.width}x{surface.height}, gap={surface.gap}, min_band={surface.min_band_width}")
    return surface
