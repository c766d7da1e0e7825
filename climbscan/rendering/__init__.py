"""Route overlay rendering."""

from climbscan.rendering.renderer import (
    ImageInput,
    RenderError,
    RouteRenderer,
    load_image,
    marker_positions,
    route_label,
    to_png_bytes,
)
from climbscan.rendering.styles import (
    HOLD_STYLES,
    HoldStyle,
    MarkerShape,
    marker_label,
    style_for,
)

__all__ = [
    "HOLD_STYLES",
    "HoldStyle",
    "ImageInput",
    "MarkerShape",
    "RenderError",
    "RouteRenderer",
    "load_image",
    "marker_label",
    "marker_positions",
    "route_label",
    "style_for",
    "to_png_bytes",
]
