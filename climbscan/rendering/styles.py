"""Marker styles keyed by hold type.

``HOLD_STYLES`` must name every :class:`~climbscan.models.HoldType`; the
module refuses to import otherwise, so a new hold type cannot silently
fall back to a default look.
"""

from enum import Enum
from typing import Final, NamedTuple

from climbscan.models import HoldType

RGB = tuple[int, int, int]


class MarkerShape(str, Enum):
    """Outline shape of a hold marker."""

    CIRCLE = "circle"
    ROUNDED_SQUARE = "rounded_square"


class HoldStyle(NamedTuple):
    """Render attributes for one hold type.

    Attributes:
        shape: Marker outline shape.
        color: Outline colour; the fill uses the same colour translucent.
        fill_alpha: Fill opacity (0-255).
        label: Fixed marker label, or None to use the hold's index.
    """

    shape: MarkerShape
    color: RGB
    fill_alpha: int
    label: str | None


HOLD_STYLES: Final[dict[HoldType, HoldStyle]] = {
    HoldType.START: HoldStyle(MarkerShape.CIRCLE, (52, 211, 153), 77, "START"),
    HoldType.TOP: HoldStyle(MarkerShape.CIRCLE, (251, 113, 133), 77, "TOP"),
    HoldType.HAND: HoldStyle(MarkerShape.ROUNDED_SQUARE, (129, 140, 248), 77, None),
    HoldType.FOOT: HoldStyle(MarkerShape.ROUNDED_SQUARE, (34, 211, 238), 51, None),
    HoldType.INTERMEDIATE: HoldStyle(
        MarkerShape.ROUNDED_SQUARE, (226, 232, 240), 26, None
    ),
}

_unstyled = set(HoldType) - set(HOLD_STYLES)
if _unstyled:
    raise RuntimeError(
        "Missing marker style for hold type(s): "
        + ", ".join(sorted(t.value for t in _unstyled))
    )

PATH_START_COLOR: Final[RGB] = (129, 140, 248)
PATH_END_COLOR: Final[RGB] = (34, 211, 238)
PANEL_COLOR: Final[tuple[int, int, int, int]] = (2, 6, 23, 170)
GRADE_BADGE_COLOR: Final[tuple[int, int, int, int]] = (79, 70, 229, 230)
TEXT_COLOR: Final[RGB] = (255, 255, 255)
ACCENT_TEXT_COLOR: Final[RGB] = (129, 140, 248)


def style_for(hold_type: HoldType) -> HoldStyle:
    """Return the marker style for ``hold_type``."""
    return HOLD_STYLES[hold_type]


def marker_label(hold_type: HoldType, index: int) -> str:
    """Label drawn next to a marker: fixed per type, else ``M{index}``."""
    label = style_for(hold_type).label
    return label if label is not None else f"M{index}"


def lerp_color(start: RGB, end: RGB, t: float) -> RGB:
    """Linearly interpolate between two colours, ``t`` clamped to [0, 1]."""
    t = min(1.0, max(0.0, t))
    r, g, b = (round(s + (e - s) * t) for s, e in zip(start, end))
    return (r, g, b)
