"""Framing guide drawn onto camera preview frames.

The guide marks a centred 3:4 target box with corner brackets and a
crosshair so the user can frame the whole wall before capturing. It is
only ever drawn on preview copies, never on the captured snapshot.
"""

from typing import Final

import cv2
import numpy as np

GUIDE_COLOR: Final[tuple[int, int, int]] = (248, 140, 129)  # BGR indigo
CROSSHAIR_COLOR: Final[tuple[int, int, int]] = (255, 255, 255)
GUIDE_CAPTION: Final[str] = "ALIGN WITH THE WALL"
TARGET_ASPECT: Final[float] = 3 / 4


def guide_box(width: int, height: int, margin: float = 0.1) -> tuple[int, int, int, int]:
    """Compute the target box for a frame of the given size.

    Args:
        width: Frame width in pixels.
        height: Frame height in pixels.
        margin: Fraction of the limiting dimension left free on each side.

    Returns:
        ``(x1, y1, x2, y2)`` pixel corners of the largest centred 3:4 box
        that fits inside the margins.
    """
    avail_w = width * (1 - 2 * margin)
    avail_h = height * (1 - 2 * margin)
    box_w = min(avail_w, avail_h * TARGET_ASPECT)
    box_h = box_w / TARGET_ASPECT
    x1 = int(round((width - box_w) / 2))
    y1 = int(round((height - box_h) / 2))
    return x1, y1, int(round(x1 + box_w)), int(round(y1 + box_h))


def draw_framing_guide(frame: np.ndarray) -> np.ndarray:
    """Return a copy of ``frame`` with the framing guide drawn on it.

    Args:
        frame: BGR image as produced by ``cv2.VideoCapture.read``.

    Returns:
        New BGR image of the same shape.
    """
    output = frame.copy()
    height, width = output.shape[:2]
    x1, y1, x2, y2 = guide_box(width, height)

    thickness = max(2, min(width, height) // 240)
    arm = max(12, (x2 - x1) // 6)

    # Corner brackets
    for cx, cy, dx, dy in (
        (x1, y1, 1, 1),
        (x2, y1, -1, 1),
        (x1, y2, 1, -1),
        (x2, y2, -1, -1),
    ):
        cv2.line(output, (cx, cy), (cx + dx * arm, cy), GUIDE_COLOR, thickness, cv2.LINE_AA)
        cv2.line(output, (cx, cy), (cx, cy + dy * arm), GUIDE_COLOR, thickness, cv2.LINE_AA)

    mid_x, mid_y = (x1 + x2) // 2, (y1 + y2) // 2
    half = max(8, arm // 3)
    cv2.line(output, (mid_x - half, mid_y), (mid_x + half, mid_y), CROSSHAIR_COLOR, 1, cv2.LINE_AA)
    cv2.line(output, (mid_x, mid_y - half), (mid_x, mid_y + half), CROSSHAIR_COLOR, 1, cv2.LINE_AA)

    font_scale = max(0.4, min(width, height) / 900)
    (text_w, text_h), _ = cv2.getTextSize(
        GUIDE_CAPTION, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 1
    )
    text_org = (max(0, (width - text_w) // 2), min(height - 4, y2 + text_h + 2 * thickness + 8))
    cv2.putText(
        output,
        GUIDE_CAPTION,
        text_org,
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        CROSSHAIR_COLOR,
        1,
        cv2.LINE_AA,
    )
    return output
