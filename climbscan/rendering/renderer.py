"""Route overlay rendering with Pillow.

``RouteRenderer.render`` composes, in order: the dimmed base image, a
dashed path through the holds in the order the analysis lists them, one
marker per hold styled by its type, marker labels, and the summary header
and footer. Rendering keeps no state between calls; the same image and
analysis always produce the same pixels.

Example::

    >>> renderer = RouteRenderer()
    >>> overlay = renderer.render(image_b64, analysis, include_beta=True)
    >>> overlay.save("route.png")
"""

import base64
import binascii
import hashlib
import io
import math
import textwrap
from typing import Final, Union

import numpy as np
import PIL.Image as PILImage
from PIL import ImageDraw, ImageEnhance, ImageFont

from climbscan.logging_config import get_logger
from climbscan.models import RouteAnalysis
from climbscan.rendering.styles import (
    ACCENT_TEXT_COLOR,
    GRADE_BADGE_COLOR,
    PANEL_COLOR,
    PATH_END_COLOR,
    PATH_START_COLOR,
    TEXT_COLOR,
    MarkerShape,
    lerp_color,
    marker_label,
    style_for,
)

logger = get_logger(__name__)

# Accepted image inputs: base64 text, encoded bytes, PIL image or RGB array
ImageInput = Union[str, bytes, PILImage.Image, np.ndarray]

DEFAULT_MARKER_SCALE: Final[float] = 0.025
DEFAULT_DIM: Final[float] = 0.7
DEFAULT_CONTRAST: Final[float] = 1.1

Font = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


class RenderError(Exception):
    """Raised when the input image cannot be loaded for rendering.

    Attributes:
        message: Human-readable description of the error.
    """

    def __init__(self, message: str) -> None:
        """Initialize RenderError with a message.

        Args:
            message: Description of the rendering error.
        """
        self.message = message
        super().__init__(self.message)


def load_image(image: ImageInput) -> PILImage.Image:
    """Load any supported image input as an RGB PIL image.

    Args:
        image: Base64 text (optionally a data URI), encoded image bytes,
            a PIL image, or an H×W×3 uint8 RGB array.

    Returns:
        RGB ``PIL.Image.Image``.

    Raises:
        RenderError: If the input cannot be decoded.
    """
    pil: PILImage.Image
    if isinstance(image, PILImage.Image):
        pil = image
    elif isinstance(image, np.ndarray):
        pil = PILImage.fromarray(image)
    elif isinstance(image, (str, bytes)):
        data = image
        if isinstance(data, str):
            text = data.partition(",")[2] if data.startswith("data:") else data
            try:
                data = base64.b64decode(text, validate=True)
            except (binascii.Error, ValueError) as e:
                raise RenderError("Image text is not valid base64") from e
        try:
            pil = PILImage.open(io.BytesIO(data))
            pil.load()
        except (OSError, PILImage.DecompressionBombError) as e:
            raise RenderError(f"Cannot decode image: {e}") from e
    else:
        raise RenderError(
            f"Unsupported image type: {type(image).__name__}. "
            "Expected str, bytes, np.ndarray, or PIL.Image.Image."
        )

    if pil.mode != "RGB":
        pil = pil.convert("RGB")
    return pil


def marker_positions(
    analysis: RouteAnalysis, size: tuple[int, int]
) -> list[tuple[float, float]]:
    """Pixel centres of the hold markers for an image of ``size``.

    Percent coordinates outside 0-100 are clamped to the image edge.

    Args:
        analysis: Route whose holds are positioned.
        size: ``(width, height)`` of the render target.

    Returns:
        One ``(x, y)`` pixel centre per hold, in hold order.
    """
    width, height = size
    return [
        (
            min(100.0, max(0.0, hold.x)) / 100.0 * width,
            min(100.0, max(0.0, hold.y)) / 100.0 * height,
        )
        for hold in analysis.holds
    ]


def route_label(analysis: RouteAnalysis) -> str:
    """Cosmetic ``#RT-NNNN`` label derived from the analysis content.

    The label is stable for identical analyses but is not an identifier.
    """
    digest = hashlib.sha1(analysis.model_dump_json().encode("utf-8")).hexdigest()
    return f"#RT-{int(digest[:8], 16) % 9000 + 1000}"


def to_png_bytes(image: PILImage.Image) -> bytes:
    """Encode a PIL image as PNG bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _font(size: int) -> Font:
    return ImageFont.load_default(size=size)


def _dashed_line(
    draw: ImageDraw.ImageDraw,
    start: tuple[float, float],
    end: tuple[float, float],
    colors: tuple[tuple[int, int, int], tuple[int, int, int]],
    width: int,
    dash: float,
) -> None:
    """Draw a dashed segment whose colour shifts from colors[0] to colors[1]."""
    length = math.dist(start, end)
    if length == 0:
        return
    dx, dy = (end[0] - start[0]) / length, (end[1] - start[1]) / length
    pos = 0.0
    while pos < length:
        seg_end = min(pos + dash, length)
        color = lerp_color(colors[0], colors[1], (pos + seg_end) / 2 / length)
        draw.line(
            [
                (start[0] + dx * pos, start[1] + dy * pos),
                (start[0] + dx * seg_end, start[1] + dy * seg_end),
            ],
            fill=color + (200,),
            width=width,
        )
        pos += 2 * dash


class RouteRenderer:
    """Draws a RouteAnalysis over the captured wall image.

    Args:
        marker_scale: Marker radius as a fraction of the shorter image side.
        dim: Brightness factor applied to the base image.
        contrast: Contrast factor applied to the base image.
    """

    def __init__(
        self,
        marker_scale: float = DEFAULT_MARKER_SCALE,
        dim: float = DEFAULT_DIM,
        contrast: float = DEFAULT_CONTRAST,
    ) -> None:
        self.marker_scale = marker_scale
        self.dim = dim
        self.contrast = contrast

    def render(
        self,
        image: ImageInput,
        analysis: RouteAnalysis,
        include_beta: bool = False,
    ) -> PILImage.Image:
        """Render the annotated route.

        Args:
            image: The captured wall image.
            analysis: Route to draw over it.
            include_beta: Append a panel listing the beta steps below the
                image.

        Returns:
            New RGB image. Same size as the input unless ``include_beta``
            adds the panel.

        Raises:
            RenderError: If the image cannot be loaded.
        """
        base = load_image(image)
        base = ImageEnhance.Brightness(base).enhance(self.dim)
        base = ImageEnhance.Contrast(base).enhance(self.contrast)

        canvas = base.convert("RGBA")
        overlay = PILImage.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)

        unit = min(canvas.size)
        radius = max(8.0, unit * self.marker_scale)
        positions = marker_positions(analysis, canvas.size)

        self._draw_path(draw, positions, radius)
        self._draw_markers(draw, analysis, positions, radius)
        self._draw_header(draw, analysis, canvas.size)
        self._draw_footer(draw, analysis, canvas.size)

        result = PILImage.alpha_composite(canvas, overlay).convert("RGB")
        if include_beta:
            result = self._append_beta_panel(result, analysis)

        logger.debug(
            "Route rendered",
            extra={
                "width": result.width,
                "height": result.height,
                "hold_count": len(analysis.holds),
            },
        )
        return result

    def _draw_path(
        self,
        draw: ImageDraw.ImageDraw,
        positions: list[tuple[float, float]],
        radius: float,
    ) -> None:
        """Dashed path through holds in listed order, no reordering."""
        if len(positions) < 2:
            return
        width = max(2, round(radius / 4))
        dash = radius * 0.6
        segments = len(positions) - 1
        for i, (start, end) in enumerate(zip(positions, positions[1:])):
            colors = (
                lerp_color(PATH_START_COLOR, PATH_END_COLOR, i / segments),
                lerp_color(PATH_START_COLOR, PATH_END_COLOR, (i + 1) / segments),
            )
            _dashed_line(draw, start, end, colors, width, dash)

    def _draw_markers(
        self,
        draw: ImageDraw.ImageDraw,
        analysis: RouteAnalysis,
        positions: list[tuple[float, float]],
        radius: float,
    ) -> None:
        font = _font(max(10, round(radius * 0.8)))
        outline_width = max(2, round(radius / 6))
        dot = max(2.0, radius * 0.2)

        for index, (hold, (cx, cy)) in enumerate(zip(analysis.holds, positions)):
            style = style_for(hold.type)
            box = (cx - radius, cy - radius, cx + radius, cy + radius)
            fill = style.color + (style.fill_alpha,)
            if style.shape is MarkerShape.CIRCLE:
                draw.ellipse(box, fill=fill, outline=style.color, width=outline_width)
            else:
                draw.rounded_rectangle(
                    box,
                    radius=radius * 0.35,
                    fill=fill,
                    outline=style.color,
                    width=outline_width,
                )
            draw.ellipse((cx - dot, cy - dot, cx + dot, cy + dot), fill=TEXT_COLOR)

            label = marker_label(hold.type, index)
            left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
            text_x = cx - (right - left) / 2
            text_y = cy - radius - (bottom - top) - outline_width * 2
            pad = outline_width
            draw.rectangle(
                (
                    text_x - pad,
                    text_y + top - pad,
                    text_x + (right - left) + pad,
                    text_y + bottom + pad,
                ),
                fill=PANEL_COLOR,
            )
            draw.text((text_x, text_y), label, font=font, fill=TEXT_COLOR)

    def _draw_header(
        self,
        draw: ImageDraw.ImageDraw,
        analysis: RouteAnalysis,
        size: tuple[int, int],
    ) -> None:
        """Route name and style top-left; grade badge top-right."""
        width, _ = size
        margin = round(min(size) * 0.03)
        title_font = _font(max(14, round(min(size) * 0.045)))
        small_font = _font(max(10, round(min(size) * 0.022)))

        name = analysis.name.upper()
        style = analysis.style.upper()
        name_box = draw.textbbox((0, 0), name, font=title_font)
        style_box = draw.textbbox((0, 0), style or " ", font=small_font)
        panel_w = max(name_box[2], style_box[2]) + 2 * margin
        panel_h = name_box[3] + style_box[3] + 3 * margin
        draw.rounded_rectangle(
            (margin, margin, margin + panel_w, margin + panel_h),
            radius=margin,
            fill=PANEL_COLOR,
        )
        draw.text((2 * margin, 2 * margin), name, font=title_font, fill=TEXT_COLOR)
        if style:
            draw.text(
                (2 * margin, 2 * margin + name_box[3] + margin // 2),
                style,
                font=small_font,
                fill=ACCENT_TEXT_COLOR,
            )

        grade_box = draw.textbbox((0, 0), analysis.grade, font=title_font)
        badge_w = grade_box[2] + 2 * margin
        badge_h = grade_box[3] + 2 * margin
        left = width - margin - badge_w
        draw.rounded_rectangle(
            (left, margin, width - margin, margin + badge_h),
            radius=margin,
            fill=GRADE_BADGE_COLOR,
        )
        draw.text((left + margin, 2 * margin), analysis.grade, font=title_font, fill=TEXT_COLOR)

    def _draw_footer(
        self,
        draw: ImageDraw.ImageDraw,
        analysis: RouteAnalysis,
        size: tuple[int, int],
    ) -> None:
        """Route label and hold count bottom-left."""
        _, height = size
        margin = round(min(size) * 0.03)
        font = _font(max(10, round(min(size) * 0.02)))
        lines = [
            f"ID: {route_label(analysis)}",
            f"NODES: {len(analysis.holds)} points detected",
        ]
        line_h = draw.textbbox((0, 0), "Ag", font=font)[3] + margin // 3
        y = height - margin - line_h * len(lines)
        for line in lines:
            draw.text((margin, y), line, font=font, fill=ACCENT_TEXT_COLOR)
            y += line_h

    def _append_beta_panel(
        self, image: PILImage.Image, analysis: RouteAnalysis
    ) -> PILImage.Image:
        """Extend the image downwards with the beta steps in listed order."""
        margin = round(min(image.size) * 0.03)
        font = _font(max(12, round(image.width * 0.022)))
        probe = ImageDraw.Draw(image)
        char_w = max(1, probe.textbbox((0, 0), "M", font=font)[2])
        line_h = probe.textbbox((0, 0), "Ag", font=font)[3] + margin // 3
        wrap_at = max(20, (image.width - 2 * margin) // char_w)

        lines: list[str] = ["BETA"]
        if not analysis.beta:
            lines.append("No beta provided.")
        for position, step in enumerate(analysis.beta, start=1):
            text = f"{step.step or position}. {step.action}: {step.description}".rstrip(": ")
            lines.extend(textwrap.wrap(text, width=wrap_at) or [""])

        panel_h = 2 * margin + line_h * len(lines)
        result = PILImage.new("RGB", (image.width, image.height + panel_h), (2, 6, 23))
        result.paste(image, (0, 0))
        draw = ImageDraw.Draw(result)
        y = image.height + margin
        for i, line in enumerate(lines):
            color = ACCENT_TEXT_COLOR if i == 0 else TEXT_COLOR
            draw.text((margin, y), line, font=font, fill=color)
            y += line_h
        return result
