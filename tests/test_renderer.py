"""Tests for route overlay rendering."""

# pylint: disable=redefined-outer-name  # standard pytest fixture pattern

import io

import numpy as np
import pytest
from PIL import Image

from climbscan.models import BetaStep, Hold, HoldType, RouteAnalysis
from climbscan.rendering import (
    HOLD_STYLES,
    MarkerShape,
    RenderError,
    RouteRenderer,
    load_image,
    marker_label,
    marker_positions,
    route_label,
    to_png_bytes,
)


@pytest.fixture
def wall_image() -> Image.Image:
    """A 400x300 mid-grey wall."""
    return Image.new("RGB", (400, 300), color=(128, 128, 128))


@pytest.fixture
def renderer() -> RouteRenderer:
    """Renderer with default settings."""
    return RouteRenderer()


def _route(*holds: tuple[float, float, str], beta: int = 0) -> RouteAnalysis:
    return RouteAnalysis(
        name="Test Route",
        grade="V3",
        style="Dynamic",
        holds=tuple(Hold(x=x, y=y, type=t) for x, y, t in holds),
        beta=tuple(
            BetaStep(step=i + 1, action=f"Move {i + 1}", description="Reach up.")
            for i in range(beta)
        ),
    )


class TestMarkerPositions:
    """Tests for percent-to-pixel marker placement."""

    def test_positions_scale_with_size(self) -> None:
        """Centres should be (x% of width, y% of height) at any size."""
        analysis = _route((25, 50, "start"), (100, 0, "top"))
        assert marker_positions(analysis, (400, 300)) == [(100.0, 150.0), (400.0, 0.0)]
        assert marker_positions(analysis, (800, 600)) == [(200.0, 300.0), (800.0, 0.0)]

    def test_out_of_range_clamped(self) -> None:
        """Coordinates outside 0-100 should clamp to the image edge."""
        analysis = _route((-10, 150, "hand"), (120, -5, "foot"))
        assert marker_positions(analysis, (200, 100)) == [(0.0, 100.0), (200.0, 0.0)]

    def test_one_position_per_hold_in_order(self) -> None:
        """Positions follow hold order exactly."""
        analysis = _route((10, 90, "start"), (30, 60, "hand"), (70, 20, "top"))
        xs = [x for x, _ in marker_positions(analysis, (100, 100))]
        assert xs == [10.0, 30.0, 70.0]


class TestStyles:
    """Tests for hold styling and labels."""

    def test_every_hold_type_styled(self) -> None:
        """Every hold type should have a style."""
        assert set(HOLD_STYLES) == set(HoldType)

    def test_start_and_top_are_circles(self) -> None:
        """Start and top markers are circles; the rest rounded squares."""
        for hold_type, style in HOLD_STYLES.items():
            expected = (
                MarkerShape.CIRCLE
                if hold_type in (HoldType.START, HoldType.TOP)
                else MarkerShape.ROUNDED_SQUARE
            )
            assert style.shape is expected

    @pytest.mark.parametrize(
        ("hold_type", "index", "label"),
        [
            (HoldType.START, 0, "START"),
            (HoldType.TOP, 5, "TOP"),
            (HoldType.HAND, 2, "M2"),
            (HoldType.FOOT, 3, "M3"),
            (HoldType.INTERMEDIATE, 4, "M4"),
        ],
    )
    def test_marker_labels(self, hold_type: HoldType, index: int, label: str) -> None:
        """Start and top have fixed labels; others use their index."""
        assert marker_label(hold_type, index) == label


class TestRouteLabel:
    """Tests for the cosmetic route label."""

    def test_stable_for_same_content(self, sample_analysis: RouteAnalysis) -> None:
        """Identical analyses should get the same label."""
        copy = RouteAnalysis.model_validate_json(sample_analysis.model_dump_json())
        assert route_label(sample_analysis) == route_label(copy)

    def test_format(self, sample_analysis: RouteAnalysis) -> None:
        """Label should be #RT- followed by four digits."""
        label = route_label(sample_analysis)
        assert label.startswith("#RT-")
        assert 1000 <= int(label[4:]) <= 9999


class TestRender:
    """Tests for RouteRenderer.render."""

    def test_same_size_as_input(
        self,
        renderer: RouteRenderer,
        wall_image: Image.Image,
        sample_analysis: RouteAnalysis,
    ) -> None:
        """Without beta the output keeps the input dimensions."""
        result = renderer.render(wall_image, sample_analysis)
        assert result.size == wall_image.size
        assert result.mode == "RGB"

    def test_deterministic(
        self,
        renderer: RouteRenderer,
        wall_image: Image.Image,
        sample_analysis: RouteAnalysis,
    ) -> None:
        """Same inputs should produce identical pixels."""
        first = renderer.render(wall_image, sample_analysis, include_beta=True)
        second = renderer.render(wall_image, sample_analysis, include_beta=True)
        assert np.array_equal(np.asarray(first), np.asarray(second))

    def test_input_not_modified(
        self,
        renderer: RouteRenderer,
        wall_image: Image.Image,
        sample_analysis: RouteAnalysis,
    ) -> None:
        """Rendering should not draw on the caller's image."""
        before = np.asarray(wall_image).copy()
        renderer.render(wall_image, sample_analysis)
        assert np.array_equal(np.asarray(wall_image), before)

    def test_base_image_dimmed(
        self, renderer: RouteRenderer, wall_image: Image.Image
    ) -> None:
        """Areas away from the overlay should be darker than the original."""
        result = renderer.render(wall_image, _route())
        centre = result.getpixel((200, 150))
        assert all(channel < 128 for channel in centre)

    def test_marker_drawn_at_hold(
        self, renderer: RouteRenderer, wall_image: Image.Image
    ) -> None:
        """The start marker fill should tint the pixels around the hold."""
        plain = np.asarray(renderer.render(wall_image, _route())).astype(int)
        marked = np.asarray(renderer.render(wall_image, _route((50, 60, "start"))))
        # Sample just inside the marker, away from the centre dot
        x, y = 200 + 5, 180 + 5
        assert not np.array_equal(marked[y, x], plain[y, x])

    def test_each_hold_type_renders(
        self, renderer: RouteRenderer, wall_image: Image.Image
    ) -> None:
        """A route using every hold type should render."""
        holds = [(10 + 15 * i, 80 - 15 * i, t.value) for i, t in enumerate(HoldType)]
        result = renderer.render(wall_image, _route(*holds))
        assert result.size == wall_image.size

    def test_empty_route(
        self, renderer: RouteRenderer, wall_image: Image.Image
    ) -> None:
        """No holds and no beta should still render the header and footer."""
        result = renderer.render(wall_image, _route(), include_beta=True)
        assert result.width == wall_image.width
        assert result.height > wall_image.height

    def test_beta_panel_extends_height(
        self, renderer: RouteRenderer, wall_image: Image.Image
    ) -> None:
        """More beta steps should give a taller panel below the image."""
        short = renderer.render(wall_image, _route(beta=1), include_beta=True)
        long = renderer.render(wall_image, _route(beta=6), include_beta=True)
        assert short.height > wall_image.height
        assert long.height > short.height
        assert short.width == long.width == wall_image.width

    @pytest.mark.parametrize("source", ["b64", "bytes", "array"])
    def test_accepts_image_inputs(
        self,
        renderer: RouteRenderer,
        sample_jpeg_bytes: bytes,
        sample_image_b64: str,
        sample_analysis: RouteAnalysis,
        source: str,
    ) -> None:
        """Base64 text, encoded bytes and RGB arrays should all load."""
        image = {
            "b64": sample_image_b64,
            "bytes": sample_jpeg_bytes,
            "array": np.zeros((150, 200, 3), dtype=np.uint8),
        }[source]
        assert renderer.render(image, sample_analysis).size == (200, 150)


class TestLoadImage:
    """Tests for load_image and PNG output."""

    def test_data_uri(self, sample_image_b64: str) -> None:
        """A data URI should be accepted."""
        image = load_image(f"data:image/jpeg;base64,{sample_image_b64}")
        assert image.size == (200, 150)

    def test_converts_to_rgb(self) -> None:
        """Non-RGB images should be converted."""
        assert load_image(Image.new("L", (10, 10))).mode == "RGB"

    @pytest.mark.parametrize(
        "bad", ["@@not base64@@", "data:image/jpeg;base64", b"not an image", 42]
    )
    def test_invalid_input(self, bad: object) -> None:
        """Undecodable or unsupported inputs should raise RenderError."""
        with pytest.raises(RenderError):
            load_image(bad)  # type: ignore[arg-type]

    def test_to_png_bytes(self, wall_image: Image.Image) -> None:
        """PNG encoding should round-trip dimensions."""
        data = to_png_bytes(wall_image)
        assert data.startswith(b"\x89PNG")
        assert Image.open(io.BytesIO(data)).size == wall_image.size
