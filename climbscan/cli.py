"""
Command-line tool for one-shot route analysis.

Analyzes a wall photo from disk, or a single snapshot from the configured
camera, and prints the result. Optionally writes the annotated overlay.

Usage Examples:
    Analyze an image and print a summary:
        climbscan analyze wall.jpg

    Analyze an image and write the overlay with the beta panel:
        climbscan analyze wall.jpg --output route.png

    Print the raw analysis as JSON:
        climbscan analyze wall.jpg --json

    Capture from the camera, keep the snapshot and write the overlay:
        climbscan capture --save-image wall.jpg --output route.png

Settings (API key, model, camera source) come from ``CS_*`` environment
variables, as for the service.
"""

import argparse
import asyncio
import base64
import io
import sys
from pathlib import Path
from typing import Optional

import PIL.Image as PILImage

from climbscan.analysis.client import RouteAnalysisClient
from climbscan.analysis.exceptions import AnalysisError
from climbscan.camera.adapter import DEFAULT_JPEG_QUALITY, CameraAdapter
from climbscan.camera.exceptions import CameraError
from climbscan.config import Settings, get_settings
from climbscan.logging_config import configure_logging, get_logger
from climbscan.models import RouteAnalysis
from climbscan.rendering.renderer import RenderError, RouteRenderer

logger = get_logger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_ANALYSIS_FAILED = 1
EXIT_INPUT_FAILED = 2


def load_image_base64(path: Path) -> str:
    """Read an image file as base64 JPEG text.

    Non-JPEG files are re-encoded at the capture quality.

    Args:
        path: Path to a JPEG or PNG file.

    Returns:
        Base64 JPEG text with no data-URI prefix.

    Raises:
        OSError: If the file cannot be read or decoded.
    """
    data = path.read_bytes()
    if not data.startswith(b"\xff\xd8\xff"):
        image = PILImage.open(io.BytesIO(data)).convert("RGB")
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=DEFAULT_JPEG_QUALITY)
        data = buffer.getvalue()
    return base64.b64encode(data).decode("ascii")


def format_summary(analysis: RouteAnalysis) -> str:
    """Human-readable summary of an analysis."""
    lines = [f"{analysis.name} ({analysis.grade})"]
    if analysis.style:
        lines.append(f"Style: {analysis.style}")
    if analysis.description:
        lines.append(analysis.description)
    lines.append(f"Holds: {len(analysis.holds)}")
    if analysis.beta:
        lines.append("Beta:")
        lines.extend(
            f"  {step.step or position}. {step.action}: {step.description}".rstrip(": ")
            for position, step in enumerate(analysis.beta, start=1)
        )
    return "\n".join(lines)


def _report(
    image_b64: str,
    analysis: RouteAnalysis,
    output: Optional[Path],
    as_json: bool,
    include_beta: bool,
) -> int:
    """Print the analysis and write the overlay if requested."""
    if as_json:
        print(analysis.model_dump_json(indent=2))
    else:
        print(format_summary(analysis))

    if output is not None:
        try:
            RouteRenderer().render(image_b64, analysis, include_beta=include_beta).save(
                output, format="PNG"
            )
        except (RenderError, OSError) as e:
            print(f"Error: failed to write overlay: {e}", file=sys.stderr)
            return EXIT_INPUT_FAILED
        logger.info("Overlay written", extra={"path": str(output)})
    return EXIT_OK


def run_analyze(
    image_path: Path,
    output: Optional[Path] = None,
    as_json: bool = False,
    include_beta: bool = True,
    settings: Optional[Settings] = None,
    analyzer: Optional[RouteAnalysisClient] = None,
) -> int:
    """Analyze an image file.

    Args:
        image_path: Wall photo on disk.
        output: Where to write the annotated PNG, if anywhere.
        as_json: Print the analysis as JSON instead of a summary.
        include_beta: Append the beta panel to the overlay.
        settings: Settings to use instead of the environment.
        analyzer: Client to use instead of one built from settings.

    Returns:
        Process exit code.
    """
    settings = settings or get_settings()
    analyzer = analyzer or RouteAnalysisClient.from_settings(settings)

    try:
        image_b64 = load_image_base64(image_path)
    except OSError as e:
        print(f"Error: cannot read image {image_path}: {e}", file=sys.stderr)
        return EXIT_INPUT_FAILED

    try:
        analysis = asyncio.run(analyzer.analyze(image_b64))
    except AnalysisError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_ANALYSIS_FAILED

    return _report(image_b64, analysis, output, as_json, include_beta)


def run_capture(
    output: Optional[Path] = None,
    save_image: Optional[Path] = None,
    settings: Optional[Settings] = None,
    analyzer: Optional[RouteAnalysisClient] = None,
    camera: Optional[CameraAdapter] = None,
) -> int:
    """Capture one snapshot from the camera and analyze it.

    Args:
        output: Where to write the annotated PNG, if anywhere.
        save_image: Where to keep the captured JPEG, if anywhere.
        settings: Settings to use instead of the environment.
        analyzer: Client to use instead of one built from settings.
        camera: Camera to use instead of one built from settings.

    Returns:
        Process exit code.
    """
    settings = settings or get_settings()
    analyzer = analyzer or RouteAnalysisClient.from_settings(settings)
    camera = camera or CameraAdapter.from_settings(settings)

    try:
        with camera:
            image_b64 = camera.capture()
    except CameraError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_INPUT_FAILED

    if save_image is not None:
        try:
            save_image.write_bytes(base64.b64decode(image_b64))
        except OSError as e:
            print(f"Error: failed to save snapshot: {e}", file=sys.stderr)
            return EXIT_INPUT_FAILED
        logger.info("Snapshot saved", extra={"path": str(save_image)})

    try:
        analysis = asyncio.run(analyzer.analyze(image_b64))
    except AnalysisError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_ANALYSIS_FAILED

    return _report(image_b64, analysis, output, as_json=False, include_beta=True)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ``climbscan`` command."""
    parser = argparse.ArgumentParser(
        prog="climbscan",
        description="Analyze climbing wall photos and render the route overlay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze a photo and print a summary
  climbscan analyze wall.jpg

  # Write the overlay without the beta panel
  climbscan analyze wall.jpg --output route.png --no-beta

  # Capture from the camera
  climbscan capture --output route.png
        """,
    )
    parser.add_argument(
        "--log-level", type=str, default="WARNING", help="Log level (default: WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")
    subparsers.required = True

    # Analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Analyze an image file")
    analyze_parser.add_argument("image", type=Path, help="JPEG or PNG wall photo")
    analyze_parser.add_argument(
        "--output", "-o", type=Path, help="Write the annotated overlay PNG here"
    )
    analyze_parser.add_argument(
        "--json", action="store_true", help="Print the analysis as JSON"
    )
    analyze_parser.add_argument(
        "--no-beta",
        action="store_true",
        help="Do not append the beta panel to the overlay",
    )

    # Capture command
    capture_parser = subparsers.add_parser(
        "capture", help="Capture one snapshot from the camera and analyze it"
    )
    capture_parser.add_argument(
        "--output", "-o", type=Path, help="Write the annotated overlay PNG here"
    )
    capture_parser.add_argument(
        "--save-image", type=Path, help="Keep the captured JPEG here"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """
    Main CLI entry point.

    Parses command-line arguments and executes the appropriate action.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level, json_output=False)

    if args.command == "analyze":
        sys.exit(
            run_analyze(
                args.image,
                output=args.output,
                as_json=args.json,
                include_beta=not args.no_beta,
            )
        )
    elif args.command == "capture":
        sys.exit(run_capture(output=args.output, save_image=args.save_image))
    else:
        parser.print_help()
        sys.exit(EXIT_INPUT_FAILED)


if __name__ == "__main__":
    main()
