"""Route data model shared by the analysis client, renderer and session.

All models are frozen: a ``RouteAnalysis`` is produced once from a parsed
service response and replaced wholesale by the next analysis, never
edited in place.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class HoldType(str, Enum):
    """Semantic role of a hold on the route."""

    START = "start"
    HAND = "hand"
    FOOT = "foot"
    TOP = "top"
    INTERMEDIATE = "intermediate"


class AppStatus(str, Enum):
    """Status of the scan session; selects which side effects are permitted."""

    IDLE = "idle"
    CAMERA = "camera"
    ANALYZING = "analyzing"
    RESULTS = "results"
    ERROR = "error"


class Hold(BaseModel):
    """A contact point on the wall.

    Coordinates are percentages of the image size so they stay valid at
    any render scale.

    Attributes:
        x: Horizontal position, percent of image width (0-100).
        y: Vertical position, percent of image height (0-100).
        type: Role of the hold within the route.
        description: Optional free-text note from the model.
    """

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    type: HoldType
    description: str | None = None


class BetaStep(BaseModel):
    """One instruction in the movement sequence.

    Attributes:
        step: Ordinal reported by the model, 0 when absent. Not validated
            and not used for ordering.
        action: Short imperative label, e.g. "High step".
        description: Prose detail for the move.
    """

    model_config = ConfigDict(frozen=True)

    step: int = 0
    action: str = ""
    description: str = ""


class RouteAnalysis(BaseModel):
    """Aggregate result of one analysis call.

    ``holds`` and ``beta`` are independent sequences: beta steps do not
    index into holds and their lengths need not match.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "name": "Crimson Arete",
                "grade": "V4",
                "description": "Technical arete with a committing top-out.",
                "style": "Technical",
                "holds": [
                    {"x": 50, "y": 90, "type": "start"},
                    {"x": 55, "y": 10, "type": "top"},
                ],
                "beta": [
                    {"step": 1, "action": "Start", "description": "Match both hands."}
                ],
            }
        },
    )

    name: str
    grade: str
    description: str = ""
    style: str = ""
    holds: tuple[Hold, ...]
    beta: tuple[BetaStep, ...]
