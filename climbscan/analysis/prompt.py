"""Fixed instruction prompt and response schema for route analysis."""

from typing import Final

from google.genai import types

from climbscan.models import HoldType

ANALYSIS_PROMPT: Final[str] = """Analyze this climbing wall image.
1. Identify a logical, interesting climbing route.
2. Map the holds with coordinates (x, y as percentages 0-100 of the image width and height).
3. Determine the difficulty grade (using French 5a-9c or V-scale V0-V17).
4. Provide a "Beta" (step-by-step movements).

Important: Return ONLY a JSON object corresponding to the provided schema.
List the holds in climbing order, from the start hold to the top hold.
Make sure 'holds' coordinates are accurate to where holds are actually visible in the image."""

_HOLD_TYPE_NAMES: Final[str] = ", ".join(t.value for t in HoldType)

RESPONSE_SCHEMA: Final[types.Schema] = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "name": types.Schema(type=types.Type.STRING),
        "grade": types.Schema(type=types.Type.STRING),
        "description": types.Schema(type=types.Type.STRING),
        "style": types.Schema(type=types.Type.STRING),
        "holds": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "x": types.Schema(type=types.Type.NUMBER),
                    "y": types.Schema(type=types.Type.NUMBER),
                    "type": types.Schema(
                        type=types.Type.STRING,
                        description=f"One of: {_HOLD_TYPE_NAMES}",
                    ),
                    "description": types.Schema(type=types.Type.STRING),
                },
                required=["x", "y", "type"],
            ),
        ),
        "beta": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "step": types.Schema(type=types.Type.INTEGER),
                    "action": types.Schema(type=types.Type.STRING),
                    "description": types.Schema(type=types.Type.STRING),
                },
            ),
        ),
    },
    required=["name", "grade", "holds", "beta"],
)
