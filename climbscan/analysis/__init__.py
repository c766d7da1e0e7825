"""Route analysis: prompt, response schema and the Gemini client.

Modules:
    client: RouteAnalysisClient and the all-or-nothing response parser
    prompt: fixed instruction text and declared response schema
    exceptions: AnalysisError hierarchy
"""

from climbscan.analysis.client import (
    DEFAULT_MODEL,
    EMPTY_RESPONSE_MESSAGE,
    INVALID_FORMAT_MESSAGE,
    SERVICE_FAILURE_MESSAGE,
    RouteAnalysisClient,
    decode_image,
    parse_route_analysis,
)
from climbscan.analysis.exceptions import (
    AnalysisConfigurationError,
    AnalysisError,
    AnalysisServiceError,
    EmptyResponseError,
    InvalidImageError,
    InvalidResponseFormatError,
)
from climbscan.analysis.prompt import ANALYSIS_PROMPT, RESPONSE_SCHEMA

__all__ = [
    "ANALYSIS_PROMPT",
    "DEFAULT_MODEL",
    "EMPTY_RESPONSE_MESSAGE",
    "INVALID_FORMAT_MESSAGE",
    "RESPONSE_SCHEMA",
    "SERVICE_FAILURE_MESSAGE",
    "AnalysisConfigurationError",
    "AnalysisError",
    "AnalysisServiceError",
    "EmptyResponseError",
    "InvalidImageError",
    "InvalidResponseFormatError",
    "RouteAnalysisClient",
    "decode_image",
    "parse_route_analysis",
]
