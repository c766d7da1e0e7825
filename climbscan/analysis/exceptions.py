"""Analysis client exception hierarchy.

Every failure of one analysis call is reported as an AnalysisError
subclass whose ``message`` is safe to show to the user as-is.
"""


class AnalysisError(Exception):
    """Base class for route analysis errors.

    Attributes:
        message: User-facing description of the failure.

    Example:
        >>> try:
        ...     await client.analyze(image_b64)
        ... except AnalysisError as exc:
        ...     print(exc.message)
    """

    def __init__(self, message: str) -> None:
        """Initialize AnalysisError with a message.

        Args:
            message: Description of the analysis failure.
        """
        self.message = message
        super().__init__(self.message)


class AnalysisConfigurationError(AnalysisError):
    """Raised when the client has no credential to call the service with."""


class InvalidImageError(AnalysisError):
    """Raised when the image payload is not decodable base64."""


class AnalysisServiceError(AnalysisError):
    """Raised when the request to the analysis service fails outright."""


class EmptyResponseError(AnalysisError):
    """Raised when the service answers with no text payload."""


class InvalidResponseFormatError(AnalysisError):
    """Raised when the text payload does not parse as a RouteAnalysis."""
