class MerchFinderError(Exception):
    """Base class for errors raised by the merchfinder core."""


class ConfigurationError(MerchFinderError):
    """A provider credential or required setting is missing."""


class BadRequestError(MerchFinderError):
    """The caller supplied a missing or malformed value."""


class ImageRejectedError(MerchFinderError):
    """The vision model judged the image unusable (not anime, too unclear)."""


class ContentPolicyError(ImageRejectedError):
    """The provider refused the image on content-policy grounds."""


class ResponseParseError(MerchFinderError):
    """A provider answered, but not with the structured payload we asked for."""

    def __init__(self, message: str, stage: str = ""):
        super().__init__(message)
        self.stage = stage


class LLMRequestError(MerchFinderError):
    """Transport or HTTP failure talking to the vision provider."""


class SearchProviderError(MerchFinderError):
    """Transport, HTTP or format failure talking to the search provider."""
