"""Exceptions raised by the recognition pipeline."""


class RecognitionError(Exception):
    """Base class for every board recognition failure."""


class BoardNotFound(RecognitionError):
    """No sufficiently board-like region in the screenshot."""


class MalformedCrop(RecognitionError):
    """The detected region failed the size/aspect sanity checks."""


class TemplateLoadError(RecognitionError):
    """A piece template for the requested site is missing or unreadable."""


class InvalidPosition(RecognitionError):
    """The recognized position cannot be expressed as a valid FEN."""


class VisionRecognitionFailed(RecognitionError):
    """The vision-model path could not produce a trusted FEN."""


class LlmUnavailable(VisionRecognitionFailed):
    """No API key is configured for the vision model."""


class TransportError(VisionRecognitionFailed):
    """The vision-model service could not be reached or returned no answer."""


class ReplyValidationError(VisionRecognitionFailed):
    """The vision model answered with an impossible position."""


class EngineError(Exception):
    """The chess engine rejected the position or failed to search."""
