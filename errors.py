"""Exceptions raised by the badge pipeline."""


class BadgePressError(Exception):
    """Base class for badge pipeline errors."""


class ValidationFailure(BadgePressError):
    """Render target is in a state that would rasterize to a blank page."""


class CaptureFailure(BadgePressError):
    """Every tier of the capture ladder failed."""


class TaintedBufferError(BadgePressError):
    """Capture buffer cannot be read back as pixels."""


class ExportFailure(BadgePressError):
    """Neither direct pixel read nor blob export produced an image."""


class FinalizeFailure(BadgePressError):
    """The assembled document could not be encoded."""


class EmptyDocumentError(FinalizeFailure):
    """No page was assembled, so there is nothing to finalize."""
