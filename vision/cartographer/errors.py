"""Error taxonomy for the route tracker.

Fatal errors (StreamOpenError, UnknownMapError) end the session before or
while the pipeline starts. DetectionFailed and MatchError only drop the
current frame.
"""


class CartographerError(Exception):
    """Base class for route tracker errors."""


class StreamOpenError(CartographerError):
    """The video source could not be opened."""


class UnknownMapError(CartographerError):
    """The reference map name could not be resolved to an image."""


class DetectionFailed(CartographerError):
    """No plausible minimap rectangle was found in this frame."""


class MatchError(CartographerError):
    """The rescaled template cannot be matched against the reference map."""
