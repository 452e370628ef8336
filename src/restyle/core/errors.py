"""Exception taxonomy for the Restyle engine.

Errors are split by how far they are allowed to travel:

- :class:`InvalidInputError` rejects a whole submission before any work
  starts (empty image set, empty or unusable style set).
- :class:`TransformError` is raised by a single attempt against the external
  image service.  It never leaves
  :class:`~restyle.core.invoker.StyleTransformInvoker`; exhausted retries are
  reported as a :class:`~restyle.core.models.Failure` outcome instead.
- :class:`PersistenceError` is raised by the gallery store when a write
  fails.  The batch executor logs it and keeps the unit's success.
- :class:`NotFoundError` and :class:`PathTraversalError` are read-side
  errors surfaced to HTTP clients as 404 and 400.
"""


class RestyleError(Exception):
    """Base class for all errors raised by the Restyle package."""


class InvalidInputError(RestyleError):
    """The submitted images or styles cannot form a batch.

    The message is intended to be displayed directly to the user.
    """


class TransformError(RestyleError):
    """A single call to the external image service failed."""


class NoImageDataError(TransformError):
    """The service answered, but the response carried no image payload."""


class PersistenceError(RestyleError):
    """A transformed image could not be written to the gallery."""


class NotFoundError(RestyleError):
    """A requested session, style group or image does not exist."""


class PathTraversalError(RestyleError):
    """A path component would resolve outside the gallery root."""
