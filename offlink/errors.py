class OfflinkError(Exception):
    """Base exception for offlink errors."""


class QueueError(OfflinkError):
    """General durable queue issues."""


class QueueWriteError(QueueError):
    """An operation could not be durably appended to the queue."""


class SerializationError(OfflinkError):
    """A queued operation could not be encoded or decoded."""


class LinkError(OfflinkError):
    """Failure carried on a response produced by the link chain."""


class TransportError(LinkError):
    """The terminating transport could not reach the remote service."""
