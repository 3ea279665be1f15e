"""Exception types for agent-timeline."""


class TimelineError(Exception):
    """Base class for timeline errors."""


class MalformedEventError(TimelineError):
    """A known event kind arrived with a payload that does not validate."""


class MalformedRecordError(TimelineError):
    """A persisted log record cannot be decoded into an event."""
