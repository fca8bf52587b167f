"""Exceptions raised by tracked."""


class TrackedError(Exception):
    """Base class for errors raised by tracked itself."""


class MisuseError(TrackedError, TypeError):
    """The reactive contract was used on something it does not apply to.

    Raised immediately, e.g. when subscribing to an object that has no Registry.
    """
