"""Exception types raised by the planner."""


class PlannerError(Exception):
    """Raised for errors reported through diagnostics in raise_errors mode."""


class IndexCorruptionError(AssertionError):
    """The entity index no longer agrees with the entities it tracks.

    This is a programming error, never a recoverable condition, so it derives
    from AssertionError.
    """
