# FleetDesk - Service Errors


class NotFoundError(LookupError):
    """A record the caller asked for does not exist (or is not theirs to see)."""
    pass
