"""
Service-level exceptions.
"""


class ValidationError(Exception):
    """Caller input violates a stated constraint (e.g. comparison size)."""
    pass


class InternalAggregationError(Exception):
    """Unexpected failure while deriving analytics from stored facts."""

    def __init__(self, section: str, cause: Exception):
        super().__init__(f"Failed to build section '{section}': {cause}")
        self.section = section
        self.cause = cause
