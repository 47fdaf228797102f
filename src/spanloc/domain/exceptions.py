"""Domain exceptions: all public errors of spanloc.

Hexagonal architecture: all exceptions visible to users defined in domain.
Raised only at construction time (FAIL-FIRST). Attribution operations
never raise into instrumented code.
"""


class SpanLocError(Exception):
    """Base for all spanloc error exceptions.

    Allows: except SpanLocError to catch all library errors.
    """


class InvalidConfigError(SpanLocError, ValueError):
    """Engine configuration value out of range.

    Inherits ValueError for semantic correctness.

    Attributes:
        field: Name of invalid configuration field.
        reason: Why the value is invalid.
    """

    def __init__(self, field: str, reason: str) -> None:
        """Initialize with field name and reason."""
        self.field = field
        self.reason = reason
        super().__init__(f"invalid {field}: {reason}")


class InvalidCapacityError(SpanLocError, ValueError):
    """Cache capacity must be >= 1.

    Attributes:
        capacity: Invalid capacity value.
    """

    def __init__(self, capacity: int) -> None:
        """Initialize with invalid capacity."""
        self.capacity = capacity
        super().__init__(f"capacity must be >= 1, got {capacity}")


class UnknownVariantError(SpanLocError, ValueError):
    """Method variant name is not one of the known variants.

    Attributes:
        name: Variant name received.
    """

    def __init__(self, name: object) -> None:
        """Initialize with unknown variant name."""
        self.name = name
        super().__init__(f"unknown method variant: {name!r}")
