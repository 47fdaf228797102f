"""Call-stack frame value object."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Frame:
    """One entry of a live call stack.

    Ephemeral: produced on each stack walk, never persisted.

    Attributes:
        file: Absolute path of the executing source file.
            None for frames without a file (e.g. exec'd strings).
        line: Line number (1-based). 0 when the runtime has no line
            for the frame.
    """

    file: str | None
    line: int

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if self.line < 0:
            raise ValueError(f"line must be >= 0, got {self.line}")

    def __str__(self) -> str:
        """Format as file:line."""
        return f"{self.file}:{self.line}"
