from __future__ import annotations

from typing import Any

from shepherd.exceptions.base import ShepherdError


class ConfigError(ShepherdError):
    """Settings could not be read, parsed or validated.

    Attributes:
        field: Dotted path of the offending setting, e.g.
            ``"monitoring.max_retries"``, or None for file-level problems.
        value: The rejected value, if there was one.
    """

    def __init__(
        self, message: str, field: str | None = None, value: Any = None
    ) -> None:
        self.field = field
        self.value = value
        super().__init__(message)

    @property
    def details(self) -> list[str]:
        """``Field:``/``Value:`` lines for user-facing error output."""
        lines = []
        if self.field:
            lines.append(f"Field: {self.field}")
        if self.value is not None:
            lines.append(f"Value: {self.value}")
        return lines
