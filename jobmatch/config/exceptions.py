"""Exceptions raised while loading configuration."""

from typing import Iterable, List, Optional


class ConfigurationError(Exception):
    """
    Configuration could not be loaded or failed validation.

    Collects individual validation errors and remediation hints so the CLI
    can print one readable report instead of a pydantic traceback.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[Iterable[str]] = None,
        suggestions: Optional[Iterable[str]] = None,
    ):
        self.message = message
        self.errors: List[str] = list(errors or [])
        self.suggestions: List[str] = list(suggestions or [])
        super().__init__(message)

    def __str__(self) -> str:
        lines = [self.message]
        if self.errors:
            lines.append("\nValidation Errors:")
            lines.extend(f"  {idx}. {error}" for idx, error in enumerate(self.errors, 1))
        if self.suggestions:
            lines.append("\nSuggestions:")
            lines.extend(f"  - {hint}" for hint in self.suggestions)
        return "\n".join(lines)

    def add_error(self, error: str) -> None:
        """Append a validation error."""
        self.errors.append(error)

    def add_suggestion(self, suggestion: str) -> None:
        """Append a remediation hint."""
        self.suggestions.append(suggestion)
