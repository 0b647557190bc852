"""Validation result and the error raised by strict validation."""

from dataclasses import dataclass

from hyper.errors import HTTPError
from hyper.validation.sanitizer import Sanitizer


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """The outcome of validating input against a set of rules.

    The result is falsy when invalid, so you can write::

        result = validate(form, rules)
        if not result:
            return Template("form.html", form=form, errors=result.errors)

    ``data`` holds the values of every field that passed all its rules.
    ``errors`` maps field names to their messages, in rule order::

        {"email": ["The Email field must be a valid email address."]}
    """

    data: dict[str, object]
    errors: dict[str, list[str]]

    @property
    def is_valid(self) -> bool:
        """True if validation passed with no errors."""
        return not self.errors

    @property
    def first_error(self) -> str | None:
        """The first message of the first failing field, or ``None``."""
        for messages in self.errors.values():
            if messages:
                return messages[0]
        return None

    def sanitized(self) -> Sanitizer:
        """Typed, cleaned access to the values that passed."""
        return Sanitizer(self.data)

    def __bool__(self) -> bool:
        return self.is_valid


class ValidationError(HTTPError):
    """Raised by ``validate_or_raise``. Maps to 422, carrying every error."""

    def __init__(self, result: ValidationResult) -> None:
        super().__init__(status=422, detail=result.first_error or "Invalid input")
        self.result = result

    @property
    def errors(self) -> dict[str, list[str]]:
        return self.result.errors
