"""Input validation: named or callable rules, errors collected per field.

Usage::

    from hyper.validation import validate

    async def register(request: Request):
        form = await request.form()
        result = validate(form, {
            "name": "required|max:50",
            "email": ["required", "email"],
            "password": ["required", "min:8"],
            "password_confirm": ["equal:password"],
        })
        if not result:
            return Template("register.html", form=form, errors=result.errors)
        # result.data has the values that passed

Nothing is raised for invalid input; ``validate_or_raise`` is the strict
variant that raises ``ValidationError`` (a 422 ``HTTPError``).
"""

from collections.abc import Mapping, Sequence
from typing import Any

from hyper.validation.result import ValidationError, ValidationResult
from hyper.validation.rules import (
    Rule,
    apply_rule,
    array,
    email,
    equal,
    exact_length,
    max_length,
    min_length,
    number,
    parse_rule,
    pretty_field,
    required,
    text,
    url,
)
from hyper.validation.sanitizer import Sanitizer

__all__ = [
    "Rule",
    "Sanitizer",
    "ValidationError",
    "ValidationResult",
    "array",
    "email",
    "equal",
    "exact_length",
    "max_length",
    "min_length",
    "number",
    "pretty_field",
    "required",
    "text",
    "url",
    "validate",
    "validate_or_raise",
]


def _rules_for(declared: str | Rule | Sequence[str | Rule]) -> list[Rule]:
    if isinstance(declared, str):
        declared = [part for part in declared.split("|") if part.strip()]
    elif callable(declared):
        declared = [declared]
    return [parse_rule(rule) if isinstance(rule, str) else rule for rule in declared]


def _value_for(data: Mapping[str, Any], field: str, rules: list[Rule]) -> Any:
    # Multi-valued fields (checkboxes, multi-selects) validate as lists
    get_list = getattr(data, "get_list", None)
    if get_list is None:
        return data.get(field)
    values = get_list(field)
    if len(values) > 1 or array in rules:
        return list(values)
    return values[0] if values else None


def validate(
    data: Mapping[str, Any],
    rules: Mapping[str, str | Rule | Sequence[str | Rule]],
) -> ValidationResult:
    """Validate *data* against *rules*. Never raises for invalid input.

    Args:
        data: Any mapping of field names to values: ``FormData``,
            ``QueryParams``, a decoded JSON object, or a plain ``dict``.
        rules: Field name to rules. A rule is a name (``"required"``,
            ``"min:8"``), a ``|``-joined string of names, or a callable
            returning an error message or ``None``.

    Raises:
        ConfigurationError: If a rule name is unknown.
    """
    errors: dict[str, list[str]] = {}
    cleaned: dict[str, Any] = {}

    for field, declared in rules.items():
        field_rules = _rules_for(declared)
        value = _value_for(data, field, field_rules)
        field_errors: list[str] = []
        for rule in field_rules:
            error = apply_rule(rule, value, field, data)
            if error is not None:
                field_errors.append(error)

        if field_errors:
            errors[field] = field_errors
        else:
            cleaned[field] = value

    return ValidationResult(data=cleaned, errors=errors)


def validate_or_raise(
    data: Mapping[str, Any],
    rules: Mapping[str, str | Rule | Sequence[str | Rule]],
) -> dict[str, Any]:
    """Validate and return the cleaned data, or raise ``ValidationError``."""
    result = validate(data, rules)
    if not result:
        raise ValidationError(result)
    return result.data
