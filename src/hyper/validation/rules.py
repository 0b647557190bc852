"""Built-in validation rules.

Each rule is a callable with the signature::

    def rule(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
        '''Return an error message, or None if valid.'''

Rules are referenced by name in ``validate()``; parameterized rules take
their argument after a colon (``"min:8"``, ``"equal:password"``). Custom
rules can be plain callables taking ``(value)``, ``(value, field)`` or
``(value, field, data)``.

Except for ``required``, a rule passes when the value is missing, so
optional fields only get checked when they are filled in.
"""

import re
from collections.abc import Callable, Mapping, Sized
from typing import Any, TypeAlias
from urllib.parse import urlsplit

from hyper._internal.invoke import positional_arity
from hyper.errors import ConfigurationError

# Type alias for a validation rule
Rule: TypeAlias = Callable[..., str | None]


def pretty_field(field: str) -> str:
    """``"first_name"`` -> ``"First Name"``."""
    words = field.replace("-", " ").replace("_", " ").split(" ")
    return " ".join(word[:1].upper() + word[1:] for word in words)


def _empty(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() in ("", "0")
    return not value


def _length(value: Any) -> int:
    return len(value) if isinstance(value, Sized) else len(str(value))


# ---------------------------------------------------------------------------
# Presence
# ---------------------------------------------------------------------------


def required(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
    """Field must be present and non-empty."""
    if _empty(value):
        return f"The {pretty_field(field)} field is required."
    return None


# ---------------------------------------------------------------------------
# Format
# ---------------------------------------------------------------------------

# Basic email pattern: checks structure, not deliverability
_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")


def email(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
    """Value must be a valid email address (basic format check)."""
    if value is None or _EMAIL_RE.match(str(value)):
        return None
    return f"The {pretty_field(field)} field must be a valid email address."


def url(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
    """Value must be an absolute URL with a scheme and a host."""
    if value is None:
        return None
    parts = urlsplit(str(value))
    if parts.scheme and parts.netloc and " " not in str(value):
        return None
    return f"The {pretty_field(field)} field must be a valid URL."


# ---------------------------------------------------------------------------
# Type
# ---------------------------------------------------------------------------


def number(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
    """Value must be numeric (an int, a float, or a numeric string)."""
    if value is None or (isinstance(value, (int, float)) and not isinstance(value, bool)):
        return None
    try:
        float(str(value).strip())
    except ValueError:
        return f"The {pretty_field(field)} field must be a number."
    return None


def array(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
    """Value must be a list, tuple, or mapping."""
    if value is None or isinstance(value, (list, tuple, Mapping)):
        return None
    return f"The {pretty_field(field)} field must be an array."


def text(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
    """Value must be a string."""
    if value is None or isinstance(value, str):
        return None
    return f"The {pretty_field(field)} field must be a text."


# ---------------------------------------------------------------------------
# Length
# ---------------------------------------------------------------------------


def min_length(n: int) -> Rule:
    """Value must be at least *n* characters (or items)."""

    def check(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
        if value is not None and _length(value) < n:
            return f"The {pretty_field(field)} field must be at least {n} characters long."
        return None

    return check


def max_length(n: int) -> Rule:
    """Value must be at most *n* characters (or items)."""

    def check(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
        if value is not None and _length(value) > n:
            return f"The {pretty_field(field)} field must not exceed {n} characters."
        return None

    return check


def exact_length(n: int) -> Rule:
    """Value must be exactly *n* characters (or items)."""

    def check(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
        if value is not None and _length(value) != n:
            return f"The {pretty_field(field)} field must be {n} characters."
        return None

    return check


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def equal(other: str) -> Rule:
    """Value must equal the *other* field's value (password confirmation)."""

    def check(value: Any, field: str, data: Mapping[str, Any]) -> str | None:
        if value is None or str(value) == str(data.get(other) or ""):
            return None
        return f"The {pretty_field(field)} field must be equal to {pretty_field(other)} field."

    return check


# ---------------------------------------------------------------------------
# Named rules
# ---------------------------------------------------------------------------

RULES: dict[str, Rule] = {
    "required": required,
    "email": email,
    "url": url,
    "number": number,
    "array": array,
    "text": text,
}

FACTORIES: dict[str, Callable[[str], Rule]] = {
    "min": lambda arg: min_length(int(arg)),
    "max": lambda arg: max_length(int(arg)),
    "length": lambda arg: exact_length(int(arg)),
    "equal": equal,
}


def parse_rule(rule: str) -> Rule:
    """Turn ``"required"`` or ``"min:8"`` into a rule callable.

    Raises:
        ConfigurationError: For an unknown rule name or a bad argument.
    """
    name, _, arg = rule.partition(":")
    name = name.strip()
    if name in RULES and not arg:
        return RULES[name]
    factory = FACTORIES.get(name)
    if factory is None or not arg:
        msg = f"Unknown validation rule {rule!r}."
        raise ConfigurationError(msg)
    try:
        return factory(arg.strip())
    except ValueError:
        msg = f"Invalid argument for validation rule {rule!r}."
        raise ConfigurationError(msg) from None


def apply_rule(rule: Rule, value: Any, field: str, data: Mapping[str, Any]) -> str | None:
    """Run *rule* with as many of ``(value, field, data)`` as it accepts."""
    args = (value, field, data)[: positional_arity(rule)]
    result = rule(*args)
    if result is False:
        return f"The {pretty_field(field)} field has an invalid value."
    if result is True:
        return None
    return result
