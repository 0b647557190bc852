"""Route path templates compiled to anchored regular expressions.

Syntax::

    /users              literal
    /users/{id}         one required segment, [a-zA-Z0-9_-]+
    /posts/{slug?}      optional trailing segment, slash included
    /assets/*           the rest of the path, possibly empty

Captured values are keyed by placeholder name. When the number of
names and capture groups disagree (a ``*`` alongside placeholders, for
instance) they are keyed by position instead: 0, 1, 2, ...
"""

import re
from dataclasses import dataclass
from functools import lru_cache

_TOKEN = re.compile(r"/\{(?P<opt>[a-zA-Z_][a-zA-Z0-9_]*)\?\}|\{(?P<name>[a-zA-Z_][a-zA-Z0-9_]*)(?P<bare>\?)?\}|\*")
_NAMES = re.compile(r"\{([^}]+)\}")

_SEGMENT = "[a-zA-Z0-9_-]"


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """A compiled route template."""

    template: str
    regex: re.Pattern[str]
    names: tuple[str, ...]
    optional: tuple[bool, ...]

    @property
    def positional(self) -> bool:
        """True when captures are keyed by index rather than by name."""
        return len(self.names) != self.regex.groups


@lru_cache(maxsize=1024)
def compile_pattern(template: str) -> CompiledPattern:
    """Compile *template* into an anchored regex. Memoized per template."""
    parts: list[str] = []
    optional: list[bool] = []
    pos = 0
    for token in _TOKEN.finditer(template):
        parts.append(re.escape(template[pos : token.start()]))
        if token.group("opt"):
            parts.append(f"(?:/({_SEGMENT}*))?")
            optional.append(True)
        elif token.group("name"):
            if token.group("bare"):
                parts.append(f"({_SEGMENT}*)")
                optional.append(True)
            else:
                parts.append(f"({_SEGMENT}+)")
                optional.append(False)
        else:
            parts.append("(.*)")
            optional.append(True)
        pos = token.end()
    parts.append(re.escape(template[pos:]))

    names = tuple(name.rstrip("?") for name in _NAMES.findall(template))
    return CompiledPattern(
        template=template,
        regex=re.compile(f"^{''.join(parts)}$"),
        names=names,
        optional=tuple(optional),
    )


def match(pattern: CompiledPattern | str, path: str) -> dict[str | int, str] | None:
    """Match *path* against *pattern*.

    Returns the captured params, or ``None`` if the path does not match.
    An optional segment that is absent yields ``""``.
    """
    if isinstance(pattern, str):
        pattern = compile_pattern(pattern)
    found = pattern.regex.match(path)
    if found is None:
        return None
    values = ["" if value is None else value for value in found.groups()]
    if pattern.positional:
        return dict(enumerate(values))
    return dict(zip(pattern.names, values, strict=True))
