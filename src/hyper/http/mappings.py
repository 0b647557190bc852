"""Immutable multi-value mappings: headers, query params, form data.

All three share one shape: ``dict[str, list[str]]`` under the hood,
``__getitem__`` returns the first value, ``get_list`` returns them all.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import parse_qs


class MultiValueMapping(Mapping[str, str]):
    """Read-only ``Mapping[str, str]`` over a ``dict[str, list[str]]``."""

    __slots__ = ("_data",)

    _data: dict[str, list[str]]

    def __init__(self, data: dict[str, list[str]] | None = None) -> None:
        object.__setattr__(self, "_data", data or {})

    def _key(self, key: str) -> str:
        return key

    def __getitem__(self, key: str) -> str:
        return self._data[self._key(key)][0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._key(key) in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"{type(self).__name__}({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self._data.get(self._key(key))
        if values:
            return values[0]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key* (checkboxes, multi-selects, repeated headers)."""
        return list(self._data.get(self._key(key), []))

    def to_dict(self) -> dict[str, str | list[str]]:
        """Flatten to a plain dict; repeated keys keep all their values."""
        return {k: v[0] if len(v) == 1 else list(v) for k, v in self._data.items()}


class Headers(MultiValueMapping):
    """Case-insensitive HTTP headers built from raw ASGI byte pairs."""

    __slots__ = ("_raw",)

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        data: dict[str, list[str]] = {}
        for name, value in raw:
            data.setdefault(name.decode("latin-1").lower(), []).append(value.decode("latin-1"))
        super().__init__(data)
        object.__setattr__(self, "_raw", raw)

    def _key(self, key: str) -> str:
        return key.lower()

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        """Raw header byte pairs, as received."""
        return self._raw


class QueryParams(MultiValueMapping):
    """Parsed query string parameters."""

    __slots__ = ("_raw",)

    def __init__(self, query_string: bytes = b"") -> None:
        super().__init__(parse_qs(query_string.decode("latin-1"), keep_blank_values=True))
        object.__setattr__(self, "_raw", query_string)

    @property
    def raw(self) -> bytes:
        """The undecoded query string."""
        return self._raw

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Return value as int, or *default* if missing or not numeric."""
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default


@dataclass(frozen=True, slots=True)
class UploadFile:
    """An uploaded file from a multipart form submission.

    Content is held in memory; ``hyper.uploads.Uploader`` validates and
    moves it into the upload directory.
    """

    filename: str
    content_type: str
    size: int
    _content: bytes

    async def read(self) -> bytes:
        """Return the file content as bytes."""
        return self._content

    async def save(self, path: Path) -> None:
        """Write the file content to *path*. Parent directories must exist."""
        path.write_bytes(self._content)

    def __repr__(self) -> str:
        return f"UploadFile({self.filename!r}, {self.content_type!r}, {self.size} bytes)"


class FormData(MultiValueMapping):
    """Parsed form fields plus uploaded files.

    ``files`` maps a field name to every file submitted under it, so
    ``<input type="file" multiple>`` yields a list.
    """

    __slots__ = ("_files",)

    def __init__(
        self,
        data: dict[str, list[str]] | None = None,
        files: dict[str, list[UploadFile]] | None = None,
    ) -> None:
        super().__init__(data)
        object.__setattr__(self, "_files", files or {})

    @property
    def files(self) -> Mapping[str, list[UploadFile]]:
        """Uploaded files by field name."""
        return self._files

    def file(self, key: str) -> UploadFile | None:
        """Return the first file uploaded under *key*, or ``None``."""
        files = self._files.get(key)
        return files[0] if files else None
