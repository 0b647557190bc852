"""File uploads.

``Uploader`` validates uploaded files and writes them into a directory
under collision-resistant names. ``UploadField`` declares an upload on a
model; ``store_uploads`` and ``remove_files`` do the model-side
bookkeeping::

    uploader = Uploader("uploads/avatars", extensions=("jpg", "png"), resize=(128, 128))
    saved = await uploader.upload(form.file("avatar"))

    class Product(Model):
        table = "products"
        uploads = (UploadField("image", upload_to="products", extensions=("jpg", "png")),)
"""

from __future__ import annotations

import logging
import re
import secrets
import unicodedata
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Any

import anyio.to_thread

from hyper.errors import HyperError
from hyper.http.mappings import FormData, UploadFile
from hyper.utils.image import IMAGE_EXTENSIONS, ImageFile

logger = logging.getLogger("hyper.uploads")

DEFAULT_MAX_SIZE = 2 * 1024 * 1024  # 2 MB

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")


class UploadError(HyperError):
    """An uploaded file was rejected or could not be stored."""


def unique_filename(filename: str) -> str:
    """``{slug}_{token}.{ext}``: an ASCII slug of at most 50 chars plus a random token."""
    path = PurePath(filename)
    extension = path.suffix.lstrip(".")
    stem = unicodedata.normalize("NFKD", path.stem).encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM.sub("-", stem).strip("-")[:50]
    name = f"{slug}_{secrets.token_hex(7)}"
    return f"{name}.{extension}" if extension else name


@dataclass(frozen=True, slots=True)
class Uploader:
    """Validates and stores uploaded files in ``upload_dir``.

    ``resize`` is one ``(width, height)`` applied in place; ``resizes``
    maps widths to heights for extra resized copies; ``compress`` is a
    0-100 quality. Image options only apply to jpg, jpeg and png files.
    """

    upload_dir: str | Path
    extensions: Sequence[str] = ()
    multiple: bool = False
    max_size: int | None = DEFAULT_MAX_SIZE
    resize: tuple[int, int] | None = None
    resizes: Mapping[int, int] | None = None
    compress: int | None = None

    async def upload(self, files: UploadFile | Sequence[UploadFile]) -> Path | list[Path]:
        """Store *files*.

        Returns the stored path, or a list of paths when ``multiple`` is
        set or ``resizes`` produced extra copies.

        Raises:
            UploadError: If a file is too large or has a disallowed extension.
        """
        directory = Path(self.upload_dir)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise UploadError(f"Failed to create upload directory {directory}: {exc}") from exc

        if isinstance(files, UploadFile):
            files = [files]
        if not files:
            raise UploadError("No file uploaded.")
        if not self.multiple:
            saved = await self._store(directory, files[0])
            return saved[0] if len(saved) == 1 else saved

        stored: list[Path] = []
        for file in files:
            stored.extend(await self._store(directory, file))
        return stored

    async def _store(self, directory: Path, file: UploadFile) -> list[Path]:
        if self.max_size is not None and file.size > self.max_size:
            raise UploadError(f"{file.filename}: file size exceeds the maximum limit of {self.max_size} bytes.")

        extension = PurePath(file.filename).suffix.lstrip(".").lower()
        allowed = {e.lower().lstrip(".") for e in self.extensions}
        if allowed and extension not in allowed:
            raise UploadError(f"{file.filename}: invalid file extension {extension!r}.")

        destination = directory / unique_filename(file.filename)
        content = await file.read()
        try:
            await anyio.to_thread.run_sync(destination.write_bytes, content)
        except OSError as exc:
            raise UploadError(f"Failed to store {file.filename}: {exc}") from exc
        logger.info("Stored upload %s (%d bytes) as %s", file.filename, file.size, destination)

        saved = [destination]
        if extension in IMAGE_EXTENSIONS and (self.compress or self.resize or self.resizes):
            saved.extend(await anyio.to_thread.run_sync(self._process_image, destination))
        return saved

    def _process_image(self, path: Path) -> list[Path]:
        image = ImageFile(path)
        if self.compress is not None:
            image.compress(self.compress)
        if self.resize is not None:
            image.resize(*self.resize)
        if self.resizes:
            return image.bulk_resize(self.resizes)
        return []


@dataclass(frozen=True, slots=True)
class UploadField:
    """An upload declared on a model field. Files go to ``{root}/{upload_to}``."""

    name: str
    upload_to: str = ""
    extensions: Sequence[str] = ()
    multiple: bool = False
    max_size: int | None = DEFAULT_MAX_SIZE
    resize: tuple[int, int] | None = None
    resizes: Mapping[int, int] | None = None
    compress: int | None = None

    def uploader(self, root: str | Path) -> Uploader:
        return Uploader(
            Path(root) / self.upload_to,
            extensions=self.extensions,
            multiple=self.multiple,
            max_size=self.max_size,
            resize=self.resize,
            resizes=self.resizes,
            compress=self.compress,
        )


def _within(root: Path, name: str) -> Path | None:
    path = (root / name).resolve()
    if path.is_relative_to(root.resolve()):
        return path
    logger.warning("Ignoring upload path outside %s: %s", root, name)
    return None


def _relative(path: Path | list[Path], root: Path) -> str | list[str]:
    if isinstance(path, list):
        return [str(_relative(p, root)) for p in path]
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


async def store_uploads(
    fields: Iterable[UploadField],
    form: FormData,
    data: MutableMapping[str, Any],
    root: str | Path,
) -> MutableMapping[str, Any]:
    """Store files submitted for *fields* and record their paths in *data*.

    Paths are stored relative to *root*. The previous paths come from the
    comma-joined ``_{name}`` form field; they are deleted when a new file
    replaces them and kept otherwise.
    """
    root = Path(root)
    for field in fields:
        previous = [p for p in str(form.get(f"_{field.name}") or "").split(",") if p and _within(root, p)]
        files = [f for f in form.files.get(field.name, []) if f.size > 0]
        if files:
            saved = await field.uploader(root).upload(files if field.multiple else files[0])
            data[field.name] = _relative(saved, root)
            remove_files(root, previous)
        elif previous:
            data[field.name] = previous[0] if len(previous) == 1 else previous
    return data


def remove_files(root: str | Path, files: str | Iterable[str] | None) -> int:
    """Delete *files* (relative to *root*) that exist. Returns how many were removed.

    Paths that resolve outside *root* are skipped.
    """
    if not files:
        return 0
    if isinstance(files, str):
        files = [files]
    removed = 0
    for name in files:
        path = _within(Path(root), name)
        if path is not None and path.is_file():
            path.unlink()
            removed += 1
            logger.info("Removed upload %s", path)
    return removed
