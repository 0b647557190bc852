"""Image post-processing for uploads, on Pillow.

Pillow is optional (``pip install hyper-framework[images]``); it is only
imported when an image is actually processed.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from hyper.errors import ConfigurationError

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png"})


def _pillow() -> Any:
    try:
        from PIL import Image
    except ImportError:
        msg = (
            "Image processing requires 'Pillow'. "
            "Install it with: pip install hyper-framework[images]"
        )
        raise ConfigurationError(msg) from None
    return Image


class ImageFile:
    """One image on disk. Every operation overwrites it unless given a destination."""

    __slots__ = ("path",)

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        if not self.path.is_file():
            msg = f"Image file {self.path} does not exist."
            raise FileNotFoundError(msg)

    @property
    def is_png(self) -> bool:
        return self.path.suffix.lower() == ".png"

    def compress(self, quality: int = 75, destination: str | Path | None = None) -> Path:
        """Re-encode with *quality* (0-100). PNGs map it onto zlib levels 0-9."""
        destination = Path(destination or self.path)
        with _pillow().open(self.path) as image:
            image.load()
            if self.is_png:
                image.save(destination, format="PNG", compress_level=round(9 * quality / 100))
            else:
                image.convert("RGB").save(destination, format="JPEG", quality=quality, optimize=True)
        return destination

    def resize(self, width: int, height: int, destination: str | Path | None = None) -> Path:
        """Scale to cover *width* x *height*, then center-crop to exactly that size."""
        pil = _pillow()
        destination = Path(destination or self.path)
        with pil.open(self.path) as image:
            image.load()
            src_width, src_height = image.size
            scale = max(width / src_width, height / src_height)
            scaled = image.resize(
                (max(round(src_width * scale), width), max(round(src_height * scale), height)),
                pil.Resampling.LANCZOS,
            )
            left = (scaled.width - width) // 2
            top = (scaled.height - height) // 2
            cropped = scaled.crop((left, top, left + width, top + height))
            if self.is_png:
                cropped.save(destination, format="PNG")
            else:
                cropped.convert("RGB").save(destination, format="JPEG")
        return destination

    def bulk_resize(self, sizes: Mapping[int, int]) -> list[Path]:
        """Write one ``{name}-{w}x{h}.{ext}`` copy per ``width: height`` entry."""
        saved: list[Path] = []
        for width, height in sizes.items():
            target = self.path.with_name(f"{self.path.stem}-{width}x{height}{self.path.suffix}")
            saved.append(self.resize(width, height, target))
        return saved
