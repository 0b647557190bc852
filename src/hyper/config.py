"""Application configuration.

AppConfig is a frozen dataclass, immutable after creation. Database settings live in
``hyper.data.database.DatabaseConfig``.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, secret_key="s3cr3t", upload_dir="media")
    """

    # Runtime
    debug: bool = False

    # Security
    secret_key: str = ""

    # Templates
    template_dir: str | Path | None = "templates"
    autoescape: bool = True
    trim_blocks: bool = True
    lstrip_blocks: bool = True

    # Storage
    upload_dir: str | Path = "uploads"
    tmp_dir: str | Path = "tmp"  # file cache lives here

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB

    # Logging
    log_level: str = "info"
