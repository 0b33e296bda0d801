"""
Runtime settings read from the environment.

Values may come from a ``.env`` file; the CLI calls ``load_dotenv()`` before
building ``Settings``.
"""

import logging
import os
from dataclasses import dataclass

from .codec import normalize_format
from .errors import EncodeError

DEFAULT_SIGNATURE_LABEL = "Signed at:"
# dd/mm/yyyy, HH:MM:SS (pt-BR locale layout)
DEFAULT_TIMESTAMP_FORMAT = "%d/%m/%Y, %H:%M:%S"


@dataclass
class Settings:
    """Defaults for output format, annotation text and logging."""
    output_format: str = "png"
    font_path: str | None = None
    signature_label: str = DEFAULT_SIGNATURE_LABEL
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from ``DOCSCAN_*`` environment variables.

        Raises:
            ValueError: If DOCSCAN_OUTPUT_FORMAT is not png, jpg or webp, or
                DOCSCAN_LOG_LEVEL is not a logging level name
        """
        fmt: str = os.getenv("DOCSCAN_OUTPUT_FORMAT", "png")
        try:
            fmt = normalize_format(fmt)
        except EncodeError as exc:
            raise ValueError(f"DOCSCAN_OUTPUT_FORMAT: {exc}") from exc

        log_level = os.getenv("DOCSCAN_LOG_LEVEL", "WARNING").strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"DOCSCAN_LOG_LEVEL: Unknown logging level: {log_level!r}")

        return cls(
            output_format=fmt,
            font_path=os.getenv("DOCSCAN_FONT_PATH") or None,
            signature_label=os.getenv("DOCSCAN_SIGNATURE_LABEL", DEFAULT_SIGNATURE_LABEL),
            timestamp_format=os.getenv("DOCSCAN_TIMESTAMP_FORMAT", DEFAULT_TIMESTAMP_FORMAT),
            log_level=log_level,
        )
