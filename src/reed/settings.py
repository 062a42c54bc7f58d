"""Configuration helpers for reed."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_LIBRARY_ROOT = Path.home() / "Papers"
DEFAULT_NAME_TEMPLATE = "%L-%Y-%T"


class Settings(BaseModel):
    """Runtime configuration loaded from env vars with sensible defaults."""

    library_root: Path = Field(default_factory=lambda: DEFAULT_LIBRARY_ROOT)
    store_filename: str = "library.json"
    name_template: str = DEFAULT_NAME_TEMPLATE
    max_author_names: int = Field(default=2, ge=0)
    author_separator: str = "_"
    max_name_length: int = Field(default=180, ge=32)
    transfer_mode: Literal["move", "copy"] = "move"
    log_level: str = "INFO"
    crossref_base_url: str = "https://api.crossref.org/works"

    @property
    def store_path(self) -> Path:
        return self.library_root / self.store_filename

    def ensure_directories(self) -> None:
        """Create the library root if it is missing."""
        self.library_root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Settings":
        load_dotenv()
        return cls(
            library_root=Path(os.environ.get("REED_LIBRARY_ROOT", DEFAULT_LIBRARY_ROOT)).expanduser(),
            store_filename=os.environ.get("REED_STORE_FILENAME", "library.json"),
            name_template=os.environ.get("REED_NAME_TEMPLATE", DEFAULT_NAME_TEMPLATE),
            max_author_names=int(os.environ.get("REED_MAX_AUTHOR_NAMES", "2")),
            author_separator=os.environ.get("REED_AUTHOR_SEPARATOR", "_"),
            max_name_length=int(os.environ.get("REED_MAX_NAME_LENGTH", "180")),
            transfer_mode=os.environ.get("REED_TRANSFER_MODE", "move"),
            log_level=os.environ.get("REED_LOG_LEVEL", "INFO"),
            crossref_base_url=os.environ.get(
                "REED_CROSSREF_URL", "https://api.crossref.org/works"
            ),
        )


def get_settings() -> Settings:
    """Convenience accessor for the CLI."""
    settings = Settings.load()
    settings.ensure_directories()
    return settings
