"""
nodescribe runtime settings, read from the environment (and a .env file
in the working directory when present).

    NODESCRIBE_HOST           bind address for the HTTP server   (127.0.0.1)
    NODESCRIBE_PORT           bind port                          (3001)
    NODESCRIBE_LOG_LEVEL      root logging level                 (INFO)
    NODESCRIBE_ASSET_DIR      directory of *.json snapshots loaded at start-up
    NODESCRIBE_STRICT_SCHEMA  reject unknown node types          (0)
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default) in ("1", "true", "True")


@dataclass
class Settings:
    HOST: str = field(default_factory=lambda: os.getenv("NODESCRIBE_HOST", "127.0.0.1"))
    PORT: int = field(default_factory=lambda: int(os.getenv("NODESCRIBE_PORT", "3001")))
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("NODESCRIBE_LOG_LEVEL", "INFO").upper())

    # Snapshots
    ASSET_DIR: Optional[str] = field(default_factory=lambda: os.getenv("NODESCRIBE_ASSET_DIR") or None)
    STRICT_SCHEMA: bool = field(default_factory=lambda: _flag("NODESCRIBE_STRICT_SCHEMA"))


settings = Settings()
