# parapdf/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Dict, Any, Optional

from dotenv import load_dotenv

from .costs import DEFAULT_MODEL
from .exceptions import ConfigError, CredentialError
from .prompts import OUTPUT_LEVELS

logger = logging.getLogger("parapdf")

PAYLOAD_MODES = ("pdf", "text", "image")
OUTPUT_FORMATS = ("json", "csv", "txt")
DEFAULT_CLIENT = "parapdf.llm_client.AnthropicClient"


@dataclass
class AnalysisConfig:
    """Configuration for a parapdf batch run."""
    pdf_path: Path
    output_dir: Optional[Path] = None
    formats: List[str] = field(default_factory=lambda: ["json"])
    error_log_path: Optional[Path] = None

    model: str = DEFAULT_MODEL
    client: str = DEFAULT_CLIENT
    client_kwargs: Dict[str, Any] = field(default_factory=dict)
    request_timeout: float = 300.0  # per call, sized for large pages
    max_tokens: int = 8192

    concurrency: int = 4
    max_attempts: int = 3
    base_delay: float = 2.0
    wave_size: Optional[int] = None

    chunk_size: int = 1
    payload_mode: str = "pdf"
    max_pages: Optional[int] = None
    dpi: int = 150
    max_image_edge: int = 1568

    output_level: str = "detailed"
    prompt: Optional[str] = None

    log_file: Optional[Path] = None
    log_level: int = logging.INFO
    show_progress: bool = True

    def validate(self) -> "AnalysisConfig":
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.max_attempts < 1:
            raise ConfigError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ConfigError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.chunk_size < 1:
            raise ConfigError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.wave_size is not None and self.wave_size < 1:
            raise ConfigError(f"wave_size must be >= 1, got {self.wave_size}")
        if self.max_pages is not None and self.max_pages < 1:
            raise ConfigError(f"max_pages must be >= 1, got {self.max_pages}")
        if self.payload_mode not in PAYLOAD_MODES:
            raise ConfigError(f"Unknown payload mode '{self.payload_mode}'. Supported modes, {list(PAYLOAD_MODES)}")
        if self.output_level not in OUTPUT_LEVELS:
            raise ConfigError(f"Unknown output level '{self.output_level}'. Supported levels, {list(OUTPUT_LEVELS)}")
        bad = [f for f in self.formats if f not in OUTPUT_FORMATS]
        if bad:
            raise ConfigError(f"Unknown output format(s) {bad}. Supported formats, {list(OUTPUT_FORMATS)}")
        return self

    def to_dict(self):
        """Converts config to a plain dictionary, paths as strings."""
        d = asdict(self)
        for key, value in d.items():
            if isinstance(value, Path):
                d[key] = str(value)
        return d

    @classmethod
    def from_dict(cls, config_dict: dict):
        d = dict(config_dict)

        # normalize path-like fields
        for key in ["pdf_path", "output_dir", "error_log_path", "log_file"]:
            if key in d and isinstance(d[key], str):
                d[key] = Path(d[key])

        # allow explicit None to mean use default
        for key in ["concurrency", "max_attempts", "base_delay", "chunk_size", "dpi",
                    "formats", "model", "client", "output_level", "payload_mode"]:
            if d.get(key) is None:
                d.pop(key, None)

        return cls(**d)


def load_api_key(env_var: str = "ANTHROPIC_API_KEY", env_file: Optional[Path] = None) -> str:
    """
    Read the provider credential from the environment.
    A .env file is loaded first, the explicit one if given, else ./.env then ../.env.
    """
    if env_file is not None:
        if not Path(env_file).exists():
            raise CredentialError(f"Env file not found, {env_file}")
        load_dotenv(dotenv_path=env_file)
    elif not load_dotenv(dotenv_path=Path.cwd() / ".env"):
        if not load_dotenv(dotenv_path=Path.cwd().parent / ".env"):
            logger.debug("No .env file found, using process environment")

    key = os.getenv(env_var, "").strip()
    if not key:
        raise CredentialError(f"{env_var} not found in environment or .env file")
    return key
