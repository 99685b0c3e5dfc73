"""Configuration loaded from .ledgerpub.toml and env vars.

Loading order: defaults → TOML file → env vars.  The resulting
``LedgerPubConfig`` is frozen; build it once and pass it to the
deriver, reader and pipeline.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".ledgerpub.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "ledgerpub" / "config.toml"


class LedgerSectionConfig(BaseModel):
    """[ledger] section."""

    model_config = ConfigDict(frozen=True)

    rpc_url: str = "http://127.0.0.1:8899"
    program_id: str = "ledgerpub-records"
    commitment: str = "confirmed"
    explorer_url: str = "https://explorer.solana.com/tx/{tx_ref}?cluster=devnet"
    timeout_seconds: float = 30.0

    @field_validator("program_id")
    @classmethod
    def _program_id_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("program_id must not be empty")
        return value


class ContentSectionConfig(BaseModel):
    """[content] section."""

    model_config = ConfigDict(frozen=True)

    pinning_url: str = "https://api.pinata.cloud/pinning/pinFileToIPFS"
    gateway_url: str = "https://ipfs.io/ipfs"
    pinning_jwt: str = ""
    max_file_bytes: int = 25 * 1024 * 1024
    allowed_extensions: tuple[str, ...] = (".pdf", ".doc", ".docx")

    @property
    def is_configured(self) -> bool:
        return bool(self.pinning_url and self.pinning_jwt)


class PublishSectionConfig(BaseModel):
    """[publish] section."""

    model_config = ConfigDict(frozen=True)

    schema_version: int = 2
    dedup_precheck: bool = True

    @field_validator("schema_version")
    @classmethod
    def _known_version(cls, value: int) -> int:
        if value not in (1, 2):
            raise ValueError(f"unknown schema_version: {value}")
        return value


class ReaderSectionConfig(BaseModel):
    """[reader] section."""

    model_config = ConfigDict(frozen=True)

    schema_name: str = "record"
    provenance_concurrency: int = Field(default=4, ge=1)


class LedgerPubConfig(BaseModel):
    """Top-level configuration for publishing and browsing."""

    model_config = ConfigDict(frozen=True)

    ledger: LedgerSectionConfig = Field(default_factory=LedgerSectionConfig)
    content: ContentSectionConfig = Field(default_factory=ContentSectionConfig)
    publish: PublishSectionConfig = Field(default_factory=PublishSectionConfig)
    reader: ReaderSectionConfig = Field(default_factory=ReaderSectionConfig)


def load_config(path: str | Path | None = None) -> LedgerPubConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .ledgerpub.toml in CWD
    3. ~/.config/ledgerpub/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged LedgerPubConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = LedgerPubConfig.model_validate(data) if data else LedgerPubConfig()
    return _apply_env_vars(config)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: LedgerPubConfig) -> LedgerPubConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "LEDGERPUB_RPC_URL": ("ledger", "rpc_url"),
        "LEDGERPUB_PROGRAM_ID": ("ledger", "program_id"),
        "LEDGERPUB_EXPLORER_URL": ("ledger", "explorer_url"),
        "LEDGERPUB_PINNING_URL": ("content", "pinning_url"),
        "LEDGERPUB_GATEWAY_URL": ("content", "gateway_url"),
        "PINATA_JWT": ("content", "pinning_jwt"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    max_bytes_raw = os.environ.get("LEDGERPUB_MAX_FILE_BYTES")
    if max_bytes_raw is not None:
        try:
            data["content"]["max_file_bytes"] = int(max_bytes_raw)
        except ValueError:
            logger.warning("Ignoring non-integer LEDGERPUB_MAX_FILE_BYTES=%r", max_bytes_raw)

    return LedgerPubConfig.model_validate(data)
