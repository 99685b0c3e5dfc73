"""Tests for ledgerpub.config — defaults, TOML loading, env overlay."""

from pathlib import Path

import pydantic
import pytest
from ledgerpub import config as config_module
from ledgerpub.config import LedgerPubConfig, PublishSectionConfig, load_config

_ENV_VARS = (
    "LEDGERPUB_RPC_URL",
    "LEDGERPUB_PROGRAM_ID",
    "LEDGERPUB_EXPLORER_URL",
    "LEDGERPUB_PINNING_URL",
    "LEDGERPUB_GATEWAY_URL",
    "LEDGERPUB_MAX_FILE_BYTES",
    "PINATA_JWT",
)


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path: Path):
    """Keep the developer's env and config files out of these tests."""
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "GLOBAL_CONFIG_PATH", tmp_path / "missing.toml")


class TestDefaults:
    def test_default_sections(self):
        cfg = LedgerPubConfig()
        assert cfg.ledger.commitment == "confirmed"
        assert cfg.publish.schema_version == 2
        assert cfg.publish.dedup_precheck is True
        assert cfg.reader.provenance_concurrency == 4
        assert ".pdf" in cfg.content.allowed_extensions

    def test_content_not_configured_without_token(self):
        assert LedgerPubConfig().content.is_configured is False

    def test_frozen(self):
        cfg = LedgerPubConfig()
        with pytest.raises(pydantic.ValidationError):
            cfg.ledger.rpc_url = "http://elsewhere"  # type: ignore[misc]

    def test_rejects_unknown_schema_version(self):
        with pytest.raises(pydantic.ValidationError):
            PublishSectionConfig(schema_version=3)

    def test_rejects_zero_concurrency(self):
        with pytest.raises(pydantic.ValidationError):
            LedgerPubConfig.model_validate({"reader": {"provenance_concurrency": 0}})


class TestLoadConfig:
    def test_no_file_gives_defaults(self):
        assert load_config() == LedgerPubConfig()

    def test_reads_cwd_file(self, tmp_path: Path):
        (tmp_path / ".ledgerpub.toml").write_text(
            '[ledger]\nrpc_url = "https://rpc.example"\nprogram_id = "papers"\n'
            "[content]\nmax_file_bytes = 1024\n",
            encoding="utf-8",
        )
        cfg = load_config()
        assert cfg.ledger.rpc_url == "https://rpc.example"
        assert cfg.ledger.program_id == "papers"
        assert cfg.content.max_file_bytes == 1024

    def test_explicit_path(self, tmp_path: Path):
        path = tmp_path / "custom.toml"
        path.write_text("[publish]\nschema_version = 1\n", encoding="utf-8")
        assert load_config(path).publish.schema_version == 1

    def test_missing_explicit_path_gives_defaults(self, tmp_path: Path):
        assert load_config(tmp_path / "nope.toml") == LedgerPubConfig()

    def test_malformed_toml_falls_back(self, tmp_path: Path):
        path = tmp_path / "bad.toml"
        path.write_text("[ledger\nrpc_url = ", encoding="utf-8")
        assert load_config(path) == LedgerPubConfig()


class TestEnvOverlay:
    def test_env_overrides_file(self, tmp_path: Path, monkeypatch):
        (tmp_path / ".ledgerpub.toml").write_text(
            '[ledger]\nrpc_url = "https://from-file"\n', encoding="utf-8"
        )
        monkeypatch.setenv("LEDGERPUB_RPC_URL", "https://from-env")
        monkeypatch.setenv("PINATA_JWT", "secret-token")
        cfg = load_config()
        assert cfg.ledger.rpc_url == "https://from-env"
        assert cfg.content.pinning_jwt == "secret-token"
        assert cfg.content.is_configured is True

    def test_max_file_bytes_from_env(self, monkeypatch):
        monkeypatch.setenv("LEDGERPUB_MAX_FILE_BYTES", "2048")
        assert load_config().content.max_file_bytes == 2048

    def test_bad_max_file_bytes_ignored(self, monkeypatch):
        monkeypatch.setenv("LEDGERPUB_MAX_FILE_BYTES", "lots")
        assert load_config().content.max_file_bytes == LedgerPubConfig().content.max_file_bytes
