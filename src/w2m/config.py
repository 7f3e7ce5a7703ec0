"""Configuration loading from environment variables and w2m.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_HOME = Path.home() / ".w2m"
_DEFAULT_VAULT_DIR = _DEFAULT_HOME / "vault"
_CONFIG_FILENAME = "w2m.toml"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _as_list(value: object) -> list[str]:
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value or [])
    return [str(item).strip() for item in items if str(item).strip()]


@dataclass
class VaultConfig:
    """Where markdown documents are written."""

    path: Path = _DEFAULT_VAULT_DIR
    enable_frontmatter: bool = True


@dataclass
class StorageConfig:
    """Storage backend selection."""

    type: str = "local"


@dataclass
class IngestConfig:
    """Which chat groups feed the archive (empty: all)."""

    allowed_groups: list[str] = field(default_factory=list)


@dataclass
class WebhookConfig:
    """HTTP webhook connector configuration."""

    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9000
    token: str = ""


@dataclass
class W2MConfig:
    """Top-level W2M configuration."""

    vault: VaultConfig = field(default_factory=VaultConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    categories_file: Path | None = None
    pid_file: Path = _DEFAULT_HOME / "w2m.pid"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        # The registry lives beside the vault, not inside it
        if self.categories_file is None:
            self.categories_file = self.vault.path.parent / "categories.json"


def load_config(config_path: Path | None = None) -> W2MConfig:
    """Load configuration from environment variables and optional w2m.toml.

    Priority: environment variables > w2m.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.w2m/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, _DEFAULT_HOME / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    vault_data = file_data.get("vault", {})
    storage_data = file_data.get("storage", {})
    ingest_data = file_data.get("ingest", {})
    webhook_data = file_data.get("webhook", {})

    categories_file = os.getenv("W2M_CATEGORIES_FILE", file_data.get("categories_file"))

    config = W2MConfig(
        vault=VaultConfig(
            path=Path(
                os.getenv("W2M_VAULT_PATH", vault_data.get("path", str(_DEFAULT_VAULT_DIR)))
            ).expanduser(),
            enable_frontmatter=_as_bool(
                os.getenv("W2M_ENABLE_FRONTMATTER", vault_data.get("enable_frontmatter", True))
            ),
        ),
        storage=StorageConfig(
            type=os.getenv("W2M_STORAGE", storage_data.get("type", "local")),
        ),
        ingest=IngestConfig(
            allowed_groups=_as_list(
                os.getenv("W2M_ALLOWED_GROUPS", ingest_data.get("allowed_groups", []))
            ),
        ),
        webhook=WebhookConfig(
            enabled=_as_bool(os.getenv("W2M_WEBHOOK_ENABLED", webhook_data.get("enabled", False))),
            host=os.getenv("W2M_WEBHOOK_HOST", webhook_data.get("host", "127.0.0.1")),
            port=int(os.getenv("W2M_WEBHOOK_PORT", webhook_data.get("port", 9000))),
            token=os.getenv("W2M_WEBHOOK_TOKEN", webhook_data.get("token", "")),
        ),
        categories_file=Path(categories_file).expanduser() if categories_file else None,
        log_level=os.getenv("W2M_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
