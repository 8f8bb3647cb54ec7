"""Configuration loading for hashseal (.hashseal.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_FILENAME = ".hashseal.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ManifestConfig:
    """Names of the manifest and its detached signature."""

    filename: str = "hashes.md5"
    signature_filename: str = "hashes.md5.asc"


@dataclass
class HashingConfig:
    """Which hashing backend computes file digests."""

    backend: str = "tool"
    algorithm: str = "md5"
    tool: Optional[str] = None

    @property
    def tool_name(self) -> str:
        return self.tool or f"{self.algorithm}sum"


@dataclass
class SigningConfig:
    """GnuPG settings."""

    key_id: Optional[str] = None
    pin_key_on_verify: bool = False
    gpg_binary: str = "gpg"


@dataclass
class GitConfig:
    """Publishing behaviour."""

    commit_message: str = "Add signed hash manifest"
    push: bool = True


@dataclass
class HashSealConfig:
    """Represents the settings defined in .hashseal.yml."""

    root: Path
    marker: str = ".git"
    manifest: ManifestConfig = field(default_factory=ManifestConfig)
    hashing: HashingConfig = field(default_factory=HashingConfig)
    signing: SigningConfig = field(default_factory=SigningConfig)
    git: GitConfig = field(default_factory=GitConfig)


_BACKENDS = {"tool", "library"}


def load_config(config_path: Path) -> HashSealConfig:
    """Load configuration from disk.

    ``config_path`` may point at the file itself or at the directory holding
    it. The ``root`` key is resolved relative to the file's directory.
    """
    config_file = _resolve_config_path(config_path)
    base = config_file.parent

    if not config_file.exists():
        return HashSealConfig(root=base)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    root_value = _as_str(data.get("root"))
    root = (base / root_value).resolve() if root_value else base

    config = HashSealConfig(root=root)
    marker = _as_str(data.get("marker"))
    if marker:
        config.marker = marker

    manifest_data = _as_dict(data.get("manifest"))
    filename = _as_str(manifest_data.get("filename"))
    if filename:
        config.manifest.filename = filename
    signature_filename = _as_str(manifest_data.get("signature_filename"))
    config.manifest.signature_filename = signature_filename or f"{config.manifest.filename}.asc"
    if config.manifest.filename == config.manifest.signature_filename:
        raise ConfigError("manifest.filename and manifest.signature_filename must differ")

    hashing_data = _as_dict(data.get("hashing"))
    backend = _as_str(hashing_data.get("backend"))
    if backend:
        if backend not in _BACKENDS:
            raise ConfigError(
                f"hashing.backend must be one of {', '.join(sorted(_BACKENDS))}, got {backend!r}"
            )
        config.hashing.backend = backend
    algorithm = _as_str(hashing_data.get("algorithm"))
    if algorithm:
        config.hashing.algorithm = algorithm.lower()
    config.hashing.tool = _as_str(hashing_data.get("tool"))

    signing_data = _as_dict(data.get("signing"))
    config.signing.key_id = _as_str(signing_data.get("key_id"))
    pin = _as_bool(signing_data.get("pin_key_on_verify"))
    if pin is not None:
        config.signing.pin_key_on_verify = pin
    gpg_binary = _as_str(signing_data.get("gpg_binary"))
    if gpg_binary:
        config.signing.gpg_binary = gpg_binary

    git_data = _as_dict(data.get("git"))
    message = _as_str(git_data.get("commit_message"))
    if message:
        config.git.commit_message = message
    push = _as_bool(git_data.get("push"))
    if push is not None:
        config.git.push = push

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int, float)):
        text = str(value).strip()
        return text or None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "GitConfig",
    "HashSealConfig",
    "HashingConfig",
    "ManifestConfig",
    "SigningConfig",
    "load_config",
]
