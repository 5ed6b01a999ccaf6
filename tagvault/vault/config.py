"""Vault configuration for tagvault encryption."""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .exceptions import VaultConfigError


@dataclass
class VaultConfig:
    """Configuration for vault encryption operations."""

    # Key derivation
    pbkdf2_iterations: int = 600_000
    salt_size: int = 16
    iv_size: int = 12  # 96 bits for AES-GCM

    # What to encrypt
    private_marker: str = "#private"
    content_extensions: tuple = (".md",)
    skip_dirs: tuple = (".git", ".obsidian", ".trash")

    # Password handling
    max_password_attempts: int = 3
    min_password_length: int = 1

    # Per-vault overrides
    config_file: str = "tagvault.yaml"

    def has_marker(self, content: str) -> bool:
        """Check whether content carries the private marker."""
        return self.private_marker in content

    def is_content_path(self, path: str) -> bool:
        """Check whether a path is a text file governed by the vault."""
        return any(path.endswith(ext) for ext in self.content_extensions)

    def apply(self, values: dict[str, Any]) -> "VaultConfig":
        """
        Apply overrides from a mapping.

        Args:
            values: Field names mapped to new values

        Returns:
            self, for chaining

        Raises:
            VaultConfigError: On unknown keys or bad values
        """
        known = {f.name: f for f in fields(self)}
        for key, value in values.items():
            if key not in known:
                raise VaultConfigError(f"Unknown vault setting: {key}")
            if key in ("content_extensions", "skip_dirs"):
                if isinstance(value, str):
                    value = [value]
                value = tuple(str(v) for v in value)
            elif key in ("pbkdf2_iterations", "max_password_attempts", "min_password_length"):
                try:
                    value = int(value)
                except (TypeError, ValueError):
                    raise VaultConfigError(f"{key} must be an integer, got {value!r}")
                if value < 1:
                    raise VaultConfigError(f"{key} must be positive")
            elif key == "private_marker":
                value = str(value)
                if not value:
                    raise VaultConfigError("private_marker cannot be empty")
            setattr(self, key, value)
        return self

    @classmethod
    def from_env(cls, config: "VaultConfig | None" = None) -> "VaultConfig":
        """
        Load configuration from environment variables.

        Environment variables:
            TAGVAULT_PRIVATE_MARKER: Marker substring (default: #private)
            TAGVAULT_PBKDF2_ITERATIONS: Key derivation iterations (default: 600000)
            TAGVAULT_MAX_ATTEMPTS: Password attempts on unlock (default: 3)
            TAGVAULT_EXTENSIONS: Comma-separated text extensions (default: .md)
        """
        config = config or cls()
        overrides: dict[str, Any] = {}

        if marker := os.getenv("TAGVAULT_PRIVATE_MARKER"):
            overrides["private_marker"] = marker

        if iterations := os.getenv("TAGVAULT_PBKDF2_ITERATIONS"):
            overrides["pbkdf2_iterations"] = iterations

        if attempts := os.getenv("TAGVAULT_MAX_ATTEMPTS"):
            overrides["max_password_attempts"] = attempts

        if extensions := os.getenv("TAGVAULT_EXTENSIONS"):
            overrides["content_extensions"] = [e.strip() for e in extensions.split(",") if e.strip()]

        return config.apply(overrides)

    @classmethod
    def from_file(cls, path: Path, config: "VaultConfig | None" = None) -> "VaultConfig":
        """
        Load configuration from a YAML file.

        Args:
            path: YAML file with VaultConfig field names as keys
            config: Base configuration to update (default: fresh defaults)

        Raises:
            VaultConfigError: If the file is not a mapping or has bad keys
        """
        config = config or cls()
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise VaultConfigError(f"Invalid YAML in {path}: {e}")

        if not isinstance(data, dict):
            raise VaultConfigError(f"{path} must contain a mapping")

        return config.apply(data)

    @classmethod
    def load(cls, vault_dir: Path | None = None) -> "VaultConfig":
        """Defaults, then the vault's tagvault.yaml, then the environment."""
        config = cls()
        if vault_dir is not None:
            config_path = Path(vault_dir) / config.config_file
            if config_path.is_file():
                cls.from_file(config_path, config)
        return cls.from_env(config)


# Global configuration instance
_config: VaultConfig | None = None


def get_vault_config() -> VaultConfig:
    """Get the global vault configuration."""
    global _config
    if _config is None:
        _config = VaultConfig.from_env()
    return _config


def set_vault_config(config: VaultConfig | None) -> None:
    """Set the global vault configuration."""
    global _config
    _config = config
