"""Unit tests for vault configuration and settings."""

from pathlib import Path

import pytest


class TestVaultConfig:

    def test_defaults(self):
        from tagvault.vault import VaultConfig

        config = VaultConfig()

        assert config.pbkdf2_iterations == 600_000
        assert config.salt_size == 16
        assert config.iv_size == 12
        assert config.private_marker == "#private"
        assert config.max_password_attempts == 3

    def test_marker_and_content_path(self):
        from tagvault.vault import VaultConfig

        config = VaultConfig()

        assert config.has_marker("notes #private here")
        assert not config.has_marker("#privat")
        assert config.is_content_path("a/b.md")
        assert not config.is_content_path("a/b.txt")

    def test_from_env(self, monkeypatch):
        from tagvault.vault import VaultConfig

        monkeypatch.setenv("TAGVAULT_PRIVATE_MARKER", "#secret")
        monkeypatch.setenv("TAGVAULT_PBKDF2_ITERATIONS", "2000")
        monkeypatch.setenv("TAGVAULT_EXTENSIONS", ".md, .txt")

        config = VaultConfig.from_env()

        assert config.private_marker == "#secret"
        assert config.pbkdf2_iterations == 2000
        assert config.content_extensions == (".md", ".txt")

    def test_from_file(self, tmp_path: Path):
        from tagvault.vault import VaultConfig

        path = tmp_path / "tagvault.yaml"
        path.write_text("private_marker: '#hidden'\nmax_password_attempts: 5\ncontent_extensions: .markdown\n")

        config = VaultConfig.from_file(path)

        assert config.private_marker == "#hidden"
        assert config.max_password_attempts == 5
        assert config.content_extensions == (".markdown",)

    @pytest.mark.parametrize(
        "text",
        [
            "- just\n- a list\n",
            "unknown_key: 1\n",
            "pbkdf2_iterations: lots\n",
            "max_password_attempts: 0\n",
            "private_marker: ''\n",
            "key_size: 16\n",
            "key: [unclosed\n",
        ],
    )
    def test_from_file_rejects_bad_content(self, tmp_path: Path, text):
        from tagvault.vault import VaultConfig, VaultConfigError

        path = tmp_path / "tagvault.yaml"
        path.write_text(text)

        with pytest.raises(VaultConfigError):
            VaultConfig.from_file(path)

    def test_load_layers_file_then_env(self, tmp_path: Path, monkeypatch):
        from tagvault.vault import VaultConfig

        (tmp_path / "tagvault.yaml").write_text("private_marker: '#hidden'\npbkdf2_iterations: 3000\n")
        monkeypatch.setenv("TAGVAULT_PBKDF2_ITERATIONS", "4000")

        config = VaultConfig.load(tmp_path)

        assert config.private_marker == "#hidden"
        assert config.pbkdf2_iterations == 4000

    def test_global_config(self):
        from tagvault.vault import VaultConfig, get_vault_config, set_vault_config

        custom = VaultConfig(private_marker="#mine")
        set_vault_config(custom)
        try:
            assert get_vault_config() is custom
        finally:
            set_vault_config(None)


class TestSettings:

    def test_from_env(self, monkeypatch, tmp_path: Path):
        from tagvault.config.settings import Settings

        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("TAGVAULT_LOG_FILE", str(tmp_path / "tagvault.log"))

        settings = Settings.from_env()

        assert settings.log_level == "DEBUG"
        assert settings.log_file == tmp_path / "tagvault.log"

    def test_defaults(self, monkeypatch):
        from tagvault.config.settings import Settings

        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("TAGVAULT_LOG_FILE", raising=False)

        settings = Settings.from_env()

        assert settings.log_level == "WARNING"
        assert settings.log_file is None
