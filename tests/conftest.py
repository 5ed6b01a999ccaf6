"""Shared pytest fixtures for tagvault tests."""

from pathlib import Path
from typing import Optional

import pytest

# Low iteration count keeps key derivation fast in tests
TEST_ITERATIONS = 1_000


class ScriptedPrompt:
    """Password prompt that replays canned answers and records messages."""

    def __init__(self, *answers: Optional[str]):
        self.answers = list(answers)
        self.messages: list[str] = []

    def __call__(self, message: str) -> Optional[str]:
        self.messages.append(message)
        if not self.answers:
            return None
        return self.answers.pop(0)


@pytest.fixture
def vault_config():
    """Vault configuration with fast key derivation."""
    from tagvault.vault import VaultConfig

    return VaultConfig(pbkdf2_iterations=TEST_ITERATIONS)


@pytest.fixture
def engine():
    """Cipher engine with fast key derivation."""
    from tagvault.vault import CipherEngine

    return CipherEngine(iterations=TEST_ITERATIONS)


@pytest.fixture
def notes_dir(tmp_path: Path) -> Path:
    """Create a small notes directory."""
    notes = tmp_path / "notes"
    notes.mkdir()
    (notes / "journal").mkdir()
    (notes / "journal" / "monday.md").write_text("# Monday\n#private\nFelt great.\n", encoding="utf-8")
    (notes / "shopping.md").write_text("# Shopping\n- milk\n", encoding="utf-8")
    (notes / "secrets.md").write_text("#private\nlocker code 1234\n", encoding="utf-8")
    (notes / "image.png").write_bytes(b"\x89PNG fake")
    return notes


@pytest.fixture
def storage(notes_dir: Path, vault_config):
    """Filesystem storage over the notes directory."""
    from tagvault.vault import FileSystemStorage

    return FileSystemStorage(notes_dir, vault_config)


@pytest.fixture
def make_manager(storage, vault_config, engine):
    """Factory for a VaultManager answering the given passwords."""
    from tagvault.vault import VaultManager

    def _make(*answers: Optional[str]):
        prompt = ScriptedPrompt(*answers)
        return VaultManager(storage, prompt, vault_config, engine=engine)

    return _make


@pytest.fixture
def encrypted_notes(notes_dir: Path, storage, engine):
    """Encrypt the private notes on disk under 'correct horse'."""
    for path in ("journal/monday.md", "secrets.md"):
        storage.write(path, engine.encrypt(storage.read(path), "correct horse"))
    engine.clear_key_cache()
    return notes_dir


@pytest.fixture
def scripted_prompt():
    """The ScriptedPrompt class, for tests that build their own managers."""
    return ScriptedPrompt
