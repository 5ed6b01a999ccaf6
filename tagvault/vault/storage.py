"""Storage primitives the vault layer wraps.

The vault never touches the disk directly. A host supplies something that
satisfies the Storage protocol; FileSystemStorage is the default host for
a directory of notes.
"""

import os
import tempfile
from pathlib import Path
from typing import Callable, Optional, Protocol

from .config import VaultConfig, get_vault_config


TEMP_PREFIX = ".tagvault_"

# Returns the entered password, or None if the user cancelled.
PasswordPrompt = Callable[[str], Optional[str]]


class Storage(Protocol):
    """Byte-level text storage addressed by relative path."""

    def read(self, path: str) -> str:
        ...

    def write(self, path: str, content: str) -> None:
        ...

    def list_text_files(self) -> list[str]:
        ...


class FileSystemStorage:
    """
    Storage backed by a directory.

    Paths are relative POSIX strings under the root. Writes go through a
    temp file in the target directory followed by os.replace, so a file
    is always either the old or the new content.
    """

    def __init__(self, root: Path, config: Optional[VaultConfig] = None):
        """
        Initialize storage for a vault directory.

        Args:
            root: Vault directory
            config: Vault configuration (uses global if not provided)
        """
        self.root = Path(root).resolve()
        self.config = config or get_vault_config()

    def resolve(self, path: str) -> Path:
        """
        Map a relative path to a location under the root.

        Raises:
            ValueError: If the path escapes the root
        """
        full = (self.root / path).resolve()
        if full != self.root and self.root not in full.parents:
            raise ValueError(f"Path escapes vault root: {path}")
        return full

    def read(self, path: str) -> str:
        return self.resolve(path).read_text(encoding="utf-8")

    def write(self, path: str, content: str) -> None:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(dir=target.parent, prefix=TEMP_PREFIX, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, target)
        except BaseException:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def list_text_files(self) -> list[str]:
        """Relative paths of all content files, sorted."""
        results = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames if d not in self.config.skip_dirs]
            for name in filenames:
                if name.startswith(TEMP_PREFIX):
                    continue
                rel = (Path(dirpath) / name).relative_to(self.root).as_posix()
                if self.config.is_content_path(rel):
                    results.append(rel)
        return sorted(results)

    def __repr__(self) -> str:
        return f"FileSystemStorage({self.root})"
