"""Transparent encryption wrapper around a Storage.

InterceptedStorage has the same read/write/list interface as the storage it
wraps, so callers (editors, indexers) use it without knowing that private
notes are stored encrypted:

    layer = InterceptedStorage(FileSystemStorage(root), session, engine, tracker)
    layer.write("diary.md", "# Monday #private ...")  # ciphertext on disk
    layer.read("diary.md")                             # plaintext back
"""

from typing import Optional

from ..utils.logging import get_logger
from .config import VaultConfig, get_vault_config
from .crypto import CipherEngine, is_encrypted
from .exceptions import AuthenticationError, DecryptionError
from .session import VaultSession
from .storage import Storage
from .tracker import PathTracker

logger = get_logger(__name__)


class InterceptedStorage:
    """
    Storage decorator that decrypts on read and encrypts on write.

    Interception only happens while the session is unlocked; otherwise every
    call passes straight through. The _decrypting and _encrypting flags stop
    the layer from intercepting its own nested calls.
    """

    def __init__(
        self,
        raw: Storage,
        session: VaultSession,
        engine: CipherEngine,
        tracker: PathTracker,
        config: Optional[VaultConfig] = None,
    ):
        """
        Initialize the interception layer.

        Args:
            raw: Host storage primitives
            session: Session holding the password
            engine: Cipher engine (owns the key cache)
            tracker: Tracker of private paths
            config: Vault configuration (uses global if not provided)
        """
        self.raw = raw
        self.session = session
        self.engine = engine
        self.tracker = tracker
        self.config = config or get_vault_config()
        self._decrypting = False
        self._encrypting = False

    def read(self, path: str) -> str:
        """
        Read a file, decrypting it when it is a blob and a password is held.

        Decryption failures are logged and the raw ciphertext is returned.
        """
        raw = self.raw.read(path)

        if not self.session.is_active or self._decrypting:
            return raw

        if not is_encrypted(raw):
            if self.config.is_content_path(path) and self.config.has_marker(raw):
                self.tracker.mark_private(path)
            return raw

        self._decrypting = True
        try:
            plaintext = self._decrypt(path, raw)
        finally:
            self._decrypting = False

        if plaintext is None:
            return raw

        self.tracker.mark_private(path)
        return plaintext

    def _decrypt(self, path: str, blob: str) -> Optional[str]:
        try:
            return self.engine.decrypt(blob, self.session.password)
        except AuthenticationError as e:
            previous = self.session.previous_password
            if previous is None:
                logger.warning(f"Could not decrypt {path}: {e}")
                return None
            try:
                return self.engine.decrypt(blob, previous)
            except DecryptionError as e2:
                logger.warning(f"Could not decrypt {path} under current or previous password: {e2}")
                return None
            finally:
                # Leave the cache bound to the current password
                self.engine.key_cache.bind(self.session.password)
        except DecryptionError as e:
            logger.warning(f"Could not decrypt {path}: {e}")
            return None

    def should_encrypt(self, path: str, content: str) -> bool:
        """Check whether a write of content to path gets encrypted."""
        return (
            self.session.is_active
            and not self._encrypting
            and self.config.is_content_path(path)
            and self.config.has_marker(content)
            and not is_encrypted(content)
        )

    def write(self, path: str, content: str) -> None:
        """
        Write a file, encrypting it when it carries the private marker.

        Content without the marker is written as-is and its path is no
        longer tracked.
        """
        if self.should_encrypt(path, content):
            self._encrypting = True
            try:
                blob = self.engine.encrypt(content, self.session.password)
                self.raw.write(path, blob)
            finally:
                self._encrypting = False
            self.tracker.mark_private(path)
            logger.debug(f"Encrypted {path}")
            return

        if not self.config.has_marker(content) and self.tracker.is_tracked(path):
            self.tracker.unmark_private(path)
            logger.info(f"{path} no longer carries {self.config.private_marker}; stored as plaintext")

        self.raw.write(path, content)

    def list_text_files(self) -> list[str]:
        return self.raw.list_text_files()

    def __repr__(self) -> str:
        return f"InterceptedStorage({self.raw!r}, state={self.session.state.value})"
