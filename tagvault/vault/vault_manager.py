"""Vault manager for the password lifecycle.

Owns the session, cipher engine, path tracker and interception layer of one
vault, and drives the unlock state machine:

    NO_PASSWORD -> UNLOCKING -> UNLOCKED -> (lock / shutdown) -> NO_PASSWORD

Usage:
    vm = open_vault(notes_dir, prompt)
    result = vm.unlock()
    if result.success:
        text = vm.storage.read("diary.md")
    vm.shutdown()
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..utils.logging import get_logger
from .config import VaultConfig, get_vault_config
from .crypto import CipherEngine
from .exceptions import AuthenticationError, MalformedBlobError
from .interceptor import InterceptedStorage
from .migration import (
    ProgressCallback,
    decrypt_all_in_place,
    decrypt_for_rotation,
    encrypt_all_private,
    export_decrypted,
    find_encrypted_files,
    reconcile_passwords,
    rotate_files,
    verify_vault_integrity,
)
from .session import SessionState, VaultSession
from .storage import FileSystemStorage, PasswordPrompt, Storage
from .tracker import PathTracker

logger = get_logger(__name__)

FIRST_TIME_MESSAGE = (
    "This password encrypts and decrypts your {marker} notes. "
    "Choose a strong password and remember it; there is no recovery."
)
UNLOCK_MESSAGE = "Enter your password to decrypt your {marker} notes."
WRONG_PASSWORD_MESSAGE = "Wrong password. Attempt {attempt} of {max_attempts}."
TOO_SHORT_MESSAGE = "Password must be at least {length} characters. Attempt {attempt} of {max_attempts}."
NEW_PASSWORD_MESSAGE = "Enter your new encryption password."
PREVIOUS_PASSWORD_MESSAGE = "Enter the previous password to recover notes it still protects."


@dataclass
class UnlockResult:
    """Outcome of an unlock attempt."""

    state: SessionState
    attempts: int = 0
    first_time: bool = False
    cancelled: bool = False
    aborted: bool = False
    already_unlocked: bool = False
    files_found: int = 0
    files_decrypted: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state == SessionState.UNLOCKED


class VaultManager:
    """
    Manages the password session and batch operations for one vault.

    All reads and writes by consumers should go through `storage`, the
    interception layer. `raw` is the host storage and is only used by the
    batch operations.
    """

    def __init__(
        self,
        raw: Storage,
        prompt: PasswordPrompt,
        config: Optional[VaultConfig] = None,
        engine: Optional[CipherEngine] = None,
    ):
        """
        Initialize vault manager.

        Args:
            raw: Host storage primitives
            prompt: Asks the user for a password; returns None on cancel
            config: Vault configuration (uses global if not provided)
            engine: Cipher engine (built from config if not provided)
        """
        self.config = config or get_vault_config()
        self.raw = raw
        self.prompt = prompt
        self.engine = engine or CipherEngine(
            iterations=self.config.pbkdf2_iterations,
            salt_size=self.config.salt_size,
            iv_size=self.config.iv_size,
        )
        self.session = VaultSession()
        self.tracker = PathTracker()
        self.storage = InterceptedStorage(raw, self.session, self.engine, self.tracker, self.config)

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def is_unlocked(self) -> bool:
        return self.session.is_active

    def _format(self, template: str, **kwargs) -> str:
        return template.format(
            marker=self.config.private_marker,
            max_attempts=self.config.max_password_attempts,
            length=self.config.min_password_length,
            **kwargs,
        )

    def verify_password(
        self,
        password: str,
        encrypted_files: Optional[list[tuple[str, str]]] = None,
    ) -> bool:
        """
        Verify password by trial-decrypting a representative blob.

        The first well-formed blob is the representative. With no blobs
        there is nothing to check against and any password is accepted.

        Args:
            password: Password to verify
            encrypted_files: (path, blob) pairs (found on storage if not provided)

        Returns:
            True if password is correct
        """
        if encrypted_files is None:
            encrypted_files = find_encrypted_files(self.raw)

        for path, blob in encrypted_files:
            try:
                self.engine.decrypt(blob, password)
                return True
            except AuthenticationError:
                return False
            except MalformedBlobError as e:
                logger.warning(f"Skipping malformed {path} for verification: {e}")
        return True

    def _ask_password(
        self,
        first_message: str,
        encrypted_files: list[tuple[str, str]],
        check_length: bool,
        result: UnlockResult,
    ) -> Optional[str]:
        """Prompt until a password is accepted, cancelled or attempts run out."""
        message = first_message
        for attempt in range(1, self.config.max_password_attempts + 1):
            result.attempts = attempt
            password = self.prompt(message)
            if not password:
                result.cancelled = True
                return None

            next_attempt = attempt + 1
            if check_length and len(password) < self.config.min_password_length:
                message = self._format(TOO_SHORT_MESSAGE, attempt=next_attempt)
            elif encrypted_files and not self.verify_password(password, encrypted_files):
                self.engine.clear_key_cache()
                message = self._format(WRONG_PASSWORD_MESSAGE, attempt=next_attempt)
            else:
                return password

            self.session.record_failure()
            logger.warning(f"Password attempt {attempt} of {self.config.max_password_attempts} rejected")

        result.aborted = True
        return None

    def unlock(
        self,
        decrypt_in_place: bool = True,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UnlockResult:
        """
        Run the unlock state machine.

        With no blobs in the vault the first password entered becomes the
        vault password. Otherwise each entry is checked against a blob, up to
        max_password_attempts times.

        Args:
            decrypt_in_place: Write every blob back as plaintext once unlocked
            progress_callback: Optional callback(message, current, total)

        Returns:
            UnlockResult
        """
        if self.session.is_active:
            return UnlockResult(state=self.session.state, already_unlocked=True)

        self.session.begin_unlock()
        self.engine.clear_key_cache()

        encrypted_files = find_encrypted_files(self.raw)
        result = UnlockResult(
            state=SessionState.UNLOCKING,
            files_found=len(encrypted_files),
            first_time=not encrypted_files,
        )

        if result.first_time:
            message = self._format(FIRST_TIME_MESSAGE)
        else:
            message = self._format(UNLOCK_MESSAGE)

        password = self._ask_password(
            message,
            encrypted_files,
            check_length=result.first_time,
            result=result,
        )

        if password is None:
            self._forget()
            result.state = self.session.state
            if result.aborted:
                logger.warning("Too many failed password attempts; vault stays locked")
            else:
                logger.info("Unlock cancelled; vault stays locked")
            return result

        self.session.activate(password)
        result.state = self.session.state

        if decrypt_in_place and encrypted_files:
            stats = decrypt_all_in_place(
                self.raw,
                self.engine,
                password,
                encrypted_files,
                self.tracker,
                progress_callback,
            )
            result.files_decrypted = stats["files_decrypted"]
            result.errors = stats["errors"]
        else:
            for path, _ in encrypted_files:
                self.tracker.mark_private(path)

        logger.info(f"Vault unlocked ({len(encrypted_files)} encrypted note(s) found)")
        return result

    def lock(self, progress_callback: Optional[ProgressCallback] = None) -> dict:
        """
        Encrypt every private note, then forget the password.

        Blobs left under a retained previous password are moved to the
        current password first, since the previous one is forgotten too.

        Returns:
            Dict with encryption statistics

        Raises:
            VaultLockedError: If not unlocked
        """
        password = self.session.require_password()

        files_reconciled = 0
        reconcile_errors = []
        if self.session.previous_password is not None:
            reconciled = reconcile_passwords(
                self.raw,
                self.engine,
                password,
                self.session.previous_password,
                self.tracker,
                progress_callback,
            )
            files_reconciled = reconciled["files_reconciled"]
            reconcile_errors = reconciled["errors"]

        stats = encrypt_all_private(
            self.raw,
            self.engine,
            password,
            self.tracker,
            self.config,
            progress_callback,
        )
        stats["files_reconciled"] = files_reconciled
        stats["errors"] = reconcile_errors + stats["errors"]
        self._forget()
        logger.info(
            f"Vault locked: {stats['files_encrypted']} note(s) encrypted, {len(stats['errors'])} error(s)"
        )
        return stats

    def shutdown(self) -> dict:
        """
        Lock before the host goes away.

        Blocks until every private note has been encrypted.
        """
        if self.session.is_active:
            return self.lock()
        self._forget()
        return {"files_encrypted": 0, "files_skipped": 0, "files_reconciled": 0, "errors": []}

    def _forget(self) -> None:
        self.session.clear()
        self.engine.clear_key_cache()
        self.tracker.clear()

    def _ask_new_password(self) -> Optional[str]:
        password = self.prompt(NEW_PASSWORD_MESSAGE)
        if not password:
            return None
        if len(password) < self.config.min_password_length:
            logger.warning(
                f"New password rejected: shorter than {self.config.min_password_length} characters"
            )
            return None
        return password

    def change_password(self, progress_callback: Optional[ProgressCallback] = None) -> dict:
        """
        Re-encrypt every blob under a new password.

        Blobs are decrypted under the old password first (or under a
        retained previous password, for blobs a partial rotation left
        behind), then the new password is asked for. Cancelling keeps the
        old password. The session
        switches to the new password only after every file was written; if
        any file failed the old password is kept as previous_password so
        those notes remain readable and can be reconciled.

        Returns:
            Dict with rotation statistics

        Raises:
            VaultLockedError: If not unlocked
        """
        old_password = self.session.require_password()
        stats = {
            "files_rotated": 0,
            "errors": [],
            "cancelled": False,
        }

        encrypted_files = find_encrypted_files(self.raw)
        decrypted, errors = decrypt_for_rotation(
            self.engine,
            old_password,
            encrypted_files,
            fallback_password=self.session.previous_password,
        )
        stats["errors"].extend(errors)

        new_password = self._ask_new_password()
        if new_password is None:
            stats["cancelled"] = True
            logger.info("Password change cancelled")
            return stats

        self.engine.clear_key_cache()
        rotated = rotate_files(self.raw, self.engine, new_password, decrypted, progress_callback)
        stats["files_rotated"] = rotated["files_rotated"]
        stats["errors"].extend(rotated["errors"])

        self.session.password = new_password
        self.session.previous_password = old_password if stats["errors"] else None

        logger.info(f"Re-encrypted {stats['files_rotated']} note(s) with new password")
        return stats

    def reconcile(
        self,
        previous_password: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> dict:
        """
        Re-encrypt notes still under a previous password.

        Uses the retained previous password, or asks for one.

        Returns:
            Dict with reconciliation statistics

        Raises:
            VaultLockedError: If not unlocked
        """
        password = self.session.require_password()
        previous = previous_password or self.session.previous_password
        if previous is None:
            previous = self.prompt(PREVIOUS_PASSWORD_MESSAGE)
        if not previous:
            return {"files_reconciled": 0, "files_current": 0, "errors": [], "cancelled": True}

        stats = reconcile_passwords(
            self.raw,
            self.engine,
            password,
            previous,
            self.tracker,
            progress_callback,
        )
        if not stats["errors"]:
            self.session.previous_password = None
        stats["cancelled"] = False
        return stats

    def verify(self, progress_callback: Optional[ProgressCallback] = None) -> dict:
        """Check every blob opens under the session password."""
        password = self.session.require_password()
        return verify_vault_integrity(self.raw, self.engine, password, progress_callback)

    def export(self, output_dir: Path, progress_callback: Optional[ProgressCallback] = None) -> dict:
        """Write a decrypted copy of the vault to output_dir."""
        password = self.session.require_password()
        return export_decrypted(self.raw, self.engine, password, output_dir, progress_callback)

    def __enter__(self) -> "VaultManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False


def open_vault(
    vault_dir: Path,
    prompt: PasswordPrompt,
    config: Optional[VaultConfig] = None,
) -> VaultManager:
    """
    Get a vault manager for a directory of notes.

    Args:
        vault_dir: Notes directory
        prompt: Password prompt
        config: Vault configuration (loaded from the directory if not provided)
    """
    config = config or VaultConfig.load(vault_dir)
    return VaultManager(FileSystemStorage(vault_dir, config), prompt, config)
