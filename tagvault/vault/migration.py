"""Batch tools for vault encryption.

Provides operations over every text file of a vault:
- Decrypt all blobs in place after unlock
- Encrypt all private notes on lock
- Re-encrypt blobs under a new password
- Verify that every blob opens
- Reconcile blobs left under a previous password
- Export a decrypted copy

All functions work on the raw storage, so their writes are never
intercepted. A failing file is recorded in stats["errors"] and left as it
was; the batch always continues.
"""

from pathlib import Path
from typing import Callable, Optional

from ..utils.logging import get_logger
from .config import VaultConfig, get_vault_config
from .crypto import CipherEngine, is_encrypted
from .exceptions import AuthenticationError, VaultError
from .storage import Storage
from .tracker import PathTracker

logger = get_logger(__name__)

ProgressCallback = Callable[[str, int, int], None]


def _report(callback: Optional[ProgressCallback], message: str, current: int, total: int) -> None:
    if callback:
        callback(message, current, total)


def find_encrypted_files(raw: Storage) -> list[tuple[str, str]]:
    """
    Find every blob in the vault.

    Args:
        raw: Host storage

    Returns:
        (path, blob) pairs; unreadable files are skipped
    """
    results = []
    for path in raw.list_text_files():
        try:
            content = raw.read(path)
        except OSError as e:
            logger.debug(f"Skipping unreadable {path}: {e}")
            continue
        if is_encrypted(content):
            results.append((path, content))
    return results


def decrypt_all_in_place(
    raw: Storage,
    engine: CipherEngine,
    password: str,
    encrypted_files: list[tuple[str, str]],
    tracker: Optional[PathTracker] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> dict:
    """
    Replace each blob on disk with its plaintext.

    Args:
        raw: Host storage
        engine: Cipher engine
        password: Session password
        encrypted_files: (path, blob) pairs from find_encrypted_files
        tracker: Tracker to mark decrypted paths in
        progress_callback: Optional callback(message, current, total)

    Returns:
        Dict with decryption statistics
    """
    stats = {
        "files_decrypted": 0,
        "errors": [],
    }
    total = len(encrypted_files)

    for i, (path, blob) in enumerate(encrypted_files, 1):
        _report(progress_callback, f"Decrypting {path}", i, total)
        try:
            plaintext = engine.decrypt(blob, password)
            raw.write(path, plaintext)
        except (VaultError, OSError) as e:
            logger.error(f"Failed to decrypt {path}: {e}")
            stats["errors"].append(f"{path}: {e}")
            continue

        if tracker is not None:
            tracker.mark_private(path)
        stats["files_decrypted"] += 1

    return stats


def encrypt_all_private(
    raw: Storage,
    engine: CipherEngine,
    password: str,
    tracker: PathTracker,
    config: Optional[VaultConfig] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> dict:
    """
    Encrypt every plaintext note that carries the private marker.

    Live content decides, not the tracker: a tracked path whose note lost
    the marker is untracked and skipped.

    Args:
        raw: Host storage
        engine: Cipher engine
        password: Session password
        tracker: Tracker of private paths
        config: Vault configuration (uses global if not provided)
        progress_callback: Optional callback(message, current, total)

    Returns:
        Dict with encryption statistics
    """
    config = config or get_vault_config()
    stats = {
        "files_encrypted": 0,
        "files_skipped": 0,
        "errors": [],
    }

    paths = sorted(set(raw.list_text_files()) | set(tracker.all_tracked()))
    total = len(paths)

    for i, path in enumerate(paths, 1):
        try:
            content = raw.read(path)
        except FileNotFoundError:
            tracker.unmark_private(path)
            continue
        except OSError as e:
            if tracker.is_tracked(path):
                logger.error(f"Failed to read tracked {path}: {e}")
                stats["errors"].append(f"{path}: {e}")
            continue

        if is_encrypted(content):
            continue

        if not config.has_marker(content):
            if tracker.is_tracked(path):
                tracker.unmark_private(path)
                stats["files_skipped"] += 1
            continue

        _report(progress_callback, f"Encrypting {path}", i, total)
        try:
            raw.write(path, engine.encrypt(content, password))
        except (VaultError, OSError) as e:
            logger.error(f"Failed to encrypt {path}: {e}")
            stats["errors"].append(f"{path}: {e}")
            continue

        tracker.mark_private(path)
        stats["files_encrypted"] += 1

    return stats


def decrypt_for_rotation(
    engine: CipherEngine,
    password: str,
    encrypted_files: list[tuple[str, str]],
    fallback_password: Optional[str] = None,
) -> tuple[list[tuple[str, str]], list[str]]:
    """
    Decrypt blobs into memory ahead of a password change.

    Args:
        engine: Cipher engine
        password: Current session password
        encrypted_files: (path, blob) pairs from find_encrypted_files
        fallback_password: Password left over from an earlier partial
            rotation, tried when the current one does not open a blob

    Returns:
        ((path, plaintext) pairs, error strings)
    """
    decrypted = []
    errors = []
    for path, blob in encrypted_files:
        try:
            try:
                plaintext = engine.decrypt(blob, password)
            except AuthenticationError:
                if fallback_password is None:
                    raise
                plaintext = engine.decrypt(blob, fallback_password)
            decrypted.append((path, plaintext))
        except VaultError as e:
            logger.error(f"Cannot rotate {path}: {e}")
            errors.append(f"{path}: {e}")
    return decrypted, errors


def rotate_files(
    raw: Storage,
    engine: CipherEngine,
    new_password: str,
    files: list[tuple[str, str]],
    progress_callback: Optional[ProgressCallback] = None,
) -> dict:
    """
    Encrypt already-decrypted notes under a new password and write them back.

    Each file is replaced atomically by the storage; a file that fails keeps
    its old blob.

    Args:
        raw: Host storage
        engine: Cipher engine, with its key cache already cleared
        new_password: Password to encrypt under
        files: (path, plaintext) pairs
        progress_callback: Optional callback(message, current, total)

    Returns:
        Dict with rotation statistics
    """
    stats = {
        "files_rotated": 0,
        "errors": [],
    }
    total = len(files)

    for i, (path, plaintext) in enumerate(files, 1):
        _report(progress_callback, f"Re-encrypting {path}", i, total)
        try:
            raw.write(path, engine.encrypt(plaintext, new_password))
            stats["files_rotated"] += 1
        except (VaultError, OSError) as e:
            logger.error(f"Failed to re-encrypt {path}: {e}")
            stats["errors"].append(f"{path}: {e}")

    return stats


def verify_vault_integrity(
    raw: Storage,
    engine: CipherEngine,
    password: str,
    progress_callback: Optional[ProgressCallback] = None,
) -> dict:
    """
    Verify all blobs can be decrypted.

    Does not write any files - only verifies decryption works.

    Returns:
        Dict with verification results
    """
    stats = {
        "files_verified": 0,
        "files_failed": 0,
        "errors": [],
    }

    encrypted_files = find_encrypted_files(raw)
    total = len(encrypted_files)

    for i, (path, blob) in enumerate(encrypted_files, 1):
        _report(progress_callback, f"Verifying {path}", i, total)
        try:
            engine.decrypt(blob, password)
            stats["files_verified"] += 1
        except VaultError as e:
            stats["files_failed"] += 1
            stats["errors"].append(f"{path}: {e}")

    return stats


def reconcile_passwords(
    raw: Storage,
    engine: CipherEngine,
    current_password: str,
    previous_password: str,
    tracker: Optional[PathTracker] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> dict:
    """
    Move blobs still under a previous password to the current one.

    Recovers from an interrupted password change: each blob is tried under
    the current password first, then under the previous one, and re-encrypted
    under the current password when only the previous one opens it.

    Returns:
        Dict with reconciliation statistics
    """
    stats = {
        "files_reconciled": 0,
        "files_current": 0,
        "errors": [],
    }

    encrypted_files = find_encrypted_files(raw)
    total = len(encrypted_files)

    for i, (path, blob) in enumerate(encrypted_files, 1):
        _report(progress_callback, f"Checking {path}", i, total)
        try:
            engine.decrypt(blob, current_password)
            stats["files_current"] += 1
            continue
        except AuthenticationError:
            pass
        except VaultError as e:
            stats["errors"].append(f"{path}: {e}")
            continue

        try:
            plaintext = engine.decrypt(blob, previous_password)
            blob = engine.encrypt(plaintext, current_password)
            raw.write(path, blob)
        except (VaultError, OSError) as e:
            logger.error(f"Failed to reconcile {path}: {e}")
            stats["errors"].append(f"{path}: {e}")
            continue

        if tracker is not None:
            tracker.mark_private(path)
        stats["files_reconciled"] += 1

    return stats


def export_decrypted(
    raw: Storage,
    engine: CipherEngine,
    password: str,
    output_dir: Path,
    progress_callback: Optional[ProgressCallback] = None,
) -> dict:
    """
    Export a decrypted copy of every text file.

    The vault itself remains unchanged. Blobs that cannot be decrypted are
    reported and not copied.

    Args:
        raw: Host storage
        engine: Cipher engine
        password: Session password
        output_dir: Where to export decrypted files

    Returns:
        Dict with export statistics
    """
    output_dir = Path(output_dir).resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    stats = {
        "files_decrypted": 0,
        "files_copied": 0,
        "errors": [],
    }

    paths = raw.list_text_files()
    total = len(paths)

    for i, path in enumerate(paths, 1):
        try:
            content = raw.read(path)
            encrypted = is_encrypted(content)
            if encrypted:
                _report(progress_callback, f"Decrypting {path}", i, total)
                content = engine.decrypt(content, password)
            else:
                _report(progress_callback, f"Copying {path}", i, total)

            out_path = output_dir / path
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(content, encoding="utf-8")

        except (VaultError, OSError) as e:
            stats["errors"].append(f"{path}: {e}")
            continue

        stats["files_decrypted" if encrypted else "files_copied"] += 1

    return stats
