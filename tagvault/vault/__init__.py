"""Vault encryption module for tagvault.

Notes whose text contains the private marker are stored encrypted with
AES-256-GCM and decrypted transparently on read while the vault is unlocked.

Usage:
    # Open and unlock a notes directory
    from tagvault.vault import open_vault
    vm = open_vault(notes_dir, prompt)
    vm.unlock()

    # Read and write through the interception layer
    text = vm.storage.read("diary.md")
    vm.storage.write("diary.md", text + "\\nmore #private thoughts")

    # Encrypt everything and forget the password
    vm.lock()
"""

# Exceptions
from .exceptions import (
    AuthenticationError,
    DecryptionError,
    EncryptionError,
    MalformedBlobError,
    NotEncryptedError,
    VaultConfigError,
    VaultError,
    VaultLockedError,
)

# Configuration
from .config import (
    VaultConfig,
    get_vault_config,
    set_vault_config,
)

# Cipher engine
from .crypto import (
    BLOB_HEADER,
    CipherEngine,
    KeyCache,
    is_encrypted,
)

# Storage and interception
from .storage import (
    FileSystemStorage,
    PasswordPrompt,
    Storage,
)
from .tracker import PathTracker
from .interceptor import InterceptedStorage

# Session management
from .session import (
    SessionState,
    VaultSession,
)

# Vault operations
from .vault_manager import (
    UnlockResult,
    VaultManager,
    open_vault,
)

# Batch tools
from .migration import (
    decrypt_all_in_place,
    encrypt_all_private,
    export_decrypted,
    find_encrypted_files,
    reconcile_passwords,
    rotate_files,
    verify_vault_integrity,
)

__all__ = [
    # Exceptions
    "VaultError",
    "VaultLockedError",
    "VaultConfigError",
    "EncryptionError",
    "DecryptionError",
    "NotEncryptedError",
    "MalformedBlobError",
    "AuthenticationError",
    # Configuration
    "VaultConfig",
    "get_vault_config",
    "set_vault_config",
    # Cipher engine
    "BLOB_HEADER",
    "CipherEngine",
    "KeyCache",
    "is_encrypted",
    # Storage
    "Storage",
    "FileSystemStorage",
    "PasswordPrompt",
    "PathTracker",
    "InterceptedStorage",
    # Session
    "SessionState",
    "VaultSession",
    # Vault manager
    "VaultManager",
    "UnlockResult",
    "open_vault",
    # Batch tools
    "find_encrypted_files",
    "decrypt_all_in_place",
    "encrypt_all_private",
    "rotate_files",
    "verify_vault_integrity",
    "reconcile_passwords",
    "export_decrypted",
]
