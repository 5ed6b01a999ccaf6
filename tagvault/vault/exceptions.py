"""Vault exceptions for tagvault transparent encryption."""


class VaultError(Exception):
    """Base exception for vault operations."""

    pass


class VaultLockedError(VaultError):
    """Raised when an operation needs an unlocked session."""

    def __init__(self, message: str = "Vault is locked. Unlock with password first."):
        super().__init__(message)


class VaultConfigError(VaultError):
    """Raised when a vault configuration file cannot be used."""

    def __init__(self, message: str = "Invalid vault configuration."):
        super().__init__(message)


class EncryptionError(VaultError):
    """Raised when encryption fails."""

    def __init__(self, message: str = "Failed to encrypt content."):
        super().__init__(message)


class DecryptionError(VaultError):
    """Raised when decryption fails."""

    def __init__(self, message: str = "Failed to decrypt content."):
        super().__init__(message)


class NotEncryptedError(DecryptionError):
    """Raised when decrypt is called on content without the blob header."""

    def __init__(self, message: str = "Content is not encrypted."):
        super().__init__(message)


class MalformedBlobError(DecryptionError):
    """Raised when a blob carries the header but cannot be parsed."""

    def __init__(self, message: str = "Malformed encrypted content."):
        super().__init__(message)


class AuthenticationError(DecryptionError):
    """Raised when the integrity tag does not verify (wrong password or corruption)."""

    def __init__(self, message: str = "Wrong password or corrupted ciphertext."):
        super().__init__(message)
