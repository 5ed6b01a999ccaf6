"""Session state for a vault.

Holds the password in memory between a successful unlock and lock or
shutdown. One VaultSession belongs to one VaultManager; nothing here is
process-global, so several vaults can be open side by side.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .exceptions import VaultLockedError


class SessionState(str, Enum):
    """Password lifecycle states."""

    NO_PASSWORD = "no_password"
    UNLOCKING = "unlocking"
    UNLOCKED = "unlocked"


@dataclass
class VaultSession:
    """In-memory password session."""

    password: Optional[str] = field(default=None, repr=False)
    previous_password: Optional[str] = field(default=None, repr=False)
    state: SessionState = SessionState.NO_PASSWORD
    failed_attempts: int = 0

    @property
    def is_active(self) -> bool:
        """True while encryption and decryption are allowed."""
        return self.state == SessionState.UNLOCKED and self.password is not None

    def begin_unlock(self) -> None:
        self.state = SessionState.UNLOCKING
        self.password = None
        self.failed_attempts = 0

    def activate(self, password: str) -> None:
        """Make password canonical and enter UNLOCKED."""
        self.password = password
        self.state = SessionState.UNLOCKED

    def record_failure(self) -> None:
        self.failed_attempts += 1

    def require_password(self) -> str:
        """
        Get the session password or raise if locked.

        Raises:
            VaultLockedError: If no password is held
        """
        if not self.is_active:
            raise VaultLockedError()
        return self.password

    def clear(self) -> None:
        """Forget every password and return to NO_PASSWORD."""
        self.password = None
        self.previous_password = None
        self.state = SessionState.NO_PASSWORD
