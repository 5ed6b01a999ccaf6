"""tagvault - Transparent encryption for #private notes."""

__version__ = "0.1.0"

from .vault import VaultManager, open_vault

__all__ = [
    "__version__",
    "VaultManager",
    "open_vault",
]
