"""
Vault sink implementations.
"""

from .file_vault import FileVaultSink

__all__ = ["FileVaultSink"]
