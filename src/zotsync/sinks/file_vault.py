"""
File-based vault sink writing notes below a vault directory.
"""

import logging
import os
from pathlib import Path, PurePosixPath

from ..core.sink import VaultSink

logger = logging.getLogger(__name__)


class FileVaultSink(VaultSink):
    """
    Writes notes as UTF-8 files below a vault root.

    Paths are vault-relative POSIX paths; paths that would escape the vault
    are rejected.
    """

    def __init__(self, vault_dir: Path, create_dirs: bool = True):
        """
        Initialize the file vault sink.

        Args:
            vault_dir: Root directory of the vault
            create_dirs: Whether to create the vault root automatically
        """
        self.vault_dir = Path(vault_dir)
        if create_dirs:
            self.vault_dir.mkdir(parents=True, exist_ok=True)

    def resolve(self, path: str) -> Path:
        """Map a vault-relative path to a filesystem path."""
        relative = PurePosixPath(path)
        if not path or relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid vault path: {path!r}")
        return self.vault_dir.joinpath(*relative.parts)

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def create(self, path: str, content: str) -> None:
        target = self.resolve(path)
        with open(target, "x", encoding="utf-8", newline="") as f:
            f.write(content)

    def modify(self, path: str, content: str) -> None:
        target = self.resolve(path)
        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write(content)

    def read(self, path: str) -> str:
        with open(self.resolve(path), "r", encoding="utf-8", newline="") as f:
            return f.read()

    def rename(self, path: str, new_path: str) -> None:
        os.replace(self.resolve(path), self.resolve(new_path))

    def delete(self, path: str) -> None:
        self.resolve(path).unlink()

    def ensure_directory(self, path: str) -> None:
        self.resolve(path).mkdir(parents=True, exist_ok=True)

    def get_name(self) -> str:
        return "file_vault"
