from .locks import DatabaseLocks
from .manager import BackupManager

__all__ = ["BackupManager", "DatabaseLocks"]
