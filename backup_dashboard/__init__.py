from .backup import BackupManager
from .config import DashboardConfig

__version__ = "0.1.0"
__author__ = "Backup Dashboard Team"
__url__ = "https://github.com/backup-dashboard/backup-dashboard"

__all__ = ["BackupManager", "DashboardConfig"]
