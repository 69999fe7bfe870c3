from . import backups, dashboard, progress

__all__ = ["backups", "dashboard", "progress"]
