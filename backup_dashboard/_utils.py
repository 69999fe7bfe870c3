import logging

logger = logging.getLogger("backup-dashboard")
