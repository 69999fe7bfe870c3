"""FastAPI application for the backup dashboard."""

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI

from backup_dashboard.audit import AuditLog
from backup_dashboard.backup import BackupManager
from backup_dashboard.config import DashboardConfig
from backup_dashboard.notifier import create_notifier
from backup_dashboard.progress import ProgressChannel
from backup_dashboard.scheduler import BackupScheduler, CronTrigger
from .auth import require_admin
from .config import Settings, settings as default_settings
from .routers import backups, dashboard, progress

# Configure backup-dashboard logger with app-managed pattern
# This ensures INFO logs are visible regardless of uvicorn's logging config
dashboard_logger = logging.getLogger("backup-dashboard")
dashboard_logger.setLevel(logging.INFO)
dashboard_logger.propagate = False
dashboard_logger.handlers.clear()

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
formatter = logging.Formatter(
    '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
console_handler.setFormatter(formatter)
dashboard_logger.addHandler(console_handler)

# Allow disabling app-managed logging via env var for production
if os.getenv("DISABLE_APP_LOGGING", "false").lower() == "true":
    dashboard_logger.handlers.clear()
    dashboard_logger.propagate = True

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[DashboardConfig] = None,
    api_settings: Optional[Settings] = None
) -> FastAPI:
    """Create the dashboard application.

    Args:
        config: Core configuration; read from the environment at startup if omitted
        api_settings: HTTP layer settings; module defaults if omitted
    """
    api_settings = api_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage audit log, backup manager and scheduler lifecycle."""
        dashboard_config = config or DashboardConfig.from_env()

        audit = AuditLog(
            dashboard_config.audit.log_file,
            notifier=create_notifier(dashboard_config.notifier),
            display_limit=dashboard_config.audit.display_limit,
        )
        audit.record("Starting Backup & Restore Dashboard...")

        app.state.audit = audit
        app.state.progress = ProgressChannel()
        app.state.manager = BackupManager.from_config(dashboard_config, audit)
        app.state.schedule = dashboard_config.schedule.cron_expression

        scheduler = None
        if dashboard_config.schedule.enabled:
            scheduler = BackupScheduler(
                app.state.manager,
                CronTrigger(dashboard_config.schedule.cron_expression),
                audit,
            )
            await scheduler.start()
        else:
            logger.info("AUTO_BACKUP_SCHEDULE not set - automatic backups disabled")

        yield

        logger.info("Shutting down backup dashboard...")
        if scheduler is not None:
            await scheduler.stop()
        await audit.drain()

    app = FastAPI(
        title=api_settings.api_title,
        version=api_settings.api_version,
        lifespan=lifespan,
    )
    app.state.settings = api_settings

    protected = [Depends(require_admin)]
    app.include_router(dashboard.router, prefix=api_settings.api_prefix, dependencies=protected)
    app.include_router(backups.router, prefix=api_settings.api_prefix, dependencies=protected)
    app.include_router(progress.router, prefix=api_settings.api_prefix)

    return app


app = create_app()
