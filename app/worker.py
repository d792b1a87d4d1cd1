"""
ARQ Worker Configuration

This module configures the ARQ background worker.

Running the Worker:
------------------
    # From project root directory
    arq app.worker.WorkerSettings

    # With verbose logging
    arq app.worker.WorkerSettings --verbose

Each worker pulls jobs from the same Redis queue, so several can run
side by side.
"""

import logging
from typing import Any, Dict

from app.core.config import settings
from app.db.redis import get_arq_redis_settings
from app.tasks.email_tasks import send_password_reset_email

# ============================================================
# Logging Configuration
# ============================================================

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# ============================================================
# Startup and Shutdown Hooks
# ============================================================

async def startup(ctx: Dict[str, Any]) -> None:
    """Called when worker starts."""
    if not settings.SMTP_SERVER:
        logger.warning("SMTP_SERVER is not configured; mail jobs will be logged only")
    logger.info("ARQ Worker ready to process jobs")


async def shutdown(ctx: Dict[str, Any]) -> None:
    """Called when worker shuts down."""
    logger.info("ARQ Worker shutdown complete")


# ============================================================
# Worker Configuration Class
# ============================================================

class WorkerSettings:
    """
    ARQ Worker settings.

    This class is discovered by ARQ when you run:
        arq app.worker.WorkerSettings
    """

    functions = [
        send_password_reset_email,
    ]

    redis_settings = get_arq_redis_settings()

    on_startup = startup
    on_shutdown = shutdown

    # ========================================
    # Job Settings
    # ========================================
    job_timeout = 60       # SMTP round trips only
    keep_result = 3600     # 1 hour
    max_tries = 3          # Retry failed jobs up to 3 times

    max_jobs = 10
    poll_delay = 0.5

    queue_name = "arq:queue"
    health_check_interval = 10
