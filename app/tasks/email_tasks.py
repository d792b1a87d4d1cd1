"""
Email Tasks

Background delivery of transactional mail.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from app.utils.email import send_password_reset_link

logger = logging.getLogger(__name__)


async def send_password_reset_email(
    ctx: Dict[str, Any],
    email: str,
    url: str,
    name: Optional[str] = None,
    expires_in_minutes: int = 30
) -> Dict[str, Any]:
    """
    Send the reset link mail.

    Called by the ARQ worker, or inline with an empty ctx when the
    queue is unavailable. smtplib blocks, so it runs in a thread.
    """
    job_id = ctx.get("job_id", "inline")

    sent = await asyncio.to_thread(
        send_password_reset_link,
        email=email,
        url=url,
        name=name,
        expires_in_minutes=expires_in_minutes,
    )

    if sent:
        logger.info(f"[{job_id}] Password reset mail sent to {email}")
    else:
        logger.warning(f"[{job_id}] Password reset mail to {email} was not delivered")

    return {"email": email, "sent": sent}
