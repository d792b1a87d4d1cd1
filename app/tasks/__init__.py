"""
Background Tasks Module

This module contains all background task definitions for ARQ workers.

Task Organization:
-----------------
- email_tasks.py: Transactional mail (password reset links)

How Tasks Work:
--------------
1. FastAPI app enqueues a job: await pool.enqueue_job('task_name', arg=value)
2. Redis stores the job in a queue
3. ARQ worker polls Redis and picks up the job
4. Worker executes the task function

Running Workers:
---------------
    arq app.worker.WorkerSettings
"""

from app.tasks.email_tasks import send_password_reset_email

# These names are used when enqueueing: enqueue_job('send_password_reset_email', ...)
__all__ = [
    "send_password_reset_email",
]
