"""Periodic maintenance scheduling (APScheduler).

The jobs themselves live in ``features/notifications/tasks.py``; this
package only registers them on the in-process scheduler.
"""

from __future__ import annotations

from notification_service.infra.tasks.scheduler import (
    scheduler,
    setup_scheduled_jobs,
    start_scheduler,
    stop_scheduler,
)

__all__ = ["scheduler", "setup_scheduled_jobs", "start_scheduler", "stop_scheduler"]
