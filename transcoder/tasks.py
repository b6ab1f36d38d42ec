from celery import shared_task
from celery.utils.log import get_task_logger
from django.conf import settings

from .workspace import purge_stale

logger = get_task_logger(__name__)


@shared_task(ignore_result=True)
def sweep_stale_workspaces(max_age: int | None = None) -> int:
    """Remove job workspaces that outlived their job (failed best-effort cleanup, killed worker)."""
    age = max_age if max_age is not None else settings.VIDEO_WORKSPACE_MAX_AGE
    removed = purge_stale(settings.VIDEO_WORKSPACE_ROOT, age)
    for p in removed:
        logger.info("Removed stale workspace %s", p)
    return len(removed)
