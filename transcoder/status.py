import logging

from django.utils import timezone

from .models import Lesson

logger = logging.getLogger(__name__)


class StatusRecorder:
    """
    Point updates on the lesson record. The UPDATE skips rows already in
    the target state, so repeating a transition leaves the row exactly as
    the first call left it.
    Returns False when no lesson matches the id.
    """

    def _update(self, lesson_id: str, *, status: str, video_url: str | None) -> bool:
        lesson = Lesson.objects.filter(pk=lesson_id)
        # Rows already in the target state are left untouched, updated_at included
        updated = lesson.exclude(status=status, video_url=video_url).update(
            status=status,
            video_url=video_url,
            updated_at=timezone.now(),
        )
        if updated:
            logger.info("Lesson %s status updated to %s", lesson_id, status)
            return True
        if lesson.exists():
            logger.info("Lesson %s already %s", lesson_id, status)
            return True
        logger.warning("Lesson %s not found; status %s not recorded", lesson_id, status)
        return False

    def mark_processing(self, lesson_id: str) -> bool:
        return self._update(lesson_id, status=Lesson.Status.PROCESSING, video_url=None)

    def mark_ready(self, lesson_id: str, manifest_path: str) -> bool:
        if not manifest_path:
            raise ValueError("a READY lesson needs a manifest path")
        return self._update(lesson_id, status=Lesson.Status.READY, video_url=manifest_path)

    def mark_failed(self, lesson_id: str) -> bool:
        return self._update(lesson_id, status=Lesson.Status.FAILED, video_url=None)
