from django.db import models


class Lesson(models.Model):
    """
    Catalog lesson record. The catalog service owns it; the pipeline only
    moves `status` and `video_url`.
    """

    class Status(models.TextChoices):
        PENDING = "PENDING"
        PROCESSING = "PROCESSING"
        READY = "READY"
        FAILED = "FAILED"

    class ContentType(models.TextChoices):
        VIDEO = "video"
        TEXT = "text"
        QUIZ = "quiz"

    id = models.CharField(primary_key=True, max_length=64)
    title = models.CharField(max_length=255, blank=True, default="")
    content_type = models.CharField(max_length=16, choices=ContentType.choices, default=ContentType.VIDEO)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    # Storage path of the primary manifest; set only while status is READY
    video_url = models.CharField(max_length=512, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Lesson {self.pk} ({self.status})"
