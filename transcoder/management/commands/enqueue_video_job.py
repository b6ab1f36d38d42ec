from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from video_pipeline.celery import celery_app
from transcoder.broker import publish_job
from transcoder.errors import MalformedJob
from transcoder.serializers import parse_job_message


class Command(BaseCommand):
    help = "Publish a transcoding job for a lesson (used to reprocess failed lessons)."

    def add_arguments(self, parser):
        parser.add_argument("lesson_id")
        parser.add_argument("original_file_path", help="Object key of the upload, e.g. uploads/v1.mp4")
        parser.add_argument("--queue", default=None, help="Override VIDEO_QUEUE_NAME")

    def handle(self, *args, **options):
        try:
            job = parse_job_message({
                "lessonId": options["lesson_id"],
                "originalFilePath": options["original_file_path"],
            })
        except MalformedJob as e:
            raise CommandError(str(e))

        queue_name = options["queue"] or settings.VIDEO_QUEUE_NAME
        with celery_app.connection_for_write() as conn:
            publish_job(conn, job, queue_name)
        self.stdout.write(self.style.SUCCESS(f"Queued lesson {job.lesson_id} on {queue_name}"))
