import dataclasses
import logging
import signal

from django.core.management.base import BaseCommand

from video_pipeline.celery import celery_app
from transcoder.config import PipelineConfig
from transcoder.consumer import VideoJobConsumer
from transcoder.pipeline import VideoPipeline
from transcoder.s3 import BlobStorage

logger = logging.getLogger("transcoder.consumer")


class Command(BaseCommand):
    help = "Consume video jobs from the broker and transcode them until stopped."

    def add_arguments(self, parser):
        parser.add_argument("--queue", help="Override VIDEO_QUEUE_NAME")
        parser.add_argument("--max-in-flight", type=int, help="Override VIDEO_MAX_IN_FLIGHT")

    def handle(self, *args, **options):
        config = PipelineConfig.from_settings()
        overrides = {}
        if options.get("queue"):
            overrides["queue_name"] = options["queue"]
        if options.get("max_in_flight"):
            overrides["max_in_flight"] = options["max_in_flight"]
        if overrides:
            config = dataclasses.replace(config, **overrides)

        pipeline = VideoPipeline(config, BlobStorage())

        with celery_app.connection_for_read() as conn:
            consumer = VideoJobConsumer(conn, pipeline, config)

            def _stop(signum, frame):
                logger.info("Received signal %s, finishing in-flight jobs", signum)
                consumer.stop()

            signal.signal(signal.SIGTERM, _stop)
            signal.signal(signal.SIGINT, _stop)

            logger.info("Video Processing Service starting (queue=%s, max_in_flight=%d)",
                        config.queue_name, config.max_in_flight)
            try:
                consumer.run()
            finally:
                consumer.shutdown()
        logger.info("Video Processing Service stopped")
