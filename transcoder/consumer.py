"""
Queue consumer for video jobs.

Deliveries are read on the connection thread and handed to a thread
pool, one job per task, so long ffmpeg/packager runs never stall the
broker heartbeat. A finished delivery goes onto a hand-off queue and is
acknowledged back on the connection thread, after the job's terminal
status has been written.

Every delivery is acknowledged exactly once, including failed and
malformed ones: processing is at-most-once and a failed lesson is only
retried when something enqueues it again.
"""
import logging
import queue
import time
from concurrent.futures import Executor, ThreadPoolExecutor

from django.db import close_old_connections
from kombu.exceptions import MessageStateError
from kombu.mixins import ConsumerMixin

from .broker import job_queue
from .config import PipelineConfig
from .errors import MalformedJob
from .pipeline import JobOutcome, VideoPipeline
from .serializers import parse_job_message

logger = logging.getLogger(__name__)


class VideoJobConsumer(ConsumerMixin):
    def __init__(self, connection, pipeline: VideoPipeline, config: PipelineConfig,
                 executor: Executor | None = None):
        self.connection = connection
        self.pipeline = pipeline
        self.config = config
        self.queue = job_queue(config.queue_name)
        self.executor = executor or ThreadPoolExecutor(
            max_workers=config.max_in_flight, thread_name_prefix="video-job",
        )
        self._finished: queue.Queue = queue.Queue()
        self._in_flight = 0

    # -- kombu hooks (connection thread) -------------------------------

    def get_consumers(self, Consumer, channel):
        return [
            Consumer(
                queues=[self.queue],
                on_message=self.on_message,
                prefetch_count=self.config.max_in_flight,
            )
        ]

    def on_connection_revived(self):
        logger.info("Consuming from %s", self.config.queue_name)

    def on_message(self, message):
        logger.info("Received job: %r", message.body[:512])
        self._in_flight += 1
        future = self.executor.submit(self.handle_body, message.body)
        future.add_done_callback(lambda _f, m=message: self._finished.put(m))

    def on_iteration(self):
        self.ack_finished()

    def on_consume_end(self, connection, channel):
        if not self.should_stop:
            return
        # Consumers are cancelled but the connection is still open:
        # let running jobs finish so their messages can be acknowledged.
        if self._in_flight:
            logger.info("Waiting for %d in-flight job(s) before shutdown", self._in_flight)
        while self._in_flight:
            self.ack_finished()
            try:
                connection.heartbeat_check()
            except tuple(connection.connection_errors):
                logger.warning("Lost broker connection during shutdown; "
                               "%d unacknowledged job(s) will be redelivered", self._in_flight)
                return
            time.sleep(1)

    # -- acknowledgement ---------------------------------------------

    def ack_finished(self) -> int:
        """Acknowledge every delivery whose job has concluded. Returns the count."""
        acked = 0
        while True:
            try:
                message = self._finished.get_nowait()
            except queue.Empty:
                return acked
            self._in_flight -= 1
            if message.acknowledged:
                continue
            try:
                message.ack()
            except (MessageStateError, *self.connection.connection_errors, *self.connection.channel_errors):
                logger.warning("Could not acknowledge delivery %s; the broker will redeliver it",
                               getattr(message, "delivery_tag", "?"), exc_info=True)
                continue
            acked += 1
            logger.info("[x] Done processing message.")

    # -- job execution (worker thread) ----------------------------------

    def handle_body(self, body) -> JobOutcome | None:
        """Parse and run one job. Never raises."""
        close_old_connections()
        lesson_id = None
        try:
            job = parse_job_message(body)
            lesson_id = job.lesson_id
            outcome = self.pipeline.run(job)
            logger.info("Lesson %s finished with status %s", lesson_id, outcome.status)
            return outcome
        except MalformedJob as e:
            logger.error("Rejected malformed job message: %s", e)
            if e.lesson_id:
                self._fail_safely(e.lesson_id)
        except Exception:
            logger.exception("Job for lesson %s crashed", lesson_id or "<unknown>")
            if lesson_id:
                self._fail_safely(lesson_id)
        finally:
            close_old_connections()
        return None

    def _fail_safely(self, lesson_id: str) -> None:
        try:
            self.pipeline.recorder.mark_failed(lesson_id)
        except Exception:
            logger.exception("Could not record FAILED for lesson %s", lesson_id)

    def stop(self) -> None:
        self.should_stop = True

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True)
