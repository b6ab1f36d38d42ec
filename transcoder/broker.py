from kombu import Exchange, Queue

from .serializers import JobMessage


def job_queue(name: str) -> Queue:
    """Durable queue on the default exchange, routed by its own name."""
    return Queue(name, Exchange(""), routing_key=name, durable=True)


def publish_job(connection, job: JobMessage, queue_name: str) -> None:
    queue = job_queue(queue_name)
    with connection.Producer() as producer:
        producer.publish(
            job.to_payload(),
            exchange=queue.exchange,
            routing_key=queue.routing_key,
            declare=[queue],
            serializer="json",
            delivery_mode="persistent",
            retry=True,
        )
