import logging

from redis import Redis
from rq import Queue

from tolkbook.config import config

logger = logging.getLogger(__name__)

# Referenced by dotted path: tolkbook.jobs imports this package
PUSH_TASK = "tolkbook.jobs.tasks.send_push_notification_job"
SMS_TASK = "tolkbook.jobs.tasks.send_sms_notification_job"
EMAIL_TASK = "tolkbook.jobs.tasks.send_email_job"


class Notifier:
    """
    Queues notification deliveries for the RQ worker.

    The queue is created on first use so importing this module never
    touches Redis.
    """

    def __init__(self, queue: Queue | None = None):
        self._queue = queue

    @property
    def queue(self) -> Queue:
        if self._queue is None:
            self._queue = Queue(
                config.notification_queue, connection=Redis.from_url(config.redis_url)
            )
        return self._queue

    def push_to_translators(self, job_id: int) -> str:
        """Announce a job to every translator who may take it."""
        return self._enqueue(PUSH_TASK, job_id=job_id, template="new_job")

    def push_to_users(self, job_id: int, user_ids: list[int], template: str) -> str:
        return self._enqueue(PUSH_TASK, job_id=job_id, user_ids=user_ids, template=template)

    def sms_to_translators(self, job_id: int) -> str:
        return self._enqueue(SMS_TASK, job_id=job_id)

    def email(self, job_id: int, template: str, recipient: str | None = None) -> str:
        return self._enqueue(EMAIL_TASK, job_id=job_id, template=template, recipient=recipient)

    def _enqueue(self, task: str, **kwargs) -> str:
        job = self.queue.enqueue(task, **kwargs)
        logger.debug("Queued %s for job %s as %s", task, kwargs.get("job_id"), job.id)
        return job.id
