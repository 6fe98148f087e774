from tolkbook.jobs.tasks import (
    send_email_job,
    send_push_notification_job,
    send_sms_notification_job,
)

__all__ = [
    "send_email_job",
    "send_push_notification_job",
    "send_sms_notification_job",
]
