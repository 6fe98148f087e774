"""
RQ task definitions for notification delivery.

Each task resolves its recipients from the database and hands the message
to the delivery channel. The channels themselves (push gateway, SMS
provider, mail server) sit outside this service; dispatch is logged.
"""

import logging

from tolkbook.booking.tables import JobRepository, TranslatorJobRepository, UserRepository

logger = logging.getLogger(__name__)

TEMPLATES = {
    "new_job": "New booking #{id}: {from_language}, {duration} min",
    "job_accepted": "Your booking #{id} has been accepted by a translator",
    "job_cancelled": "Booking #{id} has been cancelled",
    "job_created": "Thank you, we have received booking #{id}",
    "session_ended": "Booking #{id} has ended",
}


def render(template: str, job: dict) -> str:
    return TEMPLATES[template].format(**job)


def _translator_recipients(job_id: int) -> list[dict]:
    """Active translators, minus those who already turned this job down."""
    declined = {
        a["user_id"]
        for a in TranslatorJobRepository().find_by(job_id=job_id)
        if a["cancel_at"] is not None
    }
    return [u for u in UserRepository().active_translators() if u["id"] not in declined]


def send_push_notification_job(
    job_id: int, user_ids: list[int] = None, template: str = "new_job"
) -> dict:
    """Send a push notification about a job to the given users, or to all eligible translators."""
    job = JobRepository().find_or_fail(job_id)
    if user_ids:
        recipients = UserRepository().find_by(id=user_ids)
    else:
        recipients = _translator_recipients(job_id)

    message = render(template, job)
    for user in recipients:
        logger.info("push -> user %s: %s", user["id"], message)

    return {"job_id": job_id, "channel": "push", "recipients": [u["id"] for u in recipients]}


def send_sms_notification_job(job_id: int) -> dict:
    """Text every eligible translator that has a phone number."""
    job = JobRepository().find_or_fail(job_id)
    recipients = [u for u in _translator_recipients(job_id) if u["phone"]]

    message = render("new_job", job)
    for user in recipients:
        logger.info("sms -> %s: %s", user["phone"], message)

    return {"job_id": job_id, "channel": "sms", "recipients": [u["id"] for u in recipients]}


def send_email_job(job_id: int, template: str, recipient: str = None) -> dict:
    """Email the job's customer (or an explicit recipient)."""
    job = JobRepository().find_or_fail(job_id)
    if recipient is None:
        recipient = job["user_email"]
    if recipient is None:
        owner = UserRepository().find_or_fail(job["user_id"])
        recipient = owner["email"]

    logger.info("email -> %s: %s", recipient, render(template, job))

    return {"job_id": job_id, "channel": "email", "recipients": [recipient]}
