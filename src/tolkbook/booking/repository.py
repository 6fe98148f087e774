import logging
from datetime import datetime, timedelta, timezone

from tolkbook import db
from tolkbook.booking.models import Job, JobStatus, User, UserType
from tolkbook.booking.notifier import Notifier
from tolkbook.booking.tables import (
    JobRepository,
    TranslatorJobRepository,
    UserRepository,
)
from tolkbook.errors import NotPermitted, ValidationFailed
from tolkbook.validation.validator import is_present

logger = logging.getLogger(__name__)

IMMEDIATE_LEAD_TIME = timedelta(minutes=5)
CANCELLATION_WINDOW = timedelta(hours=24)

JOB_ID_RULES = {"job_id": "required|integer"}
CONTACT_FIELDS = ("user_email", "reference", "address", "instructions", "town")
# Only admins may write these through update_booking
ADMIN_FIELDS = (
    "status",
    "admin_comments",
    "flagged",
    "manually_handled",
    "by_admin",
    "end_at",
    "withdraw_at",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _session_time(start: datetime | None, end: datetime) -> str | None:
    if start is None:
        return None
    seconds = max(0, int((end - start).total_seconds()))
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class BookingRepository:
    """
    Booking operations behind the HTTP API.

    Composes the table repositories into the job lifecycle:
    pending -> assigned -> completed, with cancellation, no-show and
    reopen transitions. Multi-row changes run inside db.transaction().
    """

    def __init__(self, notifier: Notifier | None = None):
        self.users = UserRepository()
        self.jobs = JobRepository()
        self.assignments = TranslatorJobRepository()
        self.notifier = notifier or Notifier()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_bookings(self, user_id, user_type: str):
        """A user's current jobs, or every job (paginated) for admins."""
        self.users.validate({"user_id": user_id}, rules={"user_id": "nullable|integer"})
        if is_present(user_id):
            return self.get_users_jobs(int(user_id))
        if user_type in UserType.ADMINS:
            return self.jobs.paginate().to_dict()
        return []

    def get_users_jobs(self, user_id) -> dict:
        user = self.users.find_or_fail(user_id)
        if user["user_type"] == UserType.TRANSLATOR:
            jobs = self.jobs.find_by(
                id=self.assignments.active_job_ids(user["id"]), status=JobStatus.ASSIGNED
            )
        else:
            jobs = self.jobs.find_by(user_id=user["id"], status=JobStatus.ACTIVE)

        return {
            "user_type": user["user_type"],
            "emergency_jobs": [j for j in jobs if j["immediate"] == "yes"],
            "normal_jobs": [j for j in jobs if j["immediate"] != "yes"],
        }

    def get_booking_with_translator(self, id) -> dict:
        job = self.jobs.find_or_fail(id)
        assignment = self.assignments.active_for_job(job["id"])
        translator = self.users.find(assignment["user_id"]) if assignment else None
        return {**job, "translator": translator}

    def get_user_job_history(self, user_id, page: int = 1) -> dict:
        """Finished jobs of a customer, or jobs a translator has worked, one page at a time."""
        self.users.validate({"user_id": user_id}, rules={"user_id": "required|integer"})
        user = self.users.find_or_fail(int(user_id))
        if user["user_type"] == UserType.TRANSLATOR:
            job_ids = [
                a["job_id"]
                for a in self.assignments.find_by(user_id=user["id"], cancel_at=None)
            ]
            paginator = self.jobs.paginate(page=page, id=job_ids, status=JobStatus.FINISHED)
        else:
            paginator = self.jobs.paginate(page=page, user_id=user["id"], status=JobStatus.FINISHED)
        return paginator.to_dict()

    def get_potential_jobs(self, user: User) -> list[Job]:
        """Open jobs a translator could still accept."""
        if user["user_type"] != UserType.TRANSLATOR:
            raise NotPermitted("Only translators can look for potential jobs.")

        declined = {
            a["job_id"]
            for a in self.assignments.find_by(user_id=user["id"])
            if a["cancel_at"] is not None
        }
        now = _now()
        return [
            job
            for job in self.jobs.find_by(status=JobStatus.PENDING)
            if job["id"] not in declined and (job["due"] is None or job["due"] > now)
        ]

    # -------------------------------------------------------------------------
    # Customer actions
    # -------------------------------------------------------------------------

    def create_booking(self, user: User, data: dict) -> Job:
        if user["user_type"] != UserType.CUSTOMER:
            raise NotPermitted("Only customers can create bookings.")

        self.jobs.validate(data)

        attributes = {key: value for key, value in data.items() if key != "status"}
        attributes["user_id"] = user["id"]
        attributes["status"] = JobStatus.PENDING
        if data["immediate"] == "yes":
            attributes["due"] = _now() + IMMEDIATE_LEAD_TIME
        attributes["customer_phone_type"] = "yes" if data.get("customer_phone_type") == "yes" else "no"
        attributes["customer_physical_type"] = (
            "yes" if data.get("customer_physical_type") == "yes" else "no"
        )
        attributes.setdefault("user_email", user["email"])

        job = self.jobs.create(attributes)
        logger.info("Customer %s created job %s", user["id"], job["id"])
        self.notifier.push_to_translators(job["id"])
        return job

    def update_booking(self, id, data: dict, user: User) -> Job:
        job = self.jobs.find_or_fail(id)
        is_admin = user["user_type"] in UserType.ADMINS
        if not is_admin and job["user_id"] != user["id"]:
            raise NotPermitted("You can only update your own bookings.")

        self.jobs.validate(data, rules=self.jobs.update_rules)

        changes = dict(data)
        if not is_admin:
            for field in ADMIN_FIELDS:
                changes.pop(field, None)
        changes.pop("user_id", None)

        updated = self.jobs.update(id, changes)
        logger.info("User %s updated job %s", user["id"], id)
        return updated

    def send_immediate_job_email(self, data: dict) -> dict:
        """Store the customer's contact details on a job and send the confirmation email."""
        self.jobs.validate(data, rules={**JOB_ID_RULES, "user_email": "required|email"})

        job_id = int(data["job_id"])
        self.jobs.update(job_id, {field: data[field] for field in CONTACT_FIELDS if field in data})
        queued = self.notifier.email(job_id, "job_created", recipient=data["user_email"])
        return {"status": "success", "job_id": job_id, "queued": queued}

    # -------------------------------------------------------------------------
    # Translator lifecycle
    # -------------------------------------------------------------------------

    def accept_job(self, data: dict, user: User) -> dict:
        return self.accept_job_with_id(data.get("job_id"), user)

    def accept_job_with_id(self, job_id, user: User) -> dict:
        self.jobs.validate({"job_id": job_id}, rules=JOB_ID_RULES)
        job_id = int(job_id)
        if user["user_type"] != UserType.TRANSLATOR:
            raise NotPermitted("Only translators can accept bookings.")

        with db.transaction():
            job = self.jobs.find_or_fail(job_id)
            if self._is_booked_at(user["id"], job["due"]):
                raise ValidationFailed(
                    {"job_id": ["You already have a booking at the same time."]}
                )
            # Conditional write so two translators can't both claim the job
            claimed = self.jobs.update_where(
                {"status": JobStatus.ASSIGNED}, id=job["id"], status=JobStatus.PENDING
            )
            if not claimed:
                raise ValidationFailed(
                    {"job_id": ["This booking has already been accepted by another translator."]}
                )
            self.assignments.create({"job_id": job["id"], "user_id": user["id"]})

        logger.info("Translator %s accepted job %s", user["id"], job["id"])
        self.notifier.email(job["id"], "job_accepted")
        return {"status": "success", "job": self.jobs.find(job["id"])}

    def cancel_job(self, data: dict, user: User) -> dict:
        self.jobs.validate(data, rules=JOB_ID_RULES)
        job = self.jobs.find_or_fail(int(data["job_id"]))

        if user["user_type"] == UserType.TRANSLATOR:
            return self._translator_cancel(job, user)
        return self._customer_cancel(job, user)

    def _customer_cancel(self, job: Job, user: User) -> dict:
        if user["user_type"] not in UserType.ADMINS and job["user_id"] != user["id"]:
            raise NotPermitted("You can only cancel your own bookings.")
        if job["status"] not in JobStatus.ACTIVE:
            raise ValidationFailed({"job_id": ["Only pending or assigned bookings can be cancelled."]})

        now = _now()
        if job["due"] is None or job["due"] - now >= CANCELLATION_WINDOW:
            status = JobStatus.WITHDRAWBEFORE24
        else:
            status = JobStatus.WITHDRAWAFTER24

        with db.transaction():
            assignment = self.assignments.active_for_job(job["id"])
            self.jobs.update(job["id"], {"status": status, "withdraw_at": now})
            if assignment:
                self.assignments.update(assignment["id"], {"cancel_at": now})

        logger.info("User %s withdrew job %s (%s)", user["id"], job["id"], status)
        if assignment:
            self.notifier.push_to_users(job["id"], [assignment["user_id"]], "job_cancelled")
        return {"status": "success", "job_status": status}

    def _translator_cancel(self, job: Job, user: User) -> dict:
        assignment = self.assignments.active_for_job(job["id"])
        if assignment is None or assignment["user_id"] != user["id"]:
            raise NotPermitted("You are not assigned to this booking.")

        now = _now()
        if job["due"] is not None and job["due"] - now < CANCELLATION_WINDOW:
            raise ValidationFailed(
                {
                    "job_id": [
                        "A booking can not be cancelled less than 24 hours before it starts. "
                        "Please contact support."
                    ]
                }
            )

        with db.transaction():
            self.assignments.update(assignment["id"], {"cancel_at": now})
            self.jobs.update(job["id"], {"status": JobStatus.PENDING})

        logger.info("Translator %s cancelled job %s, job reopened", user["id"], job["id"])
        self.notifier.push_to_translators(job["id"])
        return {"status": "success", "job_status": JobStatus.PENDING}

    def end_job(self, data: dict) -> dict:
        self.jobs.validate(data, rules={**JOB_ID_RULES, "user_id": "nullable|integer"})
        job = self.jobs.find_or_fail(int(data["job_id"]))
        if job["status"] != JobStatus.ASSIGNED:
            raise ValidationFailed({"job_id": ["Only assigned bookings can be ended."]})

        now = _now()
        session_time = _session_time(job["due"], now)
        with db.transaction():
            self.jobs.update(
                job["id"],
                {"status": JobStatus.COMPLETED, "end_at": now, "session_time": session_time},
            )
            assignment = self.assignments.active_for_job(job["id"])
            if assignment:
                self.assignments.update(
                    assignment["id"], {"completed_at": now, "completed_by": data.get("user_id")}
                )

        logger.info("Job %s completed after %s", job["id"], session_time)
        self.notifier.email(job["id"], "session_ended")
        return {"status": "success", "session_time": session_time}

    def mark_customer_not_called(self, data: dict) -> dict:
        self.jobs.validate(data, rules=JOB_ID_RULES)
        job = self.jobs.find_or_fail(int(data["job_id"]))
        if job["status"] != JobStatus.ASSIGNED:
            raise ValidationFailed(
                {"job_id": ["Only assigned bookings can be marked as not carried out."]}
            )

        now = _now()
        with db.transaction():
            self.jobs.update(
                job["id"], {"status": JobStatus.NOT_CARRIED_OUT_CUSTOMER, "end_at": now}
            )
            assignment = self.assignments.active_for_job(job["id"])
            if assignment:
                self.assignments.update(assignment["id"], {"completed_at": now})

        logger.info("Job %s marked as not carried out by customer", job["id"])
        return {"status": "success"}

    # -------------------------------------------------------------------------
    # Admin actions
    # -------------------------------------------------------------------------

    def reopen_job(self, data: dict) -> dict:
        self.jobs.validate(data, rules=JOB_ID_RULES)
        job = self.jobs.find_or_fail(int(data["job_id"]))
        if job["status"] == JobStatus.PENDING:
            raise ValidationFailed({"job_id": ["The booking is already open."]})

        with db.transaction():
            assignment = self.assignments.active_for_job(job["id"])
            if assignment:
                self.assignments.update(assignment["id"], {"cancel_at": _now()})
            reopened = self.jobs.update(
                job["id"],
                {
                    "status": JobStatus.PENDING,
                    "withdraw_at": None,
                    "end_at": None,
                    "session_time": None,
                },
            )

        logger.info("Job %s reopened", job["id"])
        self.notifier.push_to_translators(job["id"])
        return {"status": "success", "job": reopened}

    def resend_notifications(self, data: dict) -> str:
        self.jobs.validate(data, rules={"jobid": "required|integer"})
        job = self.jobs.find_or_fail(int(data["jobid"]))
        return self.notifier.push_to_translators(job["id"])

    def resend_sms_notifications(self, data: dict) -> str:
        self.jobs.validate(data, rules={"jobid": "required|integer"})
        job = self.jobs.find_or_fail(int(data["jobid"]))
        return self.notifier.sms_to_translators(job["id"])

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _is_booked_at(self, translator_id: int, due: datetime | None) -> bool:
        if due is None:
            return False
        job_ids = self.assignments.active_job_ids(translator_id)
        return self.jobs.count(id=job_ids, due=due, status=JobStatus.ASSIGNED) > 0
