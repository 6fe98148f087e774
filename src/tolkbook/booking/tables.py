from tolkbook.booking.models import Distance, Job, JobStatus, TranslatorJob, User, UserType
from tolkbook.repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Data access for the users table."""

    table = "users"
    fillable = ("name", "email", "user_type", "phone", "slug", "is_active")
    validation_rules = {
        "name": "required|string|max:255",
        "email": "required|email|max:255",
        "user_type": "required|in:" + ",".join(
            (UserType.CUSTOMER, UserType.TRANSLATOR, UserType.ADMIN, UserType.SUPERADMIN)
        ),
        "phone": "nullable|string|max:32",
    }

    def active_translators(self) -> list[User]:
        return self.find_by(user_type=UserType.TRANSLATOR, is_active=True)


class JobRepository(BaseRepository[Job]):
    """Data access for the jobs table."""

    table = "jobs"
    fillable = (
        "user_id",
        "slug",
        "from_language",
        "immediate",
        "due",
        "duration",
        "status",
        "customer_phone_type",
        "customer_physical_type",
        "user_email",
        "reference",
        "address",
        "instructions",
        "town",
        "admin_comments",
        "session_time",
        "flagged",
        "manually_handled",
        "by_admin",
        "end_at",
        "withdraw_at",
    )
    validation_rules = {
        "from_language": "required|string|max:64",
        "immediate": "required|in:yes,no",
        "due": "required_if:immediate,no|date",
        "duration": "required|integer|min:1|max:1440",
        "customer_phone_type": "nullable|in:yes,no",
        "customer_physical_type": "nullable|in:yes,no",
        "user_email": "nullable|email",
    }
    update_rules = {
        "from_language": "nullable|string|max:64",
        "immediate": "nullable|in:yes,no",
        "due": "nullable|date",
        "duration": "nullable|integer|min:1|max:1440",
        "status": "nullable|in:" + ",".join(JobStatus.ACTIVE + JobStatus.FINISHED),
        "customer_phone_type": "nullable|in:yes,no",
        "customer_physical_type": "nullable|in:yes,no",
        "user_email": "nullable|email",
    }
    attribute_names = {
        "from_language": "language",
        "due": "due date",
        "customer_phone_type": "phone booking",
        "customer_physical_type": "physical booking",
        "user_email": "email",
    }


class TranslatorJobRepository(BaseRepository[TranslatorJob]):
    """Data access for translator_jobs, the translator assignments of jobs."""

    table = "translator_jobs"
    fillable = ("job_id", "user_id", "cancel_at", "completed_at", "completed_by")
    timestamps = False

    def active_for_job(self, job_id) -> TranslatorJob | None:
        """The assignment still in force for a job, if any."""
        return self.first_where(job_id=job_id, cancel_at=None, completed_at=None)

    def active_job_ids(self, user_id) -> list[int]:
        return [a["job_id"] for a in self.find_by(user_id=user_id, cancel_at=None, completed_at=None)]


class DistanceRepository(BaseRepository[Distance]):
    """Data access for distances, the travel log of a job."""

    table = "distances"
    fillable = ("job_id", "distance", "time")
    timestamps = False
