from flask import Blueprint, g, jsonify, request

from tolkbook import db
from tolkbook.api.errors import error_response
from tolkbook.booking import BookingRepository, DistanceRepository, JobRepository
from tolkbook.errors import NotPermitted

bp = Blueprint("bookings", __name__)

booking_repo = BookingRepository()
distance_repo = DistanceRepository()
job_repo = JobRepository()

DISTANCE_FIELDS = ("distance", "time")
JOB_FEED_FIELDS = ("admincomment", "session_time", "flagged", "manually_handled", "by_admin")


def current_actor() -> dict:
    """The authenticated user attached to this request."""
    user = g.get("user")
    if user is None:
        raise NotPermitted("No authenticated user is attached to the request.")
    return user


def request_data() -> dict:
    """Query string merged with the JSON (or form) body; the body wins."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = request.form.to_dict()
    return {**request.args.to_dict(), **body}


def normalize_flag(value) -> str:
    return "yes" if value == "true" else "no"


def _provided(data: dict, field: str) -> bool:
    return data.get(field) not in (None, "")


def _text(data: dict, field: str) -> str:
    value = data.get(field)
    return "" if value is None else value


# =============================================================================
# Bookings
# =============================================================================


@bp.route("/bookings", methods=["GET"])
def index():
    """List a user's bookings, or every booking for admins."""
    try:
        user_id = request.args.get("user_id")
        response = booking_repo.get_bookings(user_id, current_actor()["user_type"])
        return jsonify(response)
    except Exception as e:
        return error_response(e)


@bp.route("/bookings/<int:id>", methods=["GET"])
def show(id: int):
    """Get a booking with its assigned translator."""
    try:
        return jsonify(booking_repo.get_booking_with_translator(id))
    except Exception as e:
        return error_response(e)


@bp.route("/bookings", methods=["POST"])
def store():
    """Create a booking for the current customer."""
    try:
        response = booking_repo.create_booking(current_actor(), request_data())
        return jsonify(response)
    except Exception as e:
        return error_response(e)


@bp.route("/bookings/<int:id>", methods=["PUT"])
def update(id: int):
    """Update a booking."""
    try:
        response = booking_repo.update_booking(id, request_data(), current_actor())
        return jsonify(response)
    except Exception as e:
        return error_response(e)


@bp.route("/bookings/immediate-job-email", methods=["POST"])
def immediate_job_email():
    """Send the confirmation email for an immediate booking."""
    try:
        return jsonify(booking_repo.send_immediate_job_email(request_data()))
    except Exception as e:
        return error_response(e)


@bp.route("/bookings/history", methods=["GET"])
def history():
    """Get the finished jobs of a user, one page at a time."""
    try:
        user_id = request.args.get("user_id")
        page = request.args.get("page", 1, type=int)
        return jsonify(booking_repo.get_user_job_history(user_id, page=page))
    except Exception as e:
        return error_response(e)


# =============================================================================
# Job lifecycle
# =============================================================================


@bp.route("/jobs/accept", methods=["POST"])
def accept_job():
    """Accept a job as the current translator."""
    try:
        return jsonify(booking_repo.accept_job(request_data(), current_actor()))
    except Exception as e:
        return error_response(e)


@bp.route("/jobs/accept-with-id", methods=["GET"])
def accept_job_with_id():
    """Accept the job named by the job_id parameter."""
    try:
        job_id = request.args.get("job_id")
        return jsonify(booking_repo.accept_job_with_id(job_id, current_actor()))
    except Exception as e:
        return error_response(e)


@bp.route("/jobs/cancel", methods=["POST"])
def cancel_job():
    """Cancel a job as its customer or its translator."""
    try:
        return jsonify(booking_repo.cancel_job(request_data(), current_actor()))
    except Exception as e:
        return error_response(e)


@bp.route("/jobs/end", methods=["POST"])
def end_job():
    try:
        return jsonify(booking_repo.end_job(request_data()))
    except Exception as e:
        return error_response(e)


@bp.route("/jobs/customer-not-call", methods=["POST"])
def customer_not_call():
    """Mark a job as not carried out because the customer never called."""
    try:
        return jsonify(booking_repo.mark_customer_not_called(request_data()))
    except Exception as e:
        return error_response(e)


@bp.route("/jobs/potential", methods=["GET"])
def potential_jobs():
    """List open jobs the current translator could accept."""
    try:
        return jsonify(booking_repo.get_potential_jobs(current_actor()))
    except Exception as e:
        return error_response(e)


@bp.route("/jobs/reopen", methods=["POST"])
def reopen():
    try:
        return jsonify(booking_repo.reopen_job(request_data()))
    except Exception as e:
        return error_response(e)


# =============================================================================
# Admin feed and notifications
# =============================================================================


@bp.route("/distance-feed", methods=["POST"])
def distance_feed():
    """
    Record travel distance/time and admin fields for a job.

    Distance and time go to the job's distances row; admin comment, session
    time and the flagged/manually_handled/by_admin flags go to the job
    itself. Both writes commit together or not at all.
    """
    try:
        data = request_data()
        write_distance = any(_provided(data, f) for f in DISTANCE_FIELDS)
        write_job = any(_provided(data, f) for f in JOB_FEED_FIELDS)

        if write_distance or write_job:
            job_repo.validate(data, rules={"jobid": "required|integer"})
            job_id = int(data["jobid"])
            with db.transaction():
                if write_distance:
                    distance_repo.update_where(
                        {"distance": _text(data, "distance"), "time": _text(data, "time")},
                        job_id=job_id,
                    )
                if write_job:
                    job_repo.update_where(
                        {
                            "admin_comments": _text(data, "admincomment"),
                            "session_time": _text(data, "session_time"),
                            "flagged": normalize_flag(data.get("flagged")),
                            "manually_handled": normalize_flag(data.get("manually_handled")),
                            "by_admin": normalize_flag(data.get("by_admin")),
                        },
                        id=job_id,
                    )

        return jsonify({"message": "Record updated!"})
    except Exception as e:
        return error_response(e)


@bp.route("/notifications/resend", methods=["POST"])
def resend_notifications():
    """Push the job to eligible translators again."""
    try:
        booking_repo.resend_notifications(request_data())
        return jsonify({"success": "Push sent"})
    except Exception as e:
        return error_response(e)


@bp.route("/notifications/resend-sms", methods=["POST"])
def resend_sms_notifications():
    """Text the job to eligible translators again."""
    try:
        booking_repo.resend_sms_notifications(request_data())
        return jsonify({"success": "SMS sent"})
    except Exception as e:
        return error_response(e)
