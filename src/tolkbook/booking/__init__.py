"""
Booking

Interpreter bookings: table repositories for users, jobs, translator
assignments and distances, and the BookingRepository that runs the job
lifecycle on top of them.
"""

from tolkbook.booking.repository import BookingRepository
from tolkbook.booking.tables import (
    DistanceRepository,
    JobRepository,
    TranslatorJobRepository,
    UserRepository,
)

__all__ = [
    "BookingRepository",
    "DistanceRepository",
    "JobRepository",
    "TranslatorJobRepository",
    "UserRepository",
]
