from datetime import datetime
from typing import Optional, TypedDict


class UserType:
    CUSTOMER = "customer"
    TRANSLATOR = "translator"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    ADMINS = (ADMIN, SUPERADMIN)


class JobStatus:
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    WITHDRAWBEFORE24 = "withdrawbefore24"
    WITHDRAWAFTER24 = "withdrawafter24"
    NOT_CARRIED_OUT_CUSTOMER = "not_carried_out_customer"

    ACTIVE = (PENDING, ASSIGNED)
    FINISHED = (COMPLETED, WITHDRAWBEFORE24, WITHDRAWAFTER24, NOT_CARRIED_OUT_CUSTOMER)


class User(TypedDict):
    id: int
    name: str
    email: str
    user_type: str
    phone: Optional[str]
    slug: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime


class Job(TypedDict):
    id: int
    user_id: int
    slug: Optional[str]
    from_language: Optional[str]
    immediate: str
    due: Optional[datetime]
    duration: Optional[int]
    status: str
    customer_phone_type: str
    customer_physical_type: str
    user_email: Optional[str]
    reference: Optional[str]
    address: Optional[str]
    instructions: Optional[str]
    town: Optional[str]
    admin_comments: Optional[str]
    session_time: Optional[str]
    flagged: str
    manually_handled: str
    by_admin: str
    end_at: Optional[datetime]
    withdraw_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class TranslatorJob(TypedDict):
    id: int
    job_id: int
    user_id: int
    cancel_at: Optional[datetime]
    completed_at: Optional[datetime]
    completed_by: Optional[int]
    created_at: datetime


class Distance(TypedDict):
    id: int
    job_id: int
    distance: Optional[str]
    time: Optional[str]
    created_at: datetime
