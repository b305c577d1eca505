import logging
from datetime import datetime

from .errors import AuthenticationFailure, BackendError, NotFound, ValidationFailure
from .models import ApprovalRequest
from .store import Store

logger = logging.getLogger(__name__)

ACTIONS = ("approve", "reject")


def approve_or_reject(store: Store, request: ApprovalRequest) -> str:
    """Approves or rejects a student on behalf of their school.

    Returns the new status ("approved" or "rejected"). Raises
    ValidationFailure for an incomplete request, AuthenticationFailure for
    bad school credentials, NotFound when the student is not enrolled at that
    school and BackendError when the store fails.
    """
    if not (
        request.action
        and request.school_id
        and request.school_password
        and request.student_id
    ):
        raise ValidationFailure("Missing required fields")
    if request.action not in ACTIONS:
        raise ValidationFailure(f"Unknown action: {request.action}")

    try:
        school = store.find_school(request.school_id, request.school_password)
    except BackendError as e:
        raise BackendError("School validation failed") from e
    if school is None:
        logger.warning(f"Rejected credentials for school {request.school_id}")
        raise AuthenticationFailure("Invalid school credentials")

    try:
        student = store.get_student(request.student_id)
    except BackendError as e:
        raise BackendError("Student lookup failed") from e
    if student is None or student.school_id != school.id:
        raise NotFound("Student not found for this school")

    if request.action == "approve":
        student.is_approved = True
        student.approved_at = datetime.now()
        student.rejection_reason = None
        status = "approved"
    else:
        student.is_approved = False
        student.rejection_reason = (request.rejection_reason or "No reason provided").strip()
        status = "rejected"

    try:
        store.save_student(student)
    except BackendError as e:
        raise BackendError(f"Failed to {request.action} student") from e

    logger.info(f"Student {student.id} {status} by school {school.school_id}")
    return status
