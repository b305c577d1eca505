class StudyBuddyError(Exception):
    """Base for failures that map onto an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(StudyBuddyError):
    status_code = 400


class AuthenticationFailure(StudyBuddyError):
    status_code = 401


class NotFound(StudyBuddyError):
    status_code = 404


class BackendError(StudyBuddyError):
    status_code = 500
