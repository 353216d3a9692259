"""Errors raised by the client core.

Every error carries a message that can be shown to the operator as-is.
"""


class PostureClientError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ApiError(PostureClientError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(PostureClientError):
    """The server answered, but not with the shape we expect."""


class ValidationError(PostureClientError):
    pass


class CaptureError(PostureClientError):
    pass


class SizeExceededError(CaptureError):
    def __init__(self, size: int, limit: int):
        super().__init__(
            f"File exceeds the {limit / 1024 / 1024:.0f}MB limit (current size: {size / 1024 / 1024:.2f}MB)"
        )
        self.size = size
        self.limit = limit


class UploadError(PostureClientError):
    pass


class ReconciliationError(PostureClientError):
    pass


class SigningError(PostureClientError):
    pass


class DeleteError(PostureClientError):
    def __init__(self, message: str, image_id: str):
        super().__init__(message)
        self.image_id = image_id
