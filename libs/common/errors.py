"""Base exception type shared by every service.

Services raise subclasses of ``AppError`` from their business logic; the
FastAPI layer turns them into JSON responses via
``libs.common.error_handler.add_exception_handlers``.
"""

from typing import Optional


class AppError(Exception):
    """A typed, caller-recoverable failure with an HTTP mapping."""

    status_code: int = 400
    code: str = "app_error"
    retryable: bool = False
    default_detail: str = "Request could not be completed"

    def __init__(self, detail: Optional[str] = None, **context):
        self.detail = detail or self.default_detail
        self.context = context
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        payload = {"detail": self.detail, "code": self.code}
        if self.context:
            payload["context"] = {k: str(v) for k, v in self.context.items()}
        return payload
