"""
Console error types.

Every failure the console reports is either a rejected submission (caught
before anything is sent upstream) or a failed upstream request. Both carry
the toast the UI shows; the exception handler in main.py renders them.
"""
from typing import Optional

from .schemas import Toast


class ConsoleError(Exception):
    status_code = 500

    def __init__(self, title: str, description: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(description or title)
        self.toast = Toast.error(title, description)
        if status_code is not None:
            self.status_code = status_code

    @property
    def detail(self) -> str:
        return self.toast.description or self.toast.title


class ValidationFailed(ConsoleError):
    """Client-side validation rejected the input; nothing was sent upstream"""

    status_code = 400


class NotAuthenticated(ConsoleError):
    status_code = 401

    def __init__(self, title: str = "Authentication required", description: Optional[str] = "You must be logged in"):
        super().__init__(title, description)


class Forbidden(ConsoleError):
    status_code = 403

    def __init__(self, title: str = "Geen toegang", description: Optional[str] = None):
        super().__init__(title, description)


class DuplicateSubmission(ConsoleError):
    status_code = 409

    def __init__(self, action: str):
        super().__init__("Bezig met verwerken", f"'{action}' is al onderweg, even geduld.")
        self.action = action


class UpstreamError(ConsoleError):
    """The upstream API answered with an error or could not be reached"""

    status_code = 502

    def __init__(self, message: str, status_code: Optional[int] = None, title: str = "Fout"):
        super().__init__(title, message, status_code)
        self.upstream_message = message

    def with_toast(self, title: str, description: Optional[str] = None) -> "UpstreamError":
        """Replace the generic toast with the one for the failed operation"""
        self.toast = Toast.error(title, description or self.upstream_message)
        return self
