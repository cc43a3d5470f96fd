"""Error taxonomy shared by every service.

Services raise these instead of ``HTTPException`` so they stay usable outside
a request. ``main.py`` maps them onto ``{"detail": ...}`` responses.
"""


class LawFirmError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationRejection(LawFirmError):
    """Bad input shape."""
    status_code = 400


class BusinessRuleRejection(LawFirmError):
    """Input is well formed but a firm rule forbids the operation."""
    status_code = 409


class NotFound(LawFirmError):
    status_code = 404


class AccessDenied(LawFirmError):
    status_code = 403


class GatewayFailure(LawFirmError):
    """The payment gateway did not hand back a usable redirect."""
    status_code = 502
