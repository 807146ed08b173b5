from __future__ import annotations

from folio_analytics.common.enums import ErrorReason


class AnalyticsError(RuntimeError):
    """Base class for library-level analytics errors."""

    code = "ANALYTICS_ERROR"

    def __init__(
        self,
        reason: ErrorReason | str,
        message: str | None = None,
        *,
        user_message: str | None = None,
    ) -> None:
        self.reason = ErrorReason(reason)
        text = message or self.reason.value.replace("_", " ")
        super().__init__(text)
        self.user_message = user_message or text

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "reason": self.reason.value, "message": str(self)}


class AnalyticsValidationError(AnalyticsError):
    code = "VALIDATION_ERROR"


class AnalyticsCalculationError(AnalyticsError):
    code = "CALCULATION_ERROR"
