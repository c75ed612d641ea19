from typing import Final


class ErrorCode:
    VALIDATION_ERROR: Final = "VALIDATION_ERROR"
    BOOKING_NOT_FOUND: Final = "BOOKING_NOT_FOUND"
    CUSTOMER_NOT_FOUND: Final = "CUSTOMER_NOT_FOUND"
    GARAGE_NOT_FOUND: Final = "GARAGE_NOT_FOUND"
    SERVICE_NOT_FOUND: Final = "SERVICE_NOT_FOUND"
    INVALID_STATUS: Final = "INVALID_STATUS"
    INVALID_TIME_SLOT: Final = "INVALID_TIME_SLOT"


NOT_FOUND_CODES: Final = frozenset(
    {
        ErrorCode.BOOKING_NOT_FOUND,
        ErrorCode.CUSTOMER_NOT_FOUND,
        ErrorCode.GARAGE_NOT_FOUND,
        ErrorCode.SERVICE_NOT_FOUND,
    }
)
