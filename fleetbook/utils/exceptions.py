from fastapi import HTTPException, status


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES: machine-readable constants for frontend switch/case
# ═══════════════════════════════════════════════════════════════════════════════
class ErrorCode:
    VALIDATION_ERROR         = "VALIDATION_ERROR"
    UNAUTHORIZED             = "UNAUTHORIZED"
    TOKEN_EXPIRED            = "TOKEN_EXPIRED"
    FORBIDDEN                = "FORBIDDEN"
    NOT_FOUND                = "NOT_FOUND"
    DUPLICATE_ENTRY          = "DUPLICATE_ENTRY"
    BOOKING_CONFLICT         = "BOOKING_CONFLICT"
    INVALID_DATE_RANGE       = "INVALID_DATE_RANGE"
    VEHICLE_UNAVAILABLE      = "VEHICLE_UNAVAILABLE"
    ALREADY_PROCESSED        = "ALREADY_PROCESSED"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    OUT_OF_ORDER_APPROVAL    = "OUT_OF_ORDER_APPROVAL"
    ACCOUNT_INACTIVE         = "ACCOUNT_INACTIVE"
    INTERNAL_SERVER_ERROR    = "INTERNAL_SERVER_ERROR"


# ═══════════════════════════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════════════════════════
class AppException(HTTPException):
    """
    Base exception for all application-level errors.
    Carries a machine-readable error_code for frontend handling.
    """
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str,
        details: list | None = None,
        field: str | None = None,
    ):
        super().__init__(status_code=status_code, detail={
            "message": message,
            "error": {
                "code": error_code,
                "details": details,
                "field": field,
            }
        })
        self.message = message
        self.error_code = error_code


# ═══════════════════════════════════════════════════════════════════════════════
# CONCRETE EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class UnauthorizedException(AppException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, ErrorCode.UNAUTHORIZED)


class TokenExpiredException(AppException):
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Access token has expired", ErrorCode.TOKEN_EXPIRED)


class AccountInactiveException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            "Your account has been deactivated. Contact admin.",
            ErrorCode.ACCOUNT_INACTIVE,
        )


class ForbiddenException(AppException):
    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(status.HTTP_403_FORBIDDEN, message, ErrorCode.FORBIDDEN)


class NotFoundException(AppException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(status.HTTP_404_NOT_FOUND, f"{resource} not found", ErrorCode.NOT_FOUND)


class ValidationException(AppException):
    def __init__(
        self,
        message: str = "Invalid input",
        field: str | None = None,
        error_code: str = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, error_code, field=field)


class InvalidDateRangeException(ValidationException):
    def __init__(self, message: str = "End date must be after start date", field: str = "endDate"):
        super().__init__(message, field=field, error_code=ErrorCode.INVALID_DATE_RANGE)


class VehicleUnavailableException(ValidationException):
    def __init__(self, vehicle_status: str):
        super().__init__(
            f"Vehicle is currently {vehicle_status}",
            field="vehicleId",
            error_code=ErrorCode.VEHICLE_UNAVAILABLE,
        )


class BookingConflictException(AppException):
    def __init__(self, conflicting: dict | None = None):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "Vehicle is already booked for the requested time range",
            ErrorCode.BOOKING_CONFLICT,
            details=[conflicting] if conflicting else None,
        )
        self.conflicting = conflicting


class AlreadyProcessedException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "This approval has already been processed",
            ErrorCode.ALREADY_PROCESSED,
        )


class InvalidStateTransitionException(AppException):
    def __init__(self, current: str, target: str, message: str | None = None):
        super().__init__(
            status.HTTP_409_CONFLICT,
            message or f"Booking cannot move from {current} to {target}",
            ErrorCode.INVALID_STATE_TRANSITION,
        )
        self.current = current
        self.target = target


class OutOfOrderApprovalException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "Level 1 must approve before Level 2 can approve",
            ErrorCode.OUT_OF_ORDER_APPROVAL,
        )
