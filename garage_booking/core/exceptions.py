from fastapi import Request
from fastapi.exceptions import HTTPException
from fastapi.responses import JSONResponse

from garage_booking.core.domain_exceptions import DomainException
from garage_booking.core.error_codes import ErrorCode, NOT_FOUND_CODES
from garage_booking.schemas.common import APIResponse


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=APIResponse.fail(ErrorCode.VALIDATION_ERROR, str(exc.detail)).model_dump(),
    )


async def domain_exception_handler(request: Request, exc: DomainException):
    # Missing records map to 404, every other business rule to 400.
    status_code = 404 if exc.code in NOT_FOUND_CODES else 400
    return JSONResponse(
        status_code=status_code,
        content=APIResponse.fail(exc.code, exc.message).model_dump(),
    )
