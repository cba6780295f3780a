from typing import List, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)

#==============================================================================
# ERROR TAXONOMY
#==============================================================================

class BloggyError(Exception):
    """Base error carrying the HTTP status and the public message"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.message
        # detail is logged, never sent to the client
        self.detail = detail
        super().__init__(detail or self.message)

    def to_body(self) -> dict:
        return {"statusCode": self.status_code, "message": self.message}


class ValidationError(BloggyError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Bad Request"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(detail="; ".join(self.errors))

    def to_body(self) -> dict:
        return {"statusCode": self.status_code, "errors": self.errors}


class Unauthorized(BloggyError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class TokenMissing(Unauthorized):
    message = "Unauthorized token"


class TokenInvalid(Unauthorized):
    message = "Invalid or expired token"


class NotFound(BloggyError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not Found"


class Conflict(BloggyError):
    status_code = status.HTTP_409_CONFLICT
    message = "Conflict"


class UploadError(BloggyError):
    message = "File Upload Error"


class StorageError(BloggyError):
    pass


class EmailError(BloggyError):
    pass


class ProviderError(BloggyError):
    pass

#==============================================================================
# EXCEPTION HANDLERS
#==============================================================================

async def bloggy_error_handler(request: Request, exc: BloggyError):
    """Render a BloggyError as the standard JSON body"""
    if exc.status_code >= 500:
        logger.error("request_failed",
                     path=request.url.path,
                     error_type=type(exc).__name__,
                     error=str(exc))
    else:
        logger.info("request_rejected",
                    path=request.url.path,
                    status_code=exc.status_code,
                    error=str(exc))
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


def format_validation_error(error: dict) -> str:
    """Turn one pydantic error entry into a client facing message"""
    # messages raised by our own validators are already client facing
    if error.get("type") == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"])
    location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
    field = ".".join(location)
    return f"{field}: {error.get('msg')}" if field else str(error.get("msg"))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Map FastAPI request validation to the 400 errors body"""
    errors = [format_validation_error(error) for error in exc.errors()]
    logger.info("request_invalid", path=request.url.path, errors=errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"statusCode": status.HTTP_400_BAD_REQUEST, "errors": errors},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("internal_server_error",
                 path=request.url.path,
                 error=str(exc),
                 exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"statusCode": 500, "message": "Internal Server Error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BloggyError, bloggy_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
