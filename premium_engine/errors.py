import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from premium_engine.result import ErrorKind, ServiceError

console = logging.getLogger("premium_engine.errors")

_KIND_BY_STATUS = {
    400: ErrorKind.VALIDATION_ERROR,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
}


def error_body(code: str, message: str, details=None) -> dict:
    return {"error": {"code": code, "message": message, "details": details}}


def _format_validation_errors(exc: RequestValidationError) -> tuple[str, list]:
    errors = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.append({"field": location, "message": err.get("msg")})
    message = "; ".join(f"{e['field']}: {e['message']}" if e["field"] else e["message"] for e in errors)
    return f"Validation error: {message}", errors


def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        err = exc.err
        if err.kind is ErrorKind.INTERNAL_ERROR:
            console.error("%s %s failed: %s", request.method, request.url.path, err.message)
        return JSONResponse(status_code=err.status_code, content={"error": err.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message, errors = _format_validation_errors(exc)
        return JSONResponse(
            status_code=400,
            content=error_body(ErrorKind.VALIDATION_ERROR.value, message, {"errors": errors}),
        )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        kind = _KIND_BY_STATUS.get(exc.status_code, ErrorKind.INTERNAL_ERROR)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(kind.value, str(exc.detail)),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        console.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_body(ErrorKind.INTERNAL_ERROR.value, "Internal server error"),
        )
