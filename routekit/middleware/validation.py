"""Request body validation middleware built from pydantic models."""

import json
from collections.abc import Awaitable, Callable
from functools import partial

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from routekit.core.logging import get_logger


logger = get_logger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class ValidationMiddleware(BaseHTTPMiddleware):
    """Reject request bodies that do not validate against ``schema``.

    Only requests with a body-carrying method are checked. Invalid bodies get
    a 400 with ``{"error": "Validation failed", "details": [...]}``.
    """

    def __init__(self, app: ASGIApp, schema: type[BaseModel]) -> None:
        super().__init__(app)
        self.schema = schema

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.method not in BODY_METHODS:
            return await call_next(request)

        body = await request.body()
        try:
            payload = json.loads(body) if body else {}
            self.schema.model_validate(payload)
        except json.JSONDecodeError as e:
            return JSONResponse(
                status_code=400,
                content={
                    "error": "Validation failed",
                    "details": [{"type": "json_invalid", "msg": str(e)}],
                },
            )
        except ValidationError as e:
            logger.debug(
                "request_validation_failed",
                path=request.url.path,
                schema=self.schema.__name__,
                errors=e.error_count(),
                category="middleware",
            )
            return JSONResponse(
                status_code=400,
                content={
                    "error": "Validation failed",
                    "details": e.errors(include_url=False, include_context=False),
                },
            )

        return await call_next(request)


def create_validation_middleware(
    schema: type[BaseModel],
) -> partial[ValidationMiddleware]:
    """Build a validation middleware factory bound to ``schema``."""
    return partial(ValidationMiddleware, schema=schema)
