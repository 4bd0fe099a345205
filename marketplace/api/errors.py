# marketplace/api/errors.py
"""
Maps core exceptions to JSON responses.

Usage:
    from marketplace.api.errors import setup_error_handlers

    app = FastAPI()
    setup_error_handlers(app)
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import MarketplaceError
from ..utils import logger


def create_error_response(error: MarketplaceError, request: Request = None) -> JSONResponse:
    status_code = error.status_code
    content = {"status": "fail" if 400 <= status_code < 500 else "error", **error.to_dict()}
    if request is not None:
        content["path"] = str(request.url.path)
        content["method"] = request.method
    return JSONResponse(status_code=status_code, content=content)


async def handle_marketplace_error(request: Request, exc: MarketplaceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc)
    else:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return create_error_response(exc, request)


def setup_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, handle_marketplace_error)
