"""HTTP mapping for ordering errors.

Protean's own handlers cover ValidationError (400) and ObjectNotFoundError
(404). The ordering-specific errors are layered on top; Starlette resolves
handlers by exception MRO, so InvalidTransitionError maps to 409 even though
it is a ValidationError.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.errors import (
    EmptySelectionError,
    ForbiddenError,
    InvalidTransitionError,
    OutOfStockError,
    StockRestoreError,
)
from payments.gateway import GatewayError


async def _out_of_stock(request: Request, exc: OutOfStockError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": exc.message,
            "product_id": exc.product_id,
            "requested": exc.requested,
            "available": exc.available,
        },
    )


async def _invalid_transition(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": exc.messages})


async def _empty_selection(request: Request, exc: EmptySelectionError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": exc.messages})


async def _forbidden(request: Request, exc: ForbiddenError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"error": exc.message})


async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"error": exc.message})


async def _stock_restore(request: Request, exc: StockRestoreError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(OutOfStockError, _out_of_stock)
    app.add_exception_handler(InvalidTransitionError, _invalid_transition)
    app.add_exception_handler(EmptySelectionError, _empty_selection)
    app.add_exception_handler(ForbiddenError, _forbidden)
    app.add_exception_handler(GatewayError, _gateway_error)
    app.add_exception_handler(StockRestoreError, _stock_restore)
