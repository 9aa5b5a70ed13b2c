"""Render `CheckoutError`s as JSON with their HTTP status."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from checkout.errors import CheckoutError


async def checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:  # noqa: ARG001
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_checkout_exception_handlers(app: FastAPI) -> None:
    """Protean's handlers for validation errors plus the checkout taxonomy."""
    register_exception_handlers(app)
    app.add_exception_handler(CheckoutError, checkout_error_handler)
