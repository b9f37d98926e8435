"""Small response helpers shared by the routes and exception handlers."""

from http import HTTPStatus

from fastapi.responses import HTMLResponse, PlainTextResponse


def status_response(status_code: int) -> PlainTextResponse:
    """Respond with a bare status code; the body is the reason phrase."""
    return PlainTextResponse(HTTPStatus(status_code).phrase, status_code=status_code)


def not_found_response(url: str) -> HTMLResponse:
    """404 page naming the resource that was asked for."""
    return HTMLResponse(
        f"<h1>Unable to find the requested resource ({url})!</h1>",
        status_code=404,
    )
