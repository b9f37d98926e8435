"""
Readiness probe.

Orchestrators poll this endpoint before routing traffic to the process.
The proxy is ready once its HTTP listener is bound; there is no
dependency checking and readiness never degrades afterwards.
"""

from fastapi import APIRouter, status
from fastapi.responses import PlainTextResponse

from ..dependencies import ContextDep
from ..responses import status_response

router = APIRouter()


@router.get(
    "/readiness",
    response_class=PlainTextResponse,
    summary="Readiness check",
    description="Returns 200 once the HTTP listener is bound, 500 before that.",
)
async def readiness(context: ContextDep) -> PlainTextResponse:
    if context.ready:
        return status_response(status.HTTP_200_OK)
    return status_response(status.HTTP_500_INTERNAL_SERVER_ERROR)
