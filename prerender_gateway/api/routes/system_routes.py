"""
System routes: liveness endpoint used by load balancers and container health checks.
"""
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter()


@router.get("/healthz", response_class=PlainTextResponse, summary="Liveness check")
async def healthz() -> str:
    """Always answers `ok`; needs no secret and never touches the browser."""
    return "ok"
