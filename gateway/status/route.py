from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from gateway.context import GatewayContext, format_duration, get_context
from gateway.models import StatusResponse

router = APIRouter()


@router.api_route("/status", methods=["GET", "HEAD"])
async def status(context: GatewayContext = Depends(get_context)):
    """Report how long this gateway process has been running."""
    payload = StatusResponse(uptime=format_duration(context.uptime()))
    return JSONResponse(
        content=payload.model_dump(),
        headers={"x-server": context.hostname},
    )
