"""
Command endpoints
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from fleetsync.api.deps import get_console
from fleetsync.commands.actions import COMMANDS
from fleetsync.commands.dispatcher import DispatchOutcome, DispatchStatus
from fleetsync.console import FleetConsole
from fleetsync.schemas.api import CommandRequest, DispatchResponse, RenameRequest

router = APIRouter()

_STATUS_CODES = {
    DispatchStatus.SUCCEEDED: 202,
    DispatchStatus.NO_SELECTION: 400,
    DispatchStatus.INVALID_INPUT: 400,
    DispatchStatus.BUSY: 409,
    DispatchStatus.FAILED: 502,
}


def _respond(outcome: DispatchOutcome) -> JSONResponse:
    body = DispatchResponse(
        status=outcome.status,
        label=outcome.label,
        device_count=outcome.device_count,
        error=outcome.error,
    )
    return JSONResponse(
        status_code=_STATUS_CODES[outcome.status],
        content=body.model_dump(mode="json", by_alias=True),
    )


@router.get("/commands")
async def list_commands():
    """Names accepted by POST /commands/{name}"""
    return {"commands": sorted(COMMANDS)}


@router.post("/commands/{name}", response_model=DispatchResponse)
async def run_command(
    name: str,
    request: CommandRequest,
    console: FleetConsole = Depends(get_console)
):
    """Dispatch one command to the given devices or the current selection"""
    if name not in COMMANDS:
        raise HTTPException(status_code=404, detail=f"Unknown command: {name}")

    outcome = await console.commands.run(name, request.value, request.device_ids)
    return _respond(outcome)


@router.post("/devices/{device_id}/name", response_model=DispatchResponse)
async def rename_device(
    device_id: str,
    request: RenameRequest,
    console: FleetConsole = Depends(get_console)
):
    """Set or clear the display name of one device"""
    if device_id not in console.store:
        raise HTTPException(status_code=404, detail="Device not found")

    outcome = await console.commands.rename(device_id, request.name)
    return _respond(outcome)
