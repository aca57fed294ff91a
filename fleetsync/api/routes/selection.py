"""
Selection endpoints
"""

from fastapi import APIRouter, Depends, HTTPException

from fleetsync.api.deps import get_console
from fleetsync.console import FleetConsole
from fleetsync.schemas.api import SelectionResponse
from fleetsync.store.device_store import DeviceStore

router = APIRouter()


def _selection(store: DeviceStore) -> SelectionResponse:
    selected = store.selected_ids()
    return SelectionResponse(selected_ids=selected, count=len(selected))


@router.get("/selection", response_model=SelectionResponse)
async def get_selection(console: FleetConsole = Depends(get_console)):
    return _selection(console.store)


@router.post("/selection/all", response_model=SelectionResponse)
async def select_all(console: FleetConsole = Depends(get_console)):
    """Select every device passing the active filters"""
    console.store.select_all()
    return _selection(console.store)


@router.post("/selection/{device_id}", response_model=SelectionResponse)
async def select_device(device_id: str, console: FleetConsole = Depends(get_console)):
    if not console.store.select(device_id):
        raise HTTPException(status_code=404, detail="Device not found")
    return _selection(console.store)


@router.delete("/selection/{device_id}", response_model=SelectionResponse)
async def deselect_device(device_id: str, console: FleetConsole = Depends(get_console)):
    console.store.deselect(device_id)
    return _selection(console.store)


@router.delete("/selection", response_model=SelectionResponse)
async def clear_selection(console: FleetConsole = Depends(get_console)):
    console.store.clear_selection()
    return _selection(console.store)
