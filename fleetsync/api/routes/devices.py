"""
Device list and view state endpoints
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from fleetsync.api.deps import get_console
from fleetsync.console import FleetConsole
from fleetsync.schemas.api import (
    DeviceListResponse,
    ViewState,
    ViewUpdate,
)
from fleetsync.schemas.device import DeviceState
from fleetsync.store.device_store import DeviceStore, StatusFilter
from fleetsync.store.sorting import SortDirection, SortKey, SortState

logger = structlog.get_logger(__name__)
router = APIRouter()


def _view(store: DeviceStore) -> ViewState:
    return ViewState(
        query=store.search_query,
        status=store.status_filter,
        sort_key=store.sort_state.key,
        sort_direction=store.sort_state.direction,
    )


@router.get("/devices", response_model=DeviceListResponse)
async def get_devices(
    q: Optional[str] = Query(None, description="Search text; defaults to the active query"),
    status: Optional[StatusFilter] = Query(None),
    sort: Optional[SortKey] = Query(None),
    direction: SortDirection = Query(SortDirection.ASC),
    console: FleetConsole = Depends(get_console)
):
    """Filtered and sorted device list"""
    store = console.store
    sort_state = SortState(sort, direction) if sort is not None else None
    devices = store.visible_devices(q, status, sort_state)

    return DeviceListResponse(
        devices=devices,
        total=len(devices),
        selected_ids=store.selected_ids(),
        view=_view(store),
    )


@router.get("/devices/{device_id}", response_model=DeviceState)
async def get_device(device_id: str, console: FleetConsole = Depends(get_console)):
    """Get a specific device by id"""
    device = console.store.get(device_id)
    if device is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return device


@router.post("/devices/refresh")
async def refresh_devices(console: FleetConsole = Depends(get_console)):
    """Reload the full device listing from the agent"""
    if not await console.synchronizer.refresh():
        raise HTTPException(status_code=502, detail="Failed to load devices")
    await console.synchronizer.drain()
    logger.info("Device listing refreshed via API", devices=len(console.store))
    return {"devices": len(console.store)}


@router.get("/view", response_model=ViewState)
async def get_view(console: FleetConsole = Depends(get_console)):
    return _view(console.store)


@router.put("/view", response_model=ViewState)
async def update_view(update: ViewUpdate, console: FleetConsole = Depends(get_console)):
    """Set the active search query and / or status filter"""
    store = console.store
    if update.query is not None:
        store.set_search_query(update.query)
    if update.status is not None:
        store.set_status_filter(update.status)
    return _view(store)


@router.post("/view/sort/{key}", response_model=ViewState)
async def toggle_sort(key: SortKey, console: FleetConsole = Depends(get_console)):
    """Cycle the sort on ``key``: ascending, descending, unsorted"""
    console.store.toggle_sort(key)
    return _view(console.store)
