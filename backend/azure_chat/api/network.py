"""Connectivity reporting endpoints.

A browser front-end forwards ``online``/``offline`` events and Network
Information API changes here so the server-side send gate sees them.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from azure_chat.dependencies import get_monitor
from azure_chat.models.network import NetworkStatus
from azure_chat.network.monitor import ConnectivityMonitor

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=NetworkStatus, response_model_by_alias=True)
async def get_network_status(
    monitor: ConnectivityMonitor = Depends(get_monitor),
) -> NetworkStatus:
    """Return the current connectivity status."""
    return monitor.status


@router.put("", response_model=NetworkStatus, response_model_by_alias=True)
async def report_network_status(
    status: NetworkStatus,
    monitor: ConnectivityMonitor = Depends(get_monitor),
) -> NetworkStatus:
    """Replace the connectivity status with what the client observed."""
    monitor.report(status)
    return monitor.status
