"""Distributed uptime callback endpoint."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..errors import MonitorNotFoundError
from ..schemas.distributed import CallbackAck, DistributedCallback
from ..services.distributed import DistributedUptimeService, distributed_uptime_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/distributed-uptime", tags=["distributed-uptime"])


def get_distributed_service() -> DistributedUptimeService:
    return distributed_uptime_service


@router.post("/callback", response_model=CallbackAck)
async def results_callback(
    data: DistributedCallback,
    service: DistributedUptimeService = Depends(get_distributed_service),
):
    """Receive a probe result from the distributed network."""
    try:
        await service.ingest_result(data.id, data.result.model_dump())
    except MonitorNotFoundError:
        raise HTTPException(status_code=404, detail="Monitor not found")
    return CallbackAck(message="OK")
