from helmsman.application.dtos.request_dtos import (
    CheckSLORequest,
    FailoverRequest,
    RollbackTrafficRequest,
    TrafficShiftRequest,
)

__all__ = [
    "CheckSLORequest",
    "FailoverRequest",
    "RollbackTrafficRequest",
    "TrafficShiftRequest",
]
