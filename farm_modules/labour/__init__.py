"""
Labour Module (``farm_modules.labour``).

Labour work logs accrue wages: each posted log expenses ``units * rate``
against WAGES_PAYABLE and raises the worker's payable balance.
"""

from farm_modules.labour.orm import LabWorkerBalance, LabWorkLog, RateBasis, Worker
from farm_modules.labour.service import (
    LABOUR_WORK_LOG,
    LabourPostingService,
    adjust_worker_balance,
    worker_balance,
)

__all__ = [
    "LABOUR_WORK_LOG",
    "LabWorkLog",
    "LabWorkerBalance",
    "LabourPostingService",
    "RateBasis",
    "Worker",
    "adjust_worker_balance",
    "worker_balance",
]
