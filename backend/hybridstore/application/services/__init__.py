from .placement import CapacityAwarePlacementPolicy, DefaultPlacementPolicy
from .record_events import RecordEventBus, format_sse
from .dual_write_coordinator import DualWriteCoordinator
from .reconciler import OptimisticReconciler
from .orphan_sweeper import OrphanSweeper, SweepReport
from .record_service import RecordService

__all__ = [
    "CapacityAwarePlacementPolicy",
    "DefaultPlacementPolicy",
    "RecordEventBus",
    "format_sse",
    "DualWriteCoordinator",
    "OptimisticReconciler",
    "OrphanSweeper",
    "SweepReport",
    "RecordService",
]
