"""Sales forecasting and replenishment planning for a single SKU"""

__version__ = "0.1.0"

from .adjustments import (
    apply_adjustments,
    attach_simulation,
    build_forecast_series,
    build_override_table,
    read_override_table,
    resolve_base_forecast,
)
from .aggregator import group_by_year
from .demand_planner import DemandPlanner, compute_baseline
from .excel_generator import ExcelGenerator
from .inventory_manager import InventoryManager, build_kpi_snapshot
from .models import (
    InTransitBatch,
    KPISnapshot,
    MonthlyRecord,
    SimulationDayPoint,
    StrategyConfig,
    SupplierInfo,
    batches_from_frame,
)
from .persistence import PersistenceError, StrategyStore

__all__ = [
    "DemandPlanner",
    "compute_baseline",
    "apply_adjustments",
    "resolve_base_forecast",
    "build_forecast_series",
    "attach_simulation",
    "build_override_table",
    "read_override_table",
    "InventoryManager",
    "build_kpi_snapshot",
    "group_by_year",
    "ExcelGenerator",
    "StrategyStore",
    "PersistenceError",
    "MonthlyRecord",
    "StrategyConfig",
    "SupplierInfo",
    "InTransitBatch",
    "batches_from_frame",
    "SimulationDayPoint",
    "KPISnapshot",
]
