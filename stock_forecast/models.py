"""Value objects exchanged between the forecasting, policy and persistence modules."""

import json
import logging
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import date
from types import MappingProxyType
from typing import Mapping, Optional

import pandas as pd

from .utils import to_period

logger = logging.getLogger(__name__)

LEAD_TIME_DAYS = {"fast": 7, "economic": 30}
BENCHMARK_TYPES = ("mom", "yoy")
MOM_RANGES = (3, 6, 12)
YOY_RANGES = (1, 2, 3)
SAFETY_STOCK_MONTHS_BOUNDS = (0.5, 12.0)

HISTORY_COLUMNS = [
    "month",
    "type",
    "actual_qty",
    "actual_amount",
    "actual_customer_count",
    "forecast_qty",
    "forecast_amount",
    "forecast_customer_count",
]


@dataclass(frozen=True)
class MonthlyRecord:
    """One month of history for a SKU, as delivered by the sales backend."""

    month: str
    actual_qty: float = 0.0
    actual_amount: float = 0.0
    actual_customer_count: float = 0.0
    forecast_qty: float = 0.0
    forecast_amount: float = 0.0
    forecast_customer_count: float = 0.0
    type: str = "past"


def build_monthly_frame(records) -> pd.DataFrame:
    """Turn MonthlyRecord objects into the history frame the planner loads."""
    rows = [asdict(record) for record in records]
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


@dataclass(frozen=True)
class SupplierInfo:
    name: str = ""
    code: str = ""
    rating: float = 0.0
    price: float = 0.0
    min_order_qty: float = 0.0
    order_unit_qty: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "name", str(self.name or ""))
        object.__setattr__(self, "code", str(self.code or ""))
        for name in ("rating", "price", "min_order_qty"):
            object.__setattr__(self, name, float(getattr(self, name) or 0))
        object.__setattr__(self, "order_unit_qty", float(self.order_unit_qty or 1))

    @classmethod
    def from_dict(cls, data: dict | None) -> Optional["SupplierInfo"]:
        if not data:
            return None
        return cls(
            name=data.get("name", ""),
            code=data.get("code", ""),
            rating=data.get("rating"),
            price=data.get("price"),
            min_order_qty=data.get("min_order_qty"),
            order_unit_qty=data.get("order_unit_qty"),
        )


SLIDER_FIELDS = ("mom_time_sliders", "mom_weight_sliders", "yoy_weight_sliders")
MONTH_MAP_FIELDS = ("forecast_overrides", "calculated_forecasts")


def _parse_sliders(value, default):
    # Older saves stored slider pairs as JSON text.
    if isinstance(value, str):
        value = json.loads(value)
    if value is None:
        return default
    return tuple(float(v) for v in value)


def _parse_month_map(value) -> dict:
    if isinstance(value, str):
        value = json.loads(value)
    if not value:
        return {}
    return {str(k): float(v) for k, v in value.items() if v is not None}


def _canonical_pair(value):
    try:
        return tuple(float(v) for v in value)
    except (TypeError, ValueError):
        # left for normalize_slider_pair to replace with the default
        return value


@dataclass(frozen=True)
class StrategyConfig:
    """
    Per-SKU forecast and replenishment strategy.

    Replaced as a whole on save; callers derive a modified copy with
    `with_changes` instead of mutating fields. Numbers are stored in one
    canonical type each and the month maps are read-only views over private
    copies, so two configs never share mutable state.
    """

    safety_stock_months: float = 0.6
    replenishment_mode: str = "economic"
    eoq: int = 1500
    benchmark_type: str = "mom"
    mom_range: int = 6
    mom_time_sliders: tuple = (33.0, 66.0)
    mom_weight_sliders: tuple = (60.0, 90.0)
    yoy_range: int = 3
    yoy_weight_sliders: tuple = (33.0, 66.0)
    ratio_adjustment: float = 0.0
    forecast_overrides: Mapping = field(default_factory=dict)
    calculated_forecasts: Mapping = field(default_factory=dict)
    supplier_info: Optional[SupplierInfo] = None
    start_year_month: Optional[str] = None
    forecast_year_month: Optional[str] = None

    def __post_init__(self):
        if self.benchmark_type not in BENCHMARK_TYPES:
            raise ValueError(f"benchmark_type must be one of {BENCHMARK_TYPES}, got '{self.benchmark_type}'")
        if self.replenishment_mode not in LEAD_TIME_DAYS:
            raise ValueError(
                f"replenishment_mode must be one of {tuple(LEAD_TIME_DAYS)}, got '{self.replenishment_mode}'"
            )
        if self.mom_range not in MOM_RANGES:
            raise ValueError(f"mom_range must be one of {MOM_RANGES}, got {self.mom_range}")
        if self.yoy_range not in YOY_RANGES:
            raise ValueError(f"yoy_range must be one of {YOY_RANGES}, got {self.yoy_range}")
        for key in (self.start_year_month, self.forecast_year_month):
            if key is not None:
                to_period(key)

        object.__setattr__(self, "safety_stock_months", float(self.safety_stock_months))
        object.__setattr__(self, "eoq", int(self.eoq or 0))
        object.__setattr__(self, "mom_range", int(self.mom_range))
        object.__setattr__(self, "yoy_range", int(self.yoy_range))
        object.__setattr__(self, "ratio_adjustment", float(self.ratio_adjustment or 0))
        for name in SLIDER_FIELDS:
            object.__setattr__(self, name, _canonical_pair(getattr(self, name)))
        for name in MONTH_MAP_FIELDS:
            values = {str(k): float(v) for k, v in (getattr(self, name) or {}).items() if v is not None}
            object.__setattr__(self, name, MappingProxyType(values))

    @property
    def lead_time_days(self) -> int:
        return LEAD_TIME_DAYS[self.replenishment_mode]

    def with_changes(self, **changes) -> "StrategyConfig":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        for key in SLIDER_FIELDS:
            data[key] = list(data[key])
        for key in MONTH_MAP_FIELDS:
            data[key] = dict(data[key])
        data["supplier_info"] = asdict(self.supplier_info) if self.supplier_info else None
        return data

    def cache_key(self) -> str:
        """Stable text form, usable together with a series version as a memo key."""
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict) -> "StrategyConfig":
        defaults = cls()
        low, high = SAFETY_STOCK_MONTHS_BOUNDS
        safety_months = float(data.get("safety_stock_months", defaults.safety_stock_months))
        return cls(
            safety_stock_months=min(high, max(low, safety_months)),
            replenishment_mode=data.get("replenishment_mode") or defaults.replenishment_mode,
            eoq=int(data.get("eoq", defaults.eoq) or 0),
            benchmark_type=data.get("benchmark_type") or defaults.benchmark_type,
            mom_range=int(data.get("mom_range") or defaults.mom_range),
            mom_time_sliders=_parse_sliders(data.get("mom_time_sliders"), defaults.mom_time_sliders),
            mom_weight_sliders=_parse_sliders(data.get("mom_weight_sliders"), defaults.mom_weight_sliders),
            yoy_range=int(data.get("yoy_range") or defaults.yoy_range),
            yoy_weight_sliders=_parse_sliders(data.get("yoy_weight_sliders"), defaults.yoy_weight_sliders),
            ratio_adjustment=float(data.get("ratio_adjustment") or 0),
            forecast_overrides=_parse_month_map(data.get("forecast_overrides")),
            calculated_forecasts=_parse_month_map(data.get("calculated_forecasts")),
            supplier_info=SupplierInfo.from_dict(data.get("supplier_info")),
            start_year_month=data.get("start_year_month"),
            forecast_year_month=data.get("forecast_year_month"),
        )


@dataclass(frozen=True)
class InTransitBatch:
    id: str
    arrival_date: date
    quantity: float
    is_overdue: bool = False
    overdue_days: int = 0

    def __post_init__(self):
        # datetimes and timestamps would never match the simulator's day keys
        object.__setattr__(self, "arrival_date", pd.Timestamp(self.arrival_date).date())
        object.__setattr__(self, "quantity", float(self.quantity or 0))

    @classmethod
    def from_entry(cls, batch_id, arrival_date, quantity, today: date | None = None) -> "InTransitBatch":
        """Build a batch from a pending procurement entry, deriving the overdue fields."""
        today = today or date.today()
        arrival = pd.Timestamp(arrival_date).date()
        overdue_days = max(0, (today - arrival).days)
        return cls(
            id=str(batch_id),
            arrival_date=arrival,
            quantity=quantity,
            is_overdue=overdue_days > 0,
            overdue_days=overdue_days,
        )


BATCH_COLUMNS = {"id", "arrival_date", "quantity"}


def batches_from_frame(raw: pd.DataFrame | None, today: date | None = None, sku: str | None = None) -> list:
    """
    Pending in-transit batches from a procurement table.

    Required columns: id, arrival_date, quantity. Rows for other SKUs are
    dropped when the table has a `sku` column; rows with an unreadable
    arrival date are skipped with a warning.
    """
    if raw is None or raw.empty:
        return []

    if not BATCH_COLUMNS.issubset(raw.columns):
        raise ValueError(
            f"In-transit file must contain columns: {sorted(BATCH_COLUMNS)}. Found: {list(raw.columns)}"
        )
    if sku is not None and "sku" in raw.columns:
        raw = raw[raw["sku"].astype(str) == str(sku)]

    prepared = raw.copy()
    prepared["arrival_date"] = pd.to_datetime(prepared["arrival_date"], errors="coerce")
    prepared["quantity"] = pd.to_numeric(prepared["quantity"], errors="coerce").fillna(0.0)
    skipped = int(prepared["arrival_date"].isna().sum())
    if skipped:
        logger.warning("Skipped %d in-transit row(s) with an unreadable arrival date", skipped)
    prepared = prepared.dropna(subset=["arrival_date"])

    return [
        InTransitBatch.from_entry(row["id"], row["arrival_date"], row["quantity"], today=today)
        for _, row in prepared.iterrows()
    ]


@dataclass(frozen=True)
class SimulationDayPoint:
    date: date
    stock: int
    rop: int
    safety_stock: int
    is_restock: bool
    inbound: float


@dataclass(frozen=True)
class KPISnapshot:
    in_stock: float
    in_transit: float
    sales_30_days: float
    turnover_days: Optional[int]
    stockout_risk: str
