"""Inventory policy (safety stock, ROP, restock timing) and replenishment simulation."""

import logging
from dataclasses import asdict
from datetime import date, timedelta
from math import ceil

import pandas as pd

from .models import KPISnapshot, SimulationDayPoint, StrategyConfig
from .utils import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 365
MEDIUM_RISK_TURNOVER_DAYS = 45


class InventoryManager:
    """Derives reorder policy from current KPIs and simulates stock over a fixed horizon."""

    def __init__(
        self,
        current_stock: float,
        sales_30_days: float,
        in_transit: float = 0,
        safety_stock_months: float = 1.0,
        lead_time_days: int = 30,
        eoq: float = 0,
        min_order_qty: float = 0,
        order_multiple: float | None = None,
        medium_risk_turnover_days: float = MEDIUM_RISK_TURNOVER_DAYS,
    ):
        """
        Initialize inventory manager.

        Args:
            current_stock: Quantity physically in stock
            sales_30_days: Units sold over the last 30 days
            in_transit: Units ordered but not yet received
            safety_stock_months: Buffer expressed in months of average sales
            lead_time_days: Days from order placement to arrival
            eoq: Fixed lot size ordered when stock reaches the reorder point
            min_order_qty: Supplier minimum order quantity
            order_multiple: Optional order quantity multiple (e.g., case pack)
            medium_risk_turnover_days: Turnover below this is at least medium risk
        """
        self.current_stock = float(current_stock or 0)
        self.sales_30_days = float(sales_30_days or 0)
        self.in_transit = float(in_transit or 0)
        self.safety_stock_months = float(safety_stock_months)
        self.lead_time_days = int(lead_time_days)
        self.eoq = float(eoq or 0)
        self.min_order_qty = float(min_order_qty or 0)
        self.order_multiple = order_multiple
        self.medium_risk_turnover_days = medium_risk_turnover_days

    @classmethod
    def from_strategy(
        cls, current_stock: float, sales_30_days: float, config: StrategyConfig, in_transit: float = 0, **kwargs
    ) -> "InventoryManager":
        supplier = config.supplier_info
        return cls(
            current_stock=current_stock,
            sales_30_days=sales_30_days,
            in_transit=in_transit,
            safety_stock_months=config.safety_stock_months,
            lead_time_days=config.lead_time_days,
            eoq=config.eoq,
            min_order_qty=supplier.min_order_qty if supplier else 0,
            order_multiple=supplier.order_unit_qty if supplier else None,
            **kwargs,
        )

    @property
    def daily_sales_rate(self) -> float:
        return self.sales_30_days / 30

    def _apply_order_constraints(self, quantity: float) -> float:
        if quantity <= 0:
            return 0.0

        constrained = max(quantity, self.min_order_qty)
        if self.order_multiple and self.order_multiple > 1:
            constrained = ceil(constrained / self.order_multiple) * self.order_multiple
        return float(constrained)

    def purchase_order_quantity(self) -> float:
        """EOQ raised to the supplier minimum and rounded up to the order multiple."""
        return self._apply_order_constraints(self.eoq)

    def calculate_safety_stock(self) -> int:
        """Safety stock = 30-day sales x safety stock months."""
        return round_half_up(self.sales_30_days * self.safety_stock_months)

    def lead_time_demand(self) -> float:
        return self.daily_sales_rate * self.lead_time_days

    def calculate_reorder_point(self) -> float:
        """
        Reorder point, net of stock already on the way.

        Formula: safety stock + daily sales x lead time - in transit (may be negative)
        """
        return self.calculate_safety_stock() + self.lead_time_demand() - self.in_transit

    def calculate_turnover_days(self) -> float | None:
        """Days current stock lasts at the current sales rate; None when nothing is selling."""
        if self.daily_sales_rate <= 0:
            return None
        return self.current_stock / self.daily_sales_rate

    def classify_stockout_risk(self, turnover_days: float | None = None) -> str:
        if turnover_days is None:
            turnover_days = self.calculate_turnover_days()
        if turnover_days is None:
            return "Low"
        if turnover_days < self.lead_time_days:
            return "High"
        if turnover_days < self.medium_risk_turnover_days:
            return "Medium"
        return "Low"

    def suggest_restock(self, today: date | None = None) -> dict:
        """
        Suggested restock date and quantity.

        Days left = (in stock + in transit - trigger level) / daily sales,
        where the trigger level is safety stock plus lead-time demand.
        """
        today = today or date.today()
        trigger_level = self.calculate_safety_stock() + self.lead_time_demand()
        available = self.current_stock + self.in_transit

        if self.daily_sales_rate <= 0:
            days_left = None
            restock_now = available < trigger_level
            restock_date = today if restock_now else None
        else:
            days_left = (available - trigger_level) / self.daily_sales_rate
            restock_now = days_left <= 0
            restock_date = today if restock_now else today + timedelta(days=ceil(days_left))

        return {
            "trigger_level": trigger_level,
            "days_left": days_left,
            "restock_immediately": restock_now,
            "suggested_restock_date": restock_date,
            "suggested_restock_qty": self.eoq,
            "purchase_order_qty": self.purchase_order_quantity(),
        }

    def get_stock_status(self, today: date | None = None) -> dict:
        """Get current policy figures and restock advice."""
        turnover_days = self.calculate_turnover_days()
        return {
            "current_stock": self.current_stock,
            "in_transit": self.in_transit,
            "daily_sales_rate": self.daily_sales_rate,
            "safety_stock": self.calculate_safety_stock(),
            "reorder_point": self.calculate_reorder_point(),
            "turnover_days": turnover_days,
            "stockout_risk": self.classify_stockout_risk(turnover_days),
            **self.suggest_restock(today),
        }

    def simulate(
        self, in_transit_batches=(), start_date: date | None = None, days: int = DEFAULT_HORIZON_DAYS
    ) -> list[SimulationDayPoint]:
        """
        Day-by-day stock projection.

        Each day: receive batches due that day, consume the daily sales rate,
        and when stock is at or below the reorder point add one EOQ lot
        immediately. The reorder point and safety stock lines are fixed at
        the start of the run even though in-transit stock arrives during it.
        """
        if days < 0:
            raise ValueError(f"Simulation horizon must be non-negative, got {days}")

        start_date = start_date or date.today()
        daily_sales = self.daily_sales_rate
        safety_stock = self.calculate_safety_stock()
        rop = self.calculate_reorder_point()

        arrivals = {}
        for batch in in_transit_batches:
            arrivals[batch.arrival_date] = arrivals.get(batch.arrival_date, 0.0) + float(batch.quantity)

        stock = self.current_stock
        points = []
        for offset in range(days):
            day = start_date + timedelta(days=offset)
            inbound = arrivals.get(day, 0.0)
            stock += inbound
            stock -= daily_sales

            is_restock = False
            if daily_sales > 0 and stock <= rop:
                stock += self.eoq
                is_restock = True
                logger.debug("Restock triggered on %s (stock %.1f <= ROP %.1f)", day, stock - self.eoq, rop)

            points.append(
                SimulationDayPoint(
                    date=day,
                    stock=max(0, round_half_up(stock)),
                    rop=round_half_up(rop),
                    safety_stock=safety_stock,
                    is_restock=is_restock,
                    inbound=inbound,
                )
            )
        return points

    def simulation_frame(
        self, in_transit_batches=(), start_date: date | None = None, days: int = DEFAULT_HORIZON_DAYS
    ) -> pd.DataFrame:
        """Simulation output as a DataFrame with one row per day."""
        points = self.simulate(in_transit_batches, start_date=start_date, days=days)
        return pd.DataFrame(
            [asdict(point) for point in points],
            columns=["date", "stock", "rop", "safety_stock", "is_restock", "inbound"],
        )


def build_kpi_snapshot(
    in_stock: float,
    batches,
    sales_30_days: float,
    lead_time_days: int,
    medium_risk_turnover_days: float = MEDIUM_RISK_TURNOVER_DAYS,
) -> KPISnapshot:
    """KPI card figures; in-transit quantity is the sum of pending batches."""
    in_transit = float(sum(batch.quantity for batch in batches))
    manager = InventoryManager(
        current_stock=in_stock,
        sales_30_days=sales_30_days,
        in_transit=in_transit,
        lead_time_days=lead_time_days,
        medium_risk_turnover_days=medium_risk_turnover_days,
    )
    turnover_days = manager.calculate_turnover_days()
    return KPISnapshot(
        in_stock=float(in_stock or 0),
        in_transit=in_transit,
        sales_30_days=float(sales_30_days or 0),
        turnover_days=None if turnover_days is None else round_half_up(turnover_days),
        stockout_risk=manager.classify_stockout_risk(turnover_days),
    )
