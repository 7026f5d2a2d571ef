"""File-backed strategy storage, audit log and purchase-order drafts."""

import json
import logging
import os
from datetime import date, datetime
from pathlib import Path

import pandas as pd

from .inventory_manager import InventoryManager
from .models import StrategyConfig

logger = logging.getLogger(__name__)

AUDIT_COLUMNS = ["created_at", "sku", "action_type", "content", "operator", "status"]
PURCHASE_ORDER_COLUMNS = ["created_at", "sku", "product_name", "quantity", "order_date", "supplier_info", "status"]


class PersistenceError(RuntimeError):
    """A strategy, audit or purchase-order file could not be read or written; no retry is attempted."""

    def __init__(self, operation: str, sku: str, cause: Exception | None = None):
        self.operation = operation
        self.sku = sku
        super().__init__(f"Failed to {operation} for SKU '{sku}': {cause}")


def _safe_name(sku: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in str(sku))


def build_strategy_change_description(old: StrategyConfig, new: StrategyConfig) -> str:
    """One-line summary of the fields that changed between two configs."""
    labels = {
        "benchmark_type": "benchmark",
        "ratio_adjustment": "ratio adjustment %",
        "safety_stock_months": "safety stock months",
        "replenishment_mode": "replenishment mode",
        "eoq": "EOQ",
    }
    changes = [
        f"{label} {getattr(old, field)} -> {getattr(new, field)}"
        for field, label in labels.items()
        if getattr(old, field) != getattr(new, field)
    ]
    if old.forecast_overrides != new.forecast_overrides:
        changes.append(f"{len(new.forecast_overrides)} manual override(s)")
    if old.calculated_forecasts != new.calculated_forecasts:
        changes.append(f"{len(new.calculated_forecasts)} calculated month(s)")
    if old.supplier_info != new.supplier_info:
        changes.append("supplier info")
    return "Updated strategy: " + (", ".join(changes) if changes else "no field changes")


class StrategyStore:
    """
    Stores one strategy JSON file per SKU under `base_dir`.

    Every save replaces the whole object (last write wins) and appends a row
    to `audit_log.csv`. Purchase-order drafts go to `purchase_orders.csv`.
    """

    def __init__(self, base_dir: str | Path = "data/strategies"):
        self.base_dir = Path(base_dir)
        self.audit_path = self.base_dir / "audit_log.csv"
        self.purchase_order_path = self.base_dir / "purchase_orders.csv"

    def _strategy_path(self, sku: str) -> Path:
        return self.base_dir / f"{_safe_name(sku)}.json"

    def load(self, sku: str) -> StrategyConfig:
        """
        Stored strategy for `sku`, or the default strategy when none was saved.

        An unreadable, corrupt or invalid strategy file raises PersistenceError.
        """
        path = self._strategy_path(sku)
        if not path.exists():
            return StrategyConfig()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            return StrategyConfig.from_dict(data)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError("load strategy", sku, exc) from exc

    def _append_rows(self, path: Path, rows: list[dict], columns: list[str]):
        frame = pd.DataFrame(rows, columns=columns)
        frame.to_csv(path, mode="a", header=not path.exists(), index=False)

    def append_audit(self, sku: str, action_type: str, content: str, operator: str = "system"):
        entry = {
            "created_at": datetime.now().isoformat(timespec="seconds"),
            "sku": sku,
            "action_type": action_type,
            "content": content,
            "operator": operator,
            "status": "APPROVED",
        }
        self._append_rows(self.audit_path, [entry], AUDIT_COLUMNS)

    def replace(self, sku: str, config: StrategyConfig, description: str = "", operator: str = "system") -> StrategyConfig:
        """
        Replace the stored strategy with `config` and log the change.

        Returns the canonical object as read back from storage. A corrupt
        stored strategy is overwritten; any failure raises PersistenceError.
        """
        try:
            previous = self.load(sku)
        except PersistenceError as exc:
            logger.warning("Overwriting unreadable strategy for %s: %s", sku, exc)
            previous = StrategyConfig()
        content = description or build_strategy_change_description(previous, config)
        path = self._strategy_path(sku)
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(json.dumps(config.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, path)
            self.append_audit(sku, "STRATEGY_UPDATE", content, operator)
        except OSError as exc:
            raise PersistenceError("save strategy", sku, exc) from exc

        logger.info("Strategy replaced for %s: %s", sku, content)
        return self.load(sku)

    def logs(self, sku: str) -> list[dict]:
        """Audit entries for `sku`, newest first."""
        if not self.audit_path.exists():
            return []
        try:
            log = pd.read_csv(self.audit_path, dtype={"sku": str})
        except (OSError, ValueError) as exc:
            raise PersistenceError("read audit log", sku, exc) from exc
        log = log[log["sku"] == str(sku)].iloc[::-1]
        log = log.sort_values("created_at", ascending=False, kind="stable")
        return log.fillna("").to_dict("records")

    def create_purchase_order(
        self,
        sku: str,
        product_name: str,
        config: StrategyConfig,
        order_date: date | None = None,
        operator: str = "system",
    ) -> dict:
        """Record a DRAFT purchase order for the strategy's lot size and supplier snapshot."""
        order_date = order_date or date.today()
        quantity = InventoryManager.from_strategy(0, 0, config).purchase_order_quantity()
        supplier = config.supplier_info
        supplier_name = supplier.name if supplier and supplier.name else "Unknown supplier"
        order = {
            "created_at": datetime.now().isoformat(timespec="seconds"),
            "sku": sku,
            "product_name": product_name,
            "quantity": quantity,
            "order_date": order_date.isoformat(),
            "supplier_info": json.dumps(config.to_dict()["supplier_info"] or {}),
            "status": "DRAFT",
        }
        content = f"Created purchase order: suggested quantity {quantity:,.0f}, supplier: {supplier_name}"
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            self._append_rows(self.purchase_order_path, [order], PURCHASE_ORDER_COLUMNS)
            self.append_audit(sku, "PURCHASE_ORDER", content, operator)
        except OSError as exc:
            raise PersistenceError("create purchase order", sku, exc) from exc

        logger.info("Purchase order drafted for %s: %s units", sku, quantity)
        return order
