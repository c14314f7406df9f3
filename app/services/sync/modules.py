"""
Zoho Books modules mirrored locally
"""
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class SyncModule:
    name: str           # cursor key
    path: str           # Zoho list endpoint
    items_key: str      # item list key in the list response
    natural_key: str    # Zoho's own record id, used as upsert key
    table: str          # local table


INVOICES = SyncModule(
    name="invoices",
    path="/invoices",
    items_key="invoices",
    natural_key="invoice_id",
    table="zoho_invoices"
)

PURCHASE_ORDERS = SyncModule(
    name="purchaseorders",
    path="/purchaseorders",
    items_key="purchaseorders",
    natural_key="purchaseorder_id",
    table="zoho_purchaseorders"
)

DEFAULT_MODULES: Tuple[SyncModule, ...] = (INVOICES, PURCHASE_ORDERS)

MODULES_BY_NAME: Dict[str, SyncModule] = {m.name: m for m in DEFAULT_MODULES}
