"""Turns loosely filled invoice payloads into complete invoice drafts.

Everything here is a pure function of its inputs apart from the product
lookup, which goes through the catalog passed in by the caller.
"""
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from models import (
    ITEM_TAX_FIELDS,
    SINGLE_ITEM_FIELDS,
    InvoiceItemPayload,
    InvoicePayload,
    InvoiceStatus,
)


@dataclass(frozen=True)
class AccountContext:
    account_id: int
    invoice_design_id: int
    timezone: str = "UTC"
    currency_code: str = "USD"

    @classmethod
    def for_account(cls, account) -> "AccountContext":
        return cls(
            account_id=account.id,
            invoice_design_id=account.invoice_design_id,
            timezone=account.timezone or "UTC",
            currency_code=account.currency_code or "USD",
        )

    def localize(self, client) -> "AccountContext":
        if client is not None and client.currency_code:
            return replace(self, currency_code=client.currency_code)
        return self

    def today(self) -> date:
        return datetime.now(ZoneInfo(self.timezone)).date()


@dataclass
class LineItemDraft:
    product_key: str
    notes: str
    cost: Decimal
    qty: Decimal
    tax_name1: Optional[str] = None
    tax_rate1: Optional[Decimal] = None
    tax_name2: Optional[str] = None
    tax_rate2: Optional[Decimal] = None

    def as_payload(self) -> InvoiceItemPayload:
        return InvoiceItemPayload(**self.__dict__)


@dataclass
class InvoiceDraft:
    invoice_status_id: int
    invoice_date: date
    due_date: Optional[date]
    discount: Decimal
    is_amount_discount: bool
    terms: str
    invoice_footer: str
    public_notes: str
    po_number: str
    invoice_design_id: int
    custom_value1: Decimal
    custom_value2: Decimal
    custom_taxes1: bool
    custom_taxes2: bool
    partial: Decimal
    invoice_items: List[LineItemDraft] = field(default_factory=list)
    is_quote: bool = False
    invoice_number: Optional[str] = None
    tax_name1: Optional[str] = None
    tax_rate1: Optional[Decimal] = None
    tax_name2: Optional[str] = None
    tax_rate2: Optional[Decimal] = None
    client_id: Optional[int] = None


@dataclass(frozen=True)
class SingleImplicitItem:
    fields: InvoiceItemPayload


@dataclass(frozen=True)
class ExplicitItemList:
    items: List[InvoiceItemPayload]


LineItemMode = Union[SingleImplicitItem, ExplicitItemList]

ITEM_DEFAULTS = {
    "cost": Decimal("0"),
    "product_key": "",
    "notes": "",
    "qty": Decimal("1"),
}


def _is_blank(value) -> bool:
    return value is None or value == "" or value == 0


def invoice_defaults(context: AccountContext) -> Dict[str, Any]:
    return {
        "discount": Decimal("0"),
        "is_amount_discount": False,
        "terms": "",
        "invoice_footer": "",
        "public_notes": "",
        "po_number": "",
        "invoice_design_id": context.invoice_design_id,
        "custom_value1": Decimal("0"),
        "custom_value2": Decimal("0"),
        "custom_taxes1": False,
        "custom_taxes2": False,
        "partial": Decimal("0"),
    }


def line_item_mode(payload: InvoicePayload) -> LineItemMode:
    """Decide once whether the payload describes one implicit item or a list.

    Top-level item fields win; a list supplied next to them is ignored.
    """
    if any(getattr(payload, name) is not None for name in SINGLE_ITEM_FIELDS):
        fields = {name: getattr(payload, name) for name in SINGLE_ITEM_FIELDS + ITEM_TAX_FIELDS}
        return SingleImplicitItem(InvoiceItemPayload(**fields))
    return ExplicitItemList(list(payload.invoice_items or []))


def normalize_item(item: InvoiceItemPayload, catalog, context: AccountContext) -> LineItemDraft:
    values = item.model_dump()

    # with only the product key given, pull the cost and notes from the catalog
    if not _is_blank(values["product_key"]) and _is_blank(values["cost"]) and _is_blank(values["notes"]):
        product = catalog.find_by_key(context.account_id, values["product_key"])
        if product:
            if _is_blank(values["cost"]):
                values["cost"] = product.cost
            if _is_blank(values["notes"]):
                values["notes"] = product.notes

    for key, default in ITEM_DEFAULTS.items():
        if values[key] is None:
            values[key] = default

    return LineItemDraft(**values)


def normalize_items(mode: LineItemMode, catalog, context: AccountContext) -> List[LineItemDraft]:
    if isinstance(mode, SingleImplicitItem):
        item = normalize_item(mode.fields, catalog, context)
        # the invoice level tax fields carry this charge already
        for name in ITEM_TAX_FIELDS:
            setattr(item, name, None)
        return [item]
    if not mode.items:
        # an invoice always carries at least one line
        return [normalize_item(InvoiceItemPayload(), catalog, context)]
    return [normalize_item(item, catalog, context) for item in mode.items]


def normalize_status(status_id: Optional[int]) -> int:
    if not status_id:
        return int(InvoiceStatus.DRAFT)
    return status_id


def normalize_invoice(payload: InvoicePayload, catalog, context: AccountContext) -> InvoiceDraft:
    values = {}
    for key, default in invoice_defaults(context).items():
        value = getattr(payload, key)
        values[key] = default if value is None else value

    return InvoiceDraft(
        invoice_status_id=normalize_status(payload.invoice_status_id),
        invoice_date=payload.invoice_date or context.today(),
        # never invent a due date
        due_date=payload.due_date,
        invoice_items=normalize_items(line_item_mode(payload), catalog, context),
        is_quote=bool(payload.is_quote),
        invoice_number=payload.invoice_number,
        tax_name1=payload.tax_name1,
        tax_rate1=payload.tax_rate1,
        tax_name2=payload.tax_name2,
        tax_rate2=payload.tax_rate2,
        **values,
    )


def normalize_changes(payload: InvoicePayload, catalog, context: AccountContext) -> Dict[str, Any]:
    """Collect the invoice fields an update payload actually carries.

    Unlike `normalize_invoice` no defaults are applied, so stored values
    survive a partial update. Line items are replaced only when the
    payload describes some.
    """
    changes = {}
    for key in list(invoice_defaults(context)) + ["invoice_date", "due_date", "invoice_number"] + list(ITEM_TAX_FIELDS):
        value = getattr(payload, key)
        if value is not None:
            changes[key] = value

    if payload.invoice_status_id is not None:
        changes["invoice_status_id"] = normalize_status(payload.invoice_status_id)

    mode = line_item_mode(payload)
    if isinstance(mode, SingleImplicitItem) or payload.invoice_items is not None:
        changes["invoice_items"] = normalize_items(mode, catalog, context)

    return changes
