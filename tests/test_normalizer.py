from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from models import InvoiceItemPayload, InvoicePayload, InvoiceStatus
from normalizer import (
    AccountContext,
    ExplicitItemList,
    SingleImplicitItem,
    line_item_mode,
    normalize_changes,
    normalize_invoice,
    normalize_item,
)


class StubCatalog:
    def __init__(self, products):
        self.products = products
        self.lookups = []

    def find_by_key(self, account_id, product_key):
        self.lookups.append(product_key)
        return self.products.get(product_key)


CONTEXT = AccountContext(account_id=1, invoice_design_id=7)
CATALOG_PRODUCTS = {"WIDGET": SimpleNamespace(cost=Decimal("9.99"), notes="Blue widget")}


def catalog():
    return StubCatalog(dict(CATALOG_PRODUCTS))


def test_item_defaults_are_filled():
    item = normalize_item(InvoiceItemPayload(), catalog(), CONTEXT)
    assert item.cost == Decimal("0")
    assert item.qty == Decimal("1")
    assert item.product_key == ""
    assert item.notes == ""


def test_item_loads_cost_and_notes_from_product():
    item = normalize_item(InvoiceItemPayload(product_key="WIDGET", qty=Decimal("2")), catalog(), CONTEXT)
    assert item.cost == Decimal("9.99")
    assert item.notes == "Blue widget"
    assert item.qty == Decimal("2")


def test_item_keeps_explicit_cost_and_skips_lookup():
    stub = catalog()
    item = normalize_item(InvoiceItemPayload(product_key="WIDGET", cost=Decimal("5")), stub, CONTEXT)
    assert item.cost == Decimal("5")
    assert item.notes == ""
    assert stub.lookups == []


def test_item_keeps_explicit_notes():
    item = normalize_item(InvoiceItemPayload(product_key="WIDGET", notes="Custom"), catalog(), CONTEXT)
    assert item.notes == "Custom"
    assert item.cost == Decimal("0")


def test_item_with_unknown_product_gets_defaults():
    item = normalize_item(InvoiceItemPayload(product_key="NOPE"), catalog(), CONTEXT)
    assert item.product_key == "NOPE"
    assert item.cost == Decimal("0")
    assert item.notes == ""


def test_item_passes_tax_through():
    item = normalize_item(InvoiceItemPayload(cost=Decimal("10"), tax_name1="VAT", tax_rate1=Decimal("20")), catalog(), CONTEXT)
    assert item.tax_name1 == "VAT"
    assert item.tax_rate1 == Decimal("20")


def test_invoice_defaults():
    draft = normalize_invoice(InvoicePayload(), catalog(), CONTEXT)
    assert draft.invoice_status_id == InvoiceStatus.DRAFT
    assert draft.discount == Decimal("0")
    assert draft.is_amount_discount is False
    assert draft.terms == ""
    assert draft.invoice_footer == ""
    assert draft.public_notes == ""
    assert draft.po_number == ""
    assert draft.invoice_design_id == 7
    assert draft.custom_value1 == Decimal("0")
    assert draft.custom_taxes2 is False
    assert draft.partial == Decimal("0")
    assert len(draft.invoice_items) == 1
    assert draft.invoice_items[0].notes == ""
    assert draft.invoice_items[0].qty == Decimal("1")
    assert draft.invoice_date == CONTEXT.today()
    assert draft.due_date is None


def test_explicit_values_are_kept():
    payload = InvoicePayload(
        invoice_status_id=2,
        invoice_date=date(2026, 1, 15),
        due_date=date(2026, 2, 15),
        discount=Decimal("10"),
        is_amount_discount=True,
        invoice_design_id=2,
        terms="Net 30",
    )
    draft = normalize_invoice(payload, catalog(), CONTEXT)
    assert draft.invoice_status_id == 2
    assert draft.invoice_date == date(2026, 1, 15)
    assert draft.due_date == date(2026, 2, 15)
    assert draft.discount == Decimal("10")
    assert draft.is_amount_discount is True
    assert draft.invoice_design_id == 2
    assert draft.terms == "Net 30"


def test_zero_status_becomes_draft():
    draft = normalize_invoice(InvoicePayload(invoice_status_id=0), catalog(), CONTEXT)
    assert draft.invoice_status_id == InvoiceStatus.DRAFT


def test_top_level_fields_make_single_item_without_tax():
    payload = InvoicePayload(
        cost=Decimal("100"),
        qty=Decimal("3"),
        notes="Consulting",
        tax_name1="VAT",
        tax_rate1=Decimal("20"),
        tax_name2="City",
        tax_rate2=Decimal("1"),
    )
    draft = normalize_invoice(payload, catalog(), CONTEXT)
    assert len(draft.invoice_items) == 1
    item = draft.invoice_items[0]
    assert item.cost == Decimal("100")
    assert item.qty == Decimal("3")
    assert item.tax_name1 is None and item.tax_rate1 is None
    assert item.tax_name2 is None and item.tax_rate2 is None
    # the charge stays on the invoice
    assert draft.tax_name1 == "VAT"
    assert draft.tax_rate1 == Decimal("20")


def test_single_item_renormalizes_to_itself():
    draft = normalize_invoice(InvoicePayload(product_key="WIDGET", qty=Decimal("2")), catalog(), CONTEXT)
    item = draft.invoice_items[0]
    assert normalize_item(item.as_payload(), catalog(), CONTEXT) == item


def test_explicit_list_keeps_order_and_taxes():
    payload = InvoicePayload(
        invoice_items=[
            InvoiceItemPayload(product_key="WIDGET"),
            InvoiceItemPayload(notes="Setup", cost=Decimal("50"), tax_name1="VAT", tax_rate1=Decimal("20")),
            InvoiceItemPayload(),
        ]
    )
    draft = normalize_invoice(payload, catalog(), CONTEXT)
    assert [item.notes for item in draft.invoice_items] == ["Blue widget", "Setup", ""]
    assert draft.invoice_items[1].tax_rate1 == Decimal("20")
    assert draft.invoice_items[2].qty == Decimal("1")


def test_single_item_wins_over_list():
    payload = InvoicePayload(
        notes="Top level",
        invoice_items=[InvoiceItemPayload(notes="A"), InvoiceItemPayload(notes="B")],
    )
    mode = line_item_mode(payload)
    assert isinstance(mode, SingleImplicitItem)
    draft = normalize_invoice(payload, catalog(), CONTEXT)
    assert [item.notes for item in draft.invoice_items] == ["Top level"]


def test_list_mode_without_items():
    assert line_item_mode(InvoicePayload()) == ExplicitItemList([])


def test_changes_only_carry_given_fields():
    changes = normalize_changes(InvoicePayload(po_number="PO-9"), catalog(), CONTEXT)
    assert changes == {"po_number": "PO-9"}


def test_changes_replace_items_when_given():
    changes = normalize_changes(InvoicePayload(invoice_items=[InvoiceItemPayload(product_key="WIDGET")]), catalog(), CONTEXT)
    assert len(changes["invoice_items"]) == 1
    assert changes["invoice_items"][0].cost == Decimal("9.99")


def test_localize_uses_client_currency():
    client = SimpleNamespace(currency_code="EUR")
    assert CONTEXT.localize(client).currency_code == "EUR"
    assert CONTEXT.localize(SimpleNamespace(currency_code=None)).currency_code == "USD"
