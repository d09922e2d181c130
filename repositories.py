import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from database import Account, Client, Contact, Invitation, Invoice, InvoiceItem, Payment, Product, utcnow
from errors import PersistenceError
from models import InvoiceStatus
from normalizer import InvoiceDraft, LineItemDraft

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")

# Invoice columns copied verbatim from a draft (or from a quote when cloning)
INVOICE_COPY_FIELDS = (
    "invoice_status_id",
    "invoice_date",
    "due_date",
    "discount",
    "is_amount_discount",
    "terms",
    "invoice_footer",
    "public_notes",
    "po_number",
    "invoice_design_id",
    "custom_value1",
    "custom_value2",
    "custom_taxes1",
    "custom_taxes2",
    "partial",
    "tax_name1",
    "tax_rate1",
    "tax_name2",
    "tax_rate2",
)
ITEM_COPY_FIELDS = ("product_key", "notes", "cost", "qty", "tax_name1", "tax_rate1", "tax_name2", "tax_rate2")


def _q(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _dec(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to persist changes: %s", exc)
        raise PersistenceError(str(exc)) from exc


def next_public_id(db: Session, model, account_id: int) -> int:
    current = db.query(func.max(model.public_id)).filter(model.account_id == account_id).scalar()
    return (current or 0) + 1


def compute_totals(invoice: Invoice) -> Decimal:
    """Return the invoice amount: items, discount, custom values and taxes."""
    subtotal = Decimal("0")
    item_taxes = Decimal("0")
    for item in invoice.invoice_items:
        line_total = _q(_dec(item.cost) * _dec(item.qty))
        subtotal += line_total
        item_taxes += _q(line_total * (_dec(item.tax_rate1) + _dec(item.tax_rate2)) / Decimal("100"))

    discount = _dec(invoice.discount)
    if not invoice.is_amount_discount:
        discount = _q(subtotal * discount / Decimal("100"))

    custom1 = _dec(invoice.custom_value1)
    custom2 = _dec(invoice.custom_value2)
    taxable = subtotal - discount
    if invoice.custom_taxes1:
        taxable += custom1
    if invoice.custom_taxes2:
        taxable += custom2
    invoice_taxes = _q(taxable * (_dec(invoice.tax_rate1) + _dec(invoice.tax_rate2)) / Decimal("100"))

    return _q(subtotal - discount + custom1 + custom2 + item_taxes + invoice_taxes)


class ClientStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_contact_email(self, account_id: int, email: str) -> Optional[Client]:
        return (
            self.db.query(Client)
            .join(Contact, Contact.client_id == Client.id)
            .filter(Client.account_id == account_id, Contact.email == email)
            .first()
        )

    def get_by_id(self, account_id: int, public_id: int) -> Optional[Client]:
        return (
            self.db.query(Client)
            .filter(Client.account_id == account_id, Client.public_id == public_id)
            .first()
        )

    def save(self, account_id: int, client_data: Dict, contact_data: Dict) -> Client:
        client = Client(account_id=account_id, public_id=next_public_id(self.db, Client, account_id), **client_data)
        client.contacts.append(Contact(account_id=account_id, is_primary=True, **contact_data))
        self.db.add(client)
        _commit(self.db)
        logger.info("Created client %s for account %s", client.public_id, account_id)
        return client


class ProductCatalog:
    def __init__(self, db: Session):
        self.db = db

    def find_by_key(self, account_id: int, product_key: str) -> Optional[Product]:
        return (
            self.db.query(Product)
            .filter(Product.account_id == account_id, Product.product_key == product_key)
            .first()
        )


class InvoiceStore:
    def __init__(self, db: Session):
        self.db = db

    def _next_number(self, account: Account, is_quote: bool) -> str:
        if is_quote:
            number = account.quote_number_counter
            account.quote_number_counter = number + 1
        else:
            number = account.invoice_number_counter
            account.invoice_number_counter = number + 1
        return f"{number:04d}"

    def _replace_items(self, invoice: Invoice, items: List[LineItemDraft]) -> None:
        invoice.invoice_items.clear()
        for item in items:
            invoice.invoice_items.append(
                InvoiceItem(account_id=invoice.account_id, **{name: getattr(item, name) for name in ITEM_COPY_FIELDS})
            )

    def _ensure_invitations(self, invoice: Invoice) -> None:
        invited = {invitation.contact_id for invitation in invoice.invitations}
        for contact in invoice.client.contacts:
            if contact.id not in invited:
                invoice.invitations.append(
                    Invitation(
                        account_id=invoice.account_id,
                        contact_id=contact.id,
                        invitation_key=uuid.uuid4().hex,
                    )
                )

    def save(self, account: Account, draft: InvoiceDraft) -> Invoice:
        client = self.db.get(Client, draft.client_id)
        invoice = Invoice(
            account_id=account.id,
            public_id=next_public_id(self.db, Invoice, account.id),
            client=client,
            is_quote=draft.is_quote,
            invoice_number=draft.invoice_number or self._next_number(account, draft.is_quote),
            **{name: getattr(draft, name) for name in INVOICE_COPY_FIELDS},
        )
        self._replace_items(invoice, draft.invoice_items)
        invoice.amount = compute_totals(invoice)
        invoice.balance = invoice.amount
        self._ensure_invitations(invoice)
        self.db.add(invoice)
        _commit(self.db)
        logger.info("Saved %s %s (%s)", "quote" if invoice.is_quote else "invoice", invoice.invoice_number, invoice.public_id)
        return invoice

    def update(self, invoice: Invoice, changes: Dict) -> Invoice:
        previous_amount = _dec(invoice.amount)
        if "client_id" in changes:
            invoice.client = self.db.get(Client, changes["client_id"])
            contact_ids = {contact.id for contact in invoice.client.contacts}
            invoice.invitations = [invitation for invitation in invoice.invitations if invitation.contact_id in contact_ids]
        if "invoice_items" in changes:
            self._replace_items(invoice, changes["invoice_items"])
        for name in INVOICE_COPY_FIELDS + ("invoice_number",):
            if name in changes:
                setattr(invoice, name, changes[name])
        invoice.amount = compute_totals(invoice)
        invoice.balance = _dec(invoice.balance) + invoice.amount - previous_amount
        self._ensure_invitations(invoice)
        _commit(self.db)
        logger.info("Updated invoice %s", invoice.public_id)
        return invoice

    def clone(self, account: Account, source: Invoice, quote_id: Optional[int] = None) -> Invoice:
        """Copy `source` into a new invoice; the source row is not modified."""
        clone = Invoice(
            account_id=account.id,
            public_id=next_public_id(self.db, Invoice, account.id),
            client=source.client,
            is_quote=False,
            quote_id=quote_id,
            invoice_number=self._next_number(account, False),
            **{name: getattr(source, name) for name in INVOICE_COPY_FIELDS},
        )
        clone.invoice_status_id = int(InvoiceStatus.DRAFT)
        clone.invoice_items = [
            InvoiceItem(account_id=account.id, **{name: getattr(item, name) for name in ITEM_COPY_FIELDS})
            for item in source.invoice_items
        ]
        clone.amount = compute_totals(clone)
        clone.balance = clone.amount
        self._ensure_invitations(clone)
        self.db.add(clone)
        _commit(self.db)
        logger.info("Cloned invoice %s into %s", source.public_id, clone.public_id)
        return clone

    def get_with_relations(self, account_id: int, public_id: int) -> Optional[Invoice]:
        return (
            self.db.query(Invoice)
            .options(
                selectinload(Invoice.client).selectinload(Client.contacts),
                selectinload(Invoice.invoice_items),
                selectinload(Invoice.invitations),
            )
            .filter(Invoice.account_id == account_id, Invoice.public_id == public_id)
            .populate_existing()
            .first()
        )

    def list(self, account_id: int) -> List[Invoice]:
        """All invoices of the account, soft-deleted ones included, newest first."""
        return (
            self.db.query(Invoice)
            .options(
                selectinload(Invoice.client).selectinload(Client.contacts),
                selectinload(Invoice.invoice_items),
            )
            .filter(Invoice.account_id == account_id)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .all()
        )

    def archive(self, invoice: Invoice) -> Invoice:
        invoice.archived_at = utcnow()
        _commit(self.db)
        return invoice

    def restore(self, invoice: Invoice) -> Invoice:
        invoice.archived_at = None
        invoice.deleted_at = None
        invoice.is_deleted = False
        _commit(self.db)
        return invoice

    def delete(self, invoice: Invoice) -> Invoice:
        invoice.deleted_at = utcnow()
        invoice.is_deleted = True
        _commit(self.db)
        return invoice


class PaymentStore:
    def __init__(self, db: Session):
        self.db = db

    def save(self, invoice: Invoice, client: Client, amount: Decimal, payment_date=None) -> Payment:
        payment = Payment(
            account_id=invoice.account_id,
            public_id=next_public_id(self.db, Payment, invoice.account_id),
            invoice=invoice,
            client=client,
            amount=amount,
            payment_date=payment_date,
        )
        invoice.balance = _dec(invoice.balance) - _dec(amount)
        if invoice.balance <= 0:
            invoice.invoice_status_id = int(InvoiceStatus.PAID)
        else:
            invoice.invoice_status_id = int(InvoiceStatus.PARTIAL)
        self.db.add(payment)
        _commit(self.db)
        logger.info("Recorded payment of %s against invoice %s", amount, invoice.public_id)
        return payment
