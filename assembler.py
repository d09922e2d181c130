"""Create, update and convert invoices.

Side effects run in a fixed order: the invoice is persisted, then an
optional payment is recorded, then an optional email goes out, and the
invoice is finally read back with its relations. Only a failure to
persist the invoice aborts; later failures are logged and returned as
warnings next to the saved invoice.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from errors import InvoiceError, NotFoundError, UnsupportedActionError
from models import InvoicePayload, UpdateInvoicePayload
from normalizer import AccountContext, normalize_changes, normalize_invoice
from repositories import ClientStore, InvoiceStore, PaymentStore, ProductCatalog
from resolver import ClientResolver

logger = logging.getLogger(__name__)

ACTION_CONVERT = "convert"
GENERIC_ACTIONS = ("archive", "restore", "delete")


@dataclass
class AssemblyResult:
    invoice: object
    payment: Optional[object] = None
    warnings: List[str] = field(default_factory=list)


class InvoiceAssembler:
    def __init__(self, account, client_store, catalog, invoice_store, payment_store, notifier):
        self.account = account
        self.client_store = client_store
        self.catalog = catalog
        self.invoice_store = invoice_store
        self.payment_store = payment_store
        self.notifier = notifier
        self.resolver = ClientResolver(client_store)

    @classmethod
    def for_session(cls, db, account, notifier):
        return cls(
            account,
            ClientStore(db),
            ProductCatalog(db),
            InvoiceStore(db),
            PaymentStore(db),
            notifier,
        )

    def context_for(self, client) -> AccountContext:
        return AccountContext.for_account(self.account).localize(client)

    def create(self, payload: InvoicePayload) -> AssemblyResult:
        client = self.resolver.resolve(payload, self.account.id)

        draft = normalize_invoice(payload, self.catalog, self.context_for(client))
        draft.client_id = client.id
        invoice = self.invoice_store.save(self.account, draft)

        result = AssemblyResult(invoice)

        if payload.paid:
            try:
                result.payment = self.payment_store.save(invoice, client, payload.paid, payment_date=draft.invoice_date)
            except InvoiceError as exc:
                logger.error("Invoice %s saved but payment failed: %s", invoice.public_id, exc.message, exc_info=True)
                result.warnings.append(f"Payment could not be recorded: {exc.message}")

        if payload.email_invoice:
            try:
                if result.payment:
                    self.notifier.send_payment_confirmation(result.payment)
                else:
                    self.notifier.send_invoice(invoice)
            except InvoiceError as exc:
                logger.error("Invoice %s saved but email failed: %s", invoice.public_id, exc.message, exc_info=True)
                result.warnings.append(f"Email could not be sent: {exc.message}")

        result.invoice = self.refetch(invoice.public_id)
        return result

    def update(self, invoice, payload: InvoicePayload) -> AssemblyResult:
        client = invoice.client
        changes = {}
        if payload.client_id is not None:
            client = self.client_store.get_by_id(self.account.id, payload.client_id)
            if not client:
                raise NotFoundError(f"Client {payload.client_id} not found")
            changes["client_id"] = client.id

        changes.update(normalize_changes(payload, self.catalog, self.context_for(client)))
        self.invoice_store.update(invoice, changes)
        return AssemblyResult(self.refetch(invoice.public_id))

    def delete(self, invoice):
        self.invoice_store.delete(invoice)
        logger.info("Deleted invoice %s", invoice.public_id)
        return invoice

    def refetch(self, public_id: int):
        invoice = self.invoice_store.get_with_relations(self.account.id, public_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {public_id} not found")
        return invoice


class ConversionHandler:
    """Routes update requests: quote conversion, named actions or a plain update."""

    def __init__(self, assembler: InvoiceAssembler):
        self.assembler = assembler

    def handle(self, invoice, payload: UpdateInvoicePayload) -> AssemblyResult:
        if payload.action == ACTION_CONVERT:
            return AssemblyResult(self.convert(invoice))
        elif payload.action:
            return AssemblyResult(self.handle_action(invoice, payload.action))
        return self.assembler.update(invoice, payload)

    def convert(self, quote):
        clone = self.assembler.invoice_store.clone(self.assembler.account, quote, quote_id=quote.id)
        logger.info("Converted quote %s into invoice %s", quote.public_id, clone.public_id)
        return self.assembler.refetch(clone.public_id)

    def handle_action(self, invoice, action: str):
        if action not in GENERIC_ACTIONS:
            raise UnsupportedActionError(f"Action '{action}' is not supported")
        getattr(self.assembler.invoice_store, action)(invoice)
        logger.info("Applied action '%s' to invoice %s", action, invoice.public_id)
        return self.assembler.refetch(invoice.public_id)
