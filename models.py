from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from enum import IntEnum

class InvoiceStatus(IntEnum):
    DRAFT = 1
    SENT = 2
    VIEWED = 3
    APPROVED = 4
    PARTIAL = 5
    PAID = 6

# Top-level payload fields copied onto a newly created client / contact
CLIENT_FIELDS = (
    "name",
    "address1",
    "address2",
    "city",
    "state",
    "postal_code",
    "private_notes",
    "currency_code",
)
CONTACT_FIELDS = (
    "first_name",
    "last_name",
    "phone",
)
# Presence of any of these at the top level selects the single implicit line item
SINGLE_ITEM_FIELDS = ("product_key", "cost", "notes", "qty")
ITEM_TAX_FIELDS = ("tax_name1", "tax_rate1", "tax_name2", "tax_rate2")

class InvoiceItemPayload(BaseModel):
    product_key: Optional[str] = None
    cost: Optional[Decimal] = None
    notes: Optional[str] = None
    qty: Optional[Decimal] = None
    tax_name1: Optional[str] = None
    tax_rate1: Optional[Decimal] = None
    tax_name2: Optional[str] = None
    tax_rate2: Optional[Decimal] = None

class InvoicePayload(InvoiceItemPayload):
    # client lookup
    email: Optional[str] = None
    client_id: Optional[int] = None

    # new client
    name: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    private_notes: Optional[str] = None
    currency_code: Optional[str] = None

    # new contact
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    # invoice
    invoice_number: Optional[str] = None
    is_quote: Optional[bool] = None
    discount: Optional[Decimal] = None
    is_amount_discount: Optional[bool] = None
    terms: Optional[str] = None
    invoice_footer: Optional[str] = None
    public_notes: Optional[str] = None
    po_number: Optional[str] = None
    invoice_design_id: Optional[int] = None
    custom_value1: Optional[Decimal] = None
    custom_value2: Optional[Decimal] = None
    custom_taxes1: Optional[bool] = None
    custom_taxes2: Optional[bool] = None
    partial: Optional[Decimal] = None
    invoice_status_id: Optional[int] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    invoice_items: Optional[List[InvoiceItemPayload]] = None

    # side effects
    paid: Optional[Decimal] = None
    email_invoice: Optional[bool] = None

class UpdateInvoicePayload(InvoicePayload):
    action: Optional[str] = None

class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

class ContactRead(ORMModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_primary: bool = False

class ClientRead(ORMModel):
    id: int = Field(validation_alias="public_id")
    name: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    currency_code: Optional[str] = None
    contacts: List[ContactRead] = []

class InvoiceItemRead(ORMModel):
    product_key: str
    notes: str
    cost: Decimal
    qty: Decimal
    tax_name1: Optional[str] = None
    tax_rate1: Optional[Decimal] = None
    tax_name2: Optional[str] = None
    tax_rate2: Optional[Decimal] = None

class InvitationRead(ORMModel):
    key: str = Field(validation_alias="invitation_key")
    sent_at: Optional[datetime] = None

class InvoiceRead(ORMModel):
    id: int = Field(validation_alias="public_id")
    client_id: int = Field(validation_alias="client_public_id")
    invoice_number: str
    is_quote: bool
    quote_id: Optional[int] = Field(default=None, validation_alias="quote_public_id")
    invoice_status_id: int
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    discount: Decimal
    is_amount_discount: bool
    terms: Optional[str] = None
    invoice_footer: Optional[str] = None
    public_notes: Optional[str] = None
    po_number: Optional[str] = None
    invoice_design_id: Optional[int] = None
    custom_value1: Decimal
    custom_value2: Decimal
    custom_taxes1: bool
    custom_taxes2: bool
    partial: Decimal
    tax_name1: Optional[str] = None
    tax_rate1: Optional[Decimal] = None
    tax_name2: Optional[str] = None
    tax_rate2: Optional[Decimal] = None
    amount: Decimal
    balance: Decimal
    is_deleted: bool
    archived_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    client: Optional[ClientRead] = None
    invoice_items: List[InvoiceItemRead] = []
    invitations: List[InvitationRead] = []

class InvoiceResponse(BaseModel):
    data: InvoiceRead
    warnings: List[str] = []

class InvoiceListResponse(BaseModel):
    data: List[InvoiceRead]
