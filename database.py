from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from datetime import datetime, timezone
from config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    account_key = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255))
    invoice_design_id = Column(Integer, nullable=False, default=1)
    timezone = Column(String(64), nullable=False, default="UTC")
    currency_code = Column(String(3), nullable=False, default="USD")
    invoice_number_counter = Column(Integer, nullable=False, default=1)
    quote_number_counter = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (UniqueConstraint("account_id", "public_id"),)

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    public_id = Column(Integer, nullable=False)
    name = Column(String(255))
    address1 = Column(String(255))
    address2 = Column(String(255))
    city = Column(String(255))
    state = Column(String(255))
    postal_code = Column(String(255))
    private_notes = Column(Text)
    currency_code = Column(String(3))
    created_at = Column(DateTime, default=utcnow)

    contacts = relationship("Contact", back_populates="client", order_by="Contact.id", cascade="all, delete-orphan")


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    first_name = Column(String(255))
    last_name = Column(String(255))
    email = Column(String(255), index=True)
    phone = Column(String(255))
    is_primary = Column(Boolean, nullable=False, default=False)

    client = relationship("Client", back_populates="contacts")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (UniqueConstraint("account_id", "product_key"),)

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    product_key = Column(String(255), nullable=False)
    notes = Column(Text)
    cost = Column(Numeric(13, 2), nullable=False, default=0)


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint("account_id", "public_id"),)

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    public_id = Column(Integer, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    invoice_number = Column(String(255), nullable=False)
    is_quote = Column(Boolean, nullable=False, default=False)
    quote_id = Column(Integer, ForeignKey("invoices.id"))
    invoice_status_id = Column(Integer, nullable=False, default=1)
    invoice_date = Column(Date)
    due_date = Column(Date)
    discount = Column(Numeric(13, 2), nullable=False, default=0)
    is_amount_discount = Column(Boolean, nullable=False, default=False)
    terms = Column(Text)
    invoice_footer = Column(Text)
    public_notes = Column(Text)
    po_number = Column(String(255))
    invoice_design_id = Column(Integer)
    custom_value1 = Column(Numeric(13, 2), nullable=False, default=0)
    custom_value2 = Column(Numeric(13, 2), nullable=False, default=0)
    custom_taxes1 = Column(Boolean, nullable=False, default=False)
    custom_taxes2 = Column(Boolean, nullable=False, default=False)
    partial = Column(Numeric(13, 2), nullable=False, default=0)
    tax_name1 = Column(String(255))
    tax_rate1 = Column(Numeric(13, 3))
    tax_name2 = Column(String(255))
    tax_rate2 = Column(Numeric(13, 3))
    amount = Column(Numeric(13, 2), nullable=False, default=0)
    balance = Column(Numeric(13, 2), nullable=False, default=0)
    is_deleted = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime)
    deleted_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    client = relationship("Client")
    invoice_items = relationship("InvoiceItem", back_populates="invoice", order_by="InvoiceItem.id", cascade="all, delete-orphan")
    invitations = relationship("Invitation", back_populates="invoice", order_by="Invitation.id", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="invoice", order_by="Payment.id")
    quote = relationship("Invoice", remote_side=[id])

    @property
    def client_public_id(self):
        return self.client.public_id if self.client else None

    @property
    def quote_public_id(self):
        return self.quote.public_id if self.quote else None

    def get_file_name(self, extension="txt"):
        entity = "Quote" if self.is_quote else "Invoice"
        return f"{entity}_{self.invoice_number}.{extension}"


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    product_key = Column(String(255), nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    cost = Column(Numeric(13, 2), nullable=False, default=0)
    qty = Column(Numeric(13, 4), nullable=False, default=1)
    tax_name1 = Column(String(255))
    tax_rate1 = Column(Numeric(13, 3))
    tax_name2 = Column(String(255))
    tax_rate2 = Column(Numeric(13, 3))

    invoice = relationship("Invoice", back_populates="invoice_items")


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=False)
    invitation_key = Column(String(64), unique=True, nullable=False)
    sent_at = Column(DateTime)

    invoice = relationship("Invoice", back_populates="invitations")
    contact = relationship("Contact")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (UniqueConstraint("account_id", "public_id"),)

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    public_id = Column(Integer, nullable=False)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    amount = Column(Numeric(13, 2), nullable=False)
    payment_date = Column(Date)
    created_at = Column(DateTime, default=utcnow)

    invoice = relationship("Invoice", back_populates="payments")
    client = relationship("Client")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)

def ensure_default_account(db, account_key: str):
    """Create the account for `account_key` with configured defaults if it does not exist yet"""
    account = db.query(Account).filter(Account.account_key == account_key).first()
    if account:
        return account
    account = Account(
        account_key=account_key,
        invoice_design_id=settings.DEFAULT_INVOICE_DESIGN_ID,
        timezone=settings.DEFAULT_TIMEZONE,
        currency_code=settings.DEFAULT_CURRENCY_CODE,
    )
    db.add(account)
    db.commit()
    return account

def get_account_by_key(db, account_key: str):
    return db.query(Account).filter(Account.account_key == account_key).first()
