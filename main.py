from fastapi import FastAPI, HTTPException, Depends, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from email.utils import formatdate
from typing import Optional
from config import settings
from models import InvoicePayload, UpdateInvoicePayload, InvoiceRead, InvoiceResponse, InvoiceListResponse
from database import get_db, init_db, ensure_default_account, get_account_by_key, SessionLocal
from errors import InvoiceError
from assembler import InvoiceAssembler, ConversionHandler
from normalizer import AccountContext
from notifier import Notifier
from sqlalchemy.orm import Session
import logging

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

RESULT_SUCCESS = "success"

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json"
)

# Initialize database and make sure the default account exists
init_db()
with SessionLocal() as db:
    ensure_default_account(db, settings.DEFAULT_ACCOUNT_KEY)

# Enable CORS
origins = [origin for origin in settings.ORIGINS.split(",") if origin]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(InvoiceError)
async def invoice_error_handler(request: Request, exc: InvoiceError):
    logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

# Dependencies
def get_account(x_account_key: Optional[str] = Header(default=None), db: Session = Depends(get_db)):
    account = get_account_by_key(db, x_account_key or settings.DEFAULT_ACCOUNT_KEY)
    if not account:
        raise HTTPException(status_code=401, detail="Unknown account")
    return account

def get_notifier():
    return Notifier()

def get_assembler(db: Session = Depends(get_db), account=Depends(get_account), notifier: Notifier = Depends(get_notifier)):
    return InvoiceAssembler.for_session(db, account, notifier)

def get_invoice_or_404(invoice_id: int, assembler: InvoiceAssembler = Depends(get_assembler)):
    invoice = assembler.invoice_store.get_with_relations(assembler.account.id, invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice

def item_response(invoice, warnings=None):
    return InvoiceResponse(data=InvoiceRead.model_validate(invoice), warnings=warnings or [])

def render_invoice(invoice, context: AccountContext) -> str:
    entity = "Quote" if invoice.is_quote else "Invoice"
    currency = context.currency_code
    lines = [
        f"{entity} {invoice.invoice_number}",
        f"Client: {invoice.client.name or ''}",
        f"Date: {invoice.invoice_date or ''}",
    ]
    if invoice.due_date:
        lines.append(f"Due: {invoice.due_date}")
    if invoice.po_number:
        lines.append(f"PO: {invoice.po_number}")
    lines.append("")
    for item in invoice.invoice_items:
        lines.append(f"{item.product_key}\t{item.notes}\t{item.qty} x {item.cost} {currency}")
    lines.append("")
    lines.append(f"Amount: {invoice.amount} {currency}")
    lines.append(f"Balance: {invoice.balance} {currency}")
    for text in (invoice.public_notes, invoice.terms, invoice.invoice_footer):
        if text:
            lines.extend(["", text])
    return "\n".join(lines) + "\n"

# API Endpoints
@app.get(f"{settings.API_V1_PREFIX}/invoices", response_model=InvoiceListResponse)
def list_invoices(assembler: InvoiceAssembler = Depends(get_assembler)):
    invoices = assembler.invoice_store.list(assembler.account.id)
    return InvoiceListResponse(data=[InvoiceRead.model_validate(invoice) for invoice in invoices])

@app.get(f"{settings.API_V1_PREFIX}/invoices/{{invoice_id}}", response_model=InvoiceResponse)
def show_invoice(invoice=Depends(get_invoice_or_404)):
    return item_response(invoice)

@app.post(f"{settings.API_V1_PREFIX}/invoices", response_model=InvoiceResponse)
def create_invoice(payload: InvoicePayload, assembler: InvoiceAssembler = Depends(get_assembler)):
    result = assembler.create(payload)
    return item_response(result.invoice, result.warnings)

@app.put(f"{settings.API_V1_PREFIX}/invoices/{{invoice_id}}", response_model=InvoiceResponse)
def update_invoice(
    payload: UpdateInvoicePayload,
    invoice=Depends(get_invoice_or_404),
    assembler: InvoiceAssembler = Depends(get_assembler),
):
    result = ConversionHandler(assembler).handle(invoice, payload)
    return item_response(result.invoice, result.warnings)

@app.delete(f"{settings.API_V1_PREFIX}/invoices/{{invoice_id}}", response_model=InvoiceResponse)
def delete_invoice(invoice=Depends(get_invoice_or_404), assembler: InvoiceAssembler = Depends(get_assembler)):
    return item_response(assembler.delete(invoice))

@app.get(f"{settings.API_V1_PREFIX}/invoices/{{invoice_id}}/email")
def email_invoice(invoice=Depends(get_invoice_or_404), notifier: Notifier = Depends(get_notifier)):
    notifier.send_invoice(invoice)
    return RESULT_SUCCESS

@app.get(f"{settings.API_V1_PREFIX}/invoices/{{invoice_id}}/download")
def download_invoice(invoice=Depends(get_invoice_or_404), assembler: InvoiceAssembler = Depends(get_assembler)):
    document = render_invoice(invoice, assembler.context_for(invoice.client)).encode("utf-8")
    headers = {
        "Content-Length": str(len(document)),
        "Content-Disposition": f'attachment; filename="{invoice.get_file_name()}"',
        "Cache-Control": "public, must-revalidate, max-age=0",
        "Last-Modified": formatdate(usegmt=True),
    }
    return Response(content=document, media_type="text/plain; charset=utf-8", headers=headers)

@app.get("/")
async def root():
    return {"message": "Invoice API is running"}
