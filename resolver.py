from email_validator import EmailNotValidError, validate_email

from errors import MissingIdentifierError, NotFoundError, ValidationError
from models import CLIENT_FIELDS, CONTACT_FIELDS, InvoicePayload


class ClientResolver:
    """Finds the client an invoice belongs to, creating it from the payload when needed."""

    def __init__(self, client_store):
        self.client_store = client_store

    def resolve(self, payload: InvoicePayload, account_id: int):
        if payload.email is not None:
            email = payload.email
            client = self.client_store.find_by_contact_email(account_id, email)
            if client:
                return client

            try:
                validate_email(email, check_deliverability=False)
            except EmailNotValidError as exc:
                raise ValidationError(str(exc)) from exc

            client_data = {field: getattr(payload, field) for field in CLIENT_FIELDS if getattr(payload, field) is not None}
            contact_data = {field: getattr(payload, field) for field in CONTACT_FIELDS if getattr(payload, field) is not None}
            contact_data["email"] = email
            return self.client_store.save(account_id, client_data, contact_data)

        if payload.client_id is not None:
            client = self.client_store.get_by_id(account_id, payload.client_id)
            if not client:
                raise NotFoundError(f"Client {payload.client_id} not found")
            return client

        raise MissingIdentifierError("Either email or client_id is required")
