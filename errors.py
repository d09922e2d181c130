class InvoiceError(Exception):
    """Base class for failures raised while assembling or changing invoices."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InvoiceError):
    status_code = 422


class UnsupportedActionError(ValidationError):
    status_code = 400


class NotFoundError(InvoiceError):
    status_code = 404


class MissingIdentifierError(InvoiceError):
    status_code = 400


class PersistenceError(InvoiceError):
    status_code = 500


class NotificationError(InvoiceError):
    status_code = 502
