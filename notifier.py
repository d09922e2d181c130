import logging
from typing import List

import requests

from config import settings
from errors import NotificationError

logger = logging.getLogger(__name__)


class Notifier:
    """Sends invoice and payment emails to the client's contacts.

    With the `disabled` provider messages are only logged; the `relay`
    provider posts each message as JSON to EMAIL_RELAY_URL.
    """

    def __init__(self, provider: str = None, relay_url: str = None, api_key: str = None, sender: str = None):
        self.provider = (provider or settings.EMAIL_PROVIDER or "disabled").lower()
        self.relay_url = relay_url if relay_url is not None else settings.EMAIL_RELAY_URL
        self.api_key = api_key if api_key is not None else settings.EMAIL_API_KEY
        self.sender = sender if sender is not None else settings.EMAIL_FROM

    def send_invoice(self, invoice) -> int:
        entity = "Quote" if invoice.is_quote else "Invoice"
        messages = []
        for invitation in invoice.invitations:
            if not invitation.contact.email:
                continue
            messages.append({
                "to": invitation.contact.email,
                "subject": f"{entity} {invoice.invoice_number}",
                "template": "quote" if invoice.is_quote else "invoice",
                "invitation_key": invitation.invitation_key,
                "amount": str(invoice.amount),
                "balance": str(invoice.balance),
            })
        return self._deliver(messages)

    def send_payment_confirmation(self, payment) -> int:
        contacts = [contact for contact in payment.client.contacts if contact.email]
        primary = [contact for contact in contacts if contact.is_primary] or contacts[:1]
        messages = [
            {
                "to": contact.email,
                "subject": f"Payment received for invoice {payment.invoice.invoice_number}",
                "template": "payment",
                "amount": str(payment.amount),
                "balance": str(payment.invoice.balance),
            }
            for contact in primary
        ]
        return self._deliver(messages)

    def _deliver(self, messages: List[dict]) -> int:
        if self.provider in {"disabled", "none"}:
            for message in messages:
                logger.info("Email disabled, not sending '%s' to %s", message["subject"], message["to"])
            return 0

        if self.provider != "relay":
            raise NotificationError(f"Unsupported EMAIL_PROVIDER: {self.provider}")
        if not self.relay_url:
            raise NotificationError("EMAIL_RELAY_URL not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        for message in messages:
            try:
                response = requests.post(self.relay_url, json={"from": self.sender, **message}, headers=headers, timeout=15)
            except requests.RequestException as exc:
                raise NotificationError(f"Email relay unreachable: {exc}") from exc
            if response.status_code >= 400:
                logger.error(f"Email relay rejected message: {response.text}")
                raise NotificationError(f"Email relay error: {response.status_code}")
            logger.info("Sent '%s' to %s", message["subject"], message["to"])
        return len(messages)
