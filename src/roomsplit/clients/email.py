"""Email notifier client for the ``/send-email`` endpoint."""

import logging

import httpx

from ..models import NotificationResult

logger = logging.getLogger(__name__)


class EmailClient:
    """Client for an HTTP email-sending endpoint.

    The endpoint accepts ``{"to", "subject", "text"}`` and answers with
    ``{"success": bool, "error": str | None}``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the email client."""
        self.base_url = base_url
        self.client = httpx.Client(
            base_url=base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def send(self, recipient: str, subject: str, body: str) -> NotificationResult:
        """
        Send one email.

        Transport and HTTP failures are reported in the result, never raised.

        Args:
            recipient: Email address to send to
            subject: Subject line
            body: Plain-text message body

        Returns:
            Result with success flag and error message on failure
        """
        payload = {"to": recipient, "subject": subject, "text": body}

        try:
            response = self.client.post("/send-email", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Email endpoint error for {recipient}: {e}")
            logger.debug(f"Response body: {e.response.text}")
            return NotificationResult(
                success=False, error=_error_from_response(e.response) or str(e)
            )
        except httpx.HTTPError as e:
            logger.error(f"HTTP error sending email to {recipient}: {e}")
            return NotificationResult(success=False, error=str(e))

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return NotificationResult(
                success=False, error="Email endpoint returned an unexpected response"
            )

        if data.get("success"):
            logger.info(f"Sent email to {recipient}: {subject}")
            return NotificationResult(success=True)

        error = (
            data.get("error") or data.get("message") or "Email endpoint reported failure"
        )
        logger.warning(f"Email to {recipient} not sent: {error}")
        return NotificationResult(success=False, error=str(error))


def _error_from_response(response: httpx.Response) -> str | None:
    """Pull an error message out of a failed endpoint response, if any."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error") or data.get("message")
    return str(error) if error else None
