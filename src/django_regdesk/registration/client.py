"""HTTP client for the external order-creation and submission endpoints.

Provides :class:`RegistrationAPIClient`, which creates payment orders before
the checkout widget opens and submits paid registrations afterwards.

The two calls fail differently.  Order creation raises
:class:`~django_regdesk.registration.exceptions.OrderCreationError`, since a
checkout cannot start without an order.  Submission happens after money has
moved, so it never raises.  It returns a
:class:`~django_regdesk.registration.models.SubmissionResult` tagged with the
stage that failed.
"""

import json
import logging
from typing import Any

import httpx

from django_regdesk.registration.exceptions import OrderCreationError
from django_regdesk.registration.models import SubmissionPayload, SubmissionResult, SubmissionStage
from django_regdesk.registration.submission import validate_submission_payload
from django_regdesk.settings import get_config

logger = logging.getLogger(__name__)

_ERROR_SNIPPET_CHARS = 200
_LOG_SNIPPET_CHARS = 500
_CORS_MARKERS = ("cors", "cross-origin")


def classify_request_error(exc: httpx.HTTPError) -> str:
    """Map a transport-level exception to a submission stage.

    Args:
        exc: The exception raised by ``httpx``.

    Returns:
        ``"cors_error"`` when the message carries a cross-origin rejection
        signature, ``"network_error"`` for transport failures, otherwise
        ``"unknown_error"``.
    """
    message = str(exc).lower()
    if any(marker in message for marker in _CORS_MARKERS):
        return SubmissionStage.CORS_ERROR
    if isinstance(exc, httpx.TransportError):
        return SubmissionStage.NETWORK_ERROR
    return SubmissionStage.UNKNOWN_ERROR


_STAGE_MESSAGES = {
    SubmissionStage.NETWORK_ERROR: (
        "Network error: Failed to reach server. Please check your internet connection and try again."
    ),
    SubmissionStage.CORS_ERROR: "CORS error: Cross-origin request blocked. Please contact support.",
}


class RegistrationAPIClient:
    """HTTP client for the registration backend.

    Args:
        order_url: Endpoint that creates a payment order. Defaults to
            ``DJANGO_REGDESK["api"]["order_url"]``.
        submission_url: Endpoint that accepts paid registrations. Defaults to
            ``DJANGO_REGDESK["api"]["submission_url"]``.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport, e.g. ``httpx.MockTransport``
            in tests.

    Example::

        client = RegistrationAPIClient()
        order_id = client.create_order(5000)
        result = client.submit_registration(payload)
    """

    def __init__(
        self,
        *,
        order_url: str | None = None,
        submission_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        config = get_config().api
        self.order_url = order_url or config.order_url
        self.submission_url = submission_url or config.submission_url
        self.timeout = timeout or config.timeout
        self.transport = transport
        self.headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, headers=self.headers, transport=self.transport)

    def create_order(self, amount_subunit: int) -> str:
        """Create a payment order for *amount_subunit* paise.

        Args:
            amount_subunit: The charge in the currency's smallest unit.

        Returns:
            The provider order id (``order_id``, or ``id`` as a fallback).

        Raises:
            OrderCreationError: On connection failure, a non-2xx response, or
                a response without an order id.
        """
        logger.info("Creating order for %d subunits at %s", amount_subunit, self.order_url)
        with self._client() as client:
            try:
                response = client.post(self.order_url, json={"amount": amount_subunit})
            except httpx.HTTPError as exc:
                msg = f"Order API connection error for URL {self.order_url}: {exc}"
                raise OrderCreationError(msg) from exc

        if not response.is_success:
            body = response.text
            logger.error("Order creation failed with status %d: %s", response.status_code, body)
            msg = f"Failed to create order: {response.status_code} {body}"
            raise OrderCreationError(msg, status_code=response.status_code, body=body)

        try:
            data = response.json()
        except ValueError as exc:
            msg = "Invalid order response: body is not JSON"
            raise OrderCreationError(msg, status_code=response.status_code, body=response.text) from exc

        order_id = (data.get("order_id") or data.get("id")) if isinstance(data, dict) else None
        if not order_id:
            logger.error("Invalid order response: %s", data)
            msg = "Invalid order response: missing order_id"
            raise OrderCreationError(msg, status_code=response.status_code, body=response.text)

        logger.info("Created order %s", order_id)
        return str(order_id)

    def submit_registration(self, payload: SubmissionPayload) -> SubmissionResult:
        """Validate and post a paid registration to the submission endpoint.

        The payload is validated first; an invalid payload never reaches the
        network.  The response body is read as text before JSON parsing so
        that HTML error pages can be reported.

        Args:
            payload: The canonical submission payload.

        Returns:
            A :class:`SubmissionResult`.  Failures carry one of the stages
            ``validation``, ``parse``, ``backend_rejection``,
            ``backend_error`` (or the backend's own stage), ``network_error``,
            ``cors_error`` or ``unknown_error``.
        """
        validation = validate_submission_payload(payload)
        if not validation.valid:
            logger.error("Submission payload failed validation: %s", validation.error)
            return SubmissionResult.failure(SubmissionStage.VALIDATION, validation.error or "Invalid payload")

        logger.info(
            "Submitting registration for %s (%d participant(s)) to %s",
            payload.competition,
            len(payload.participants),
            self.submission_url,
        )
        try:
            with self._client() as client:
                response = client.post(self.submission_url, json=payload.to_dict())
                text = response.text
            return self._interpret_submission_response(response, text)
        except httpx.HTTPError as exc:
            stage = classify_request_error(exc)
            logger.exception("Submission request failed (%s)", stage)
            return SubmissionResult.failure(stage, _STAGE_MESSAGES.get(stage) or str(exc) or "Unknown error")
        except Exception as exc:
            logger.exception("Submission failed unexpectedly")
            return SubmissionResult.failure(SubmissionStage.UNKNOWN_ERROR, str(exc) or "Unknown error")

    def _interpret_submission_response(self, response: httpx.Response, text: str) -> SubmissionResult:
        """Turn a submission response into a :class:`SubmissionResult`."""
        try:
            data: Any = json.loads(text)
        except ValueError:
            logger.error("Submission response is not JSON: %s", text[:_LOG_SNIPPET_CHARS])
            if text.strip().startswith("<"):
                logger.error("Submission response appears to be an HTML error page")
            return SubmissionResult.failure(
                SubmissionStage.PARSE,
                f"Invalid JSON response from server: {text[:_ERROR_SNIPPET_CHARS]}",
            )

        body = data if isinstance(data, dict) else {}

        if not response.is_success:
            error = (
                body.get("error")
                or body.get("message")
                or f"HTTP {response.status_code}: {response.reason_phrase}"
            )
            logger.error("Submission rejected with status %d: %s", response.status_code, error)
            return SubmissionResult.failure(SubmissionStage.BACKEND_REJECTION, str(error), data=body)

        if body.get("success") is False:
            stage = body.get("stage") or SubmissionStage.BACKEND_ERROR
            error = body.get("error") or body.get("message") or "Submission failed"
            logger.error("Backend reported submission failure at stage %s: %s", stage, error)
            return SubmissionResult.failure(str(stage), str(error), data=body)

        result = SubmissionResult.ok(body)
        logger.info("Submission accepted (registration number %r)", result.registration_number)
        return result
