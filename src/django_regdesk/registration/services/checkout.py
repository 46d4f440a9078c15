"""Checkout orchestration: load the widget, create an order, take payment.

:class:`CheckoutOrchestrator` drives one payment attempt through the states
``idle -> script_loading -> order_creating -> widget_open`` and then one of
``succeeded``, ``failed`` or ``cancelled``.  The widget reports its outcome
through callbacks that may fire synchronously inside ``open()`` or later
from another thread; the orchestrator blocks on a single-assignment
resolution slot until one of them (or the timeout) settles it.

Once the provider has reported a successful payment, the checkout result is
``success=True`` no matter what happens afterwards.  Bookkeeping steps
(journaling the payment, submitting the registration, generating the
receipt) are each captured into :attr:`CheckoutResult.warnings` instead of
raising, and a failed submission is journaled for manual reconciliation.
"""

import enum
import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Self

from django.utils import timezone

from django_regdesk.registration.client import RegistrationAPIClient
from django_regdesk.registration.exceptions import (
    CheckoutInProgressError,
    CheckoutTimeoutError,
    OrderCreationError,
    ScriptLoadError,
    WidgetCancelled,
    WidgetFailure,
)
from django_regdesk.registration.journal import RegistrationJournal
from django_regdesk.registration.models import (
    PaymentRecord,
    PaymentStatus,
    Registration,
    RegistrationPayload,
    SubmissionPayload,
    SubmissionResult,
    SubmissionStage,
)
from django_regdesk.registration.services.receipt import (
    ReceiptArtifact,
    extract_receipt_data,
    generate_receipt,
)
from django_regdesk.registration.signals import checkout_notice, payment_succeeded, submission_failed
from django_regdesk.registration.submission import build_submission_payload, map_event_to_competition
from django_regdesk.registration.widget import PAYMENT_FAILED_EVENT, CheckoutScriptLoader
from django_regdesk.settings import get_config

logger = logging.getLogger(__name__)

_USE_CONFIG: Any = object()


class CheckoutState(enum.StrEnum):
    """Lifecycle state of a checkout attempt."""

    IDLE = "idle"
    SCRIPT_LOADING = "script_loading"
    ORDER_CREATING = "order_creating"
    WIDGET_OPEN = "widget_open"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


_PAYMENT_STATUS = {
    CheckoutState.SUCCEEDED: PaymentStatus.PAID,
    CheckoutState.FAILED: PaymentStatus.FAILED,
    CheckoutState.CANCELLED: PaymentStatus.CANCELLED,
}


@dataclass(frozen=True, slots=True)
class CheckoutWarning:
    """A post-payment bookkeeping step that did not complete."""

    step: str
    message: str


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    """Input to :meth:`CheckoutOrchestrator.start_payment`.

    Attributes:
        amount_subunit: Charge in the currency's smallest unit.
        event_name: Display name of the competition.
        registration: The journaled pending registration being paid for.
    """

    amount_subunit: int
    event_name: str
    registration: Registration


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    """Terminal outcome of a checkout attempt.

    Attributes:
        success: ``True`` once the provider reported a successful payment.
        state: The terminal :class:`CheckoutState`.
        payment_record: The payment, on success.
        error: Failure description; ``"cancelled"`` when the user dismissed
            the widget.
        exception: The typed error behind a failure.
        warnings: Post-payment steps that failed.
        submission: The backend submission outcome, on success.
        receipt: The generated receipt, when one could be produced.
    """

    success: bool
    state: CheckoutState
    payment_record: PaymentRecord | None = None
    error: str = ""
    exception: Exception | None = None
    warnings: tuple[CheckoutWarning, ...] = ()
    submission: SubmissionResult | None = None
    receipt: ReceiptArtifact | None = None

    @classmethod
    def failed(
        cls,
        exc: Exception,
        *,
        state: CheckoutState = CheckoutState.FAILED,
        error: str = "",
    ) -> Self:
        return cls(success=False, state=state, error=error or str(exc), exception=exc)


class _Resolution:
    """Single-assignment slot for a checkout outcome.

    A source first :meth:`claim`\\ s the slot, then :meth:`set`\\ s the result.
    Only the first claim wins; later callbacks are ignored.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self.claimed_by = ""
        self.result: CheckoutResult | None = None

    def claim(self, source: str) -> bool:
        with self._lock:
            if self.claimed_by:
                return False
            self.claimed_by = source
            return True

    def set(self, result: CheckoutResult) -> None:
        self.result = result
        self._done.set()

    def resolve(self, source: str, result: CheckoutResult) -> bool:
        if not self.claim(source):
            return False
        self.set(result)
        return True

    def wait(self, timeout: float | None) -> CheckoutResult | None:
        """Block until the slot is set, returning ``None`` on timeout."""
        self._done.wait(timeout)
        return self.result if self._done.is_set() else None


def build_prefill(payload: RegistrationPayload) -> dict[str, str]:
    """Return the widget prefill for the primary participant.

    The primary participant is the team leader, the single participant, or
    the first listed participant.  Missing values are empty strings.
    """
    primary = next(iter(payload.participants), None)
    if primary is None:
        return {"name": "", "email": "", "contact": ""}
    return {"name": primary.name, "email": primary.email, "contact": primary.contact}


def _notify(level: str, message: str) -> None:
    """Send a ``checkout_notice`` without letting receivers raise."""
    for receiver, response in checkout_notice.send_robust(
        sender=CheckoutOrchestrator, level=level, message=message
    ):
        if isinstance(response, Exception):
            logger.error("checkout_notice receiver %r failed: %s", receiver, response)


class CheckoutOrchestrator:
    """Run a payment attempt from widget loading to terminal state.

    Args:
        client: Order and submission client.
        journal: Journal for payments, failed submissions and outcomes.
        loader: Checkout widget loader.
        timeout: Seconds to wait for the widget to report an outcome.
            Defaults to ``DJANGO_REGDESK["checkout_timeout_seconds"]``;
            ``None`` waits indefinitely.

    Example::

        orchestrator = CheckoutOrchestrator()
        result = orchestrator.start_payment(
            CheckoutRequest(amount_subunit=100, event_name="AutoCAD Competition", registration=registration)
        )
        if result.success and result.receipt:
            return result.receipt.as_response()
    """

    def __init__(
        self,
        *,
        client: RegistrationAPIClient | None = None,
        journal: RegistrationJournal | None = None,
        loader: CheckoutScriptLoader | None = None,
        timeout: float | None = _USE_CONFIG,
    ) -> None:
        self.client = client or RegistrationAPIClient()
        self.journal = journal or RegistrationJournal()
        self.loader = loader or CheckoutScriptLoader()
        self.timeout = get_config().checkout_timeout_seconds if timeout is _USE_CONFIG else timeout
        self.state = CheckoutState.IDLE
        self._lock = threading.Lock()
        self._loading = False

    @property
    def loading(self) -> bool:
        """``True`` while a checkout is in flight."""
        return self._loading

    def start_payment(self, request: CheckoutRequest) -> CheckoutResult:
        """Run one checkout attempt and block until it resolves.

        Args:
            request: What to charge and for which registration.

        Returns:
            The terminal :class:`CheckoutResult`.  Failures before payment
            (widget load, order creation, provider decline, dismissal,
            timeout) give ``success=False``; anything after a successful
            payment gives ``success=True`` with warnings.

        Raises:
            CheckoutInProgressError: If this orchestrator is already running
                a checkout.
        """
        with self._lock:
            if self._loading:
                msg = "A checkout is already in progress"
                raise CheckoutInProgressError(msg)
            self._loading = True
            self.state = CheckoutState.IDLE

        try:
            result = self._run(request)
        finally:
            with self._lock:
                self._loading = False

        self.state = result.state
        self._record_outcome(request.registration, result)
        logger.info(
            "Checkout for registration %s finished: %s%s",
            request.registration.id,
            result.state,
            f" ({result.error})" if result.error else "",
        )
        return result

    def _run(self, request: CheckoutRequest) -> CheckoutResult:
        self.state = CheckoutState.SCRIPT_LOADING
        try:
            factory = self.loader.ensure_loaded(self.timeout)
        except ScriptLoadError as exc:
            _notify("error", "Failed to load payment gateway. Please refresh and try again.")
            return CheckoutResult.failed(exc)

        self.state = CheckoutState.ORDER_CREATING
        try:
            order_id = self.client.create_order(request.amount_subunit)
        except OrderCreationError as exc:
            logger.error("Order creation failed for registration %s: %s", request.registration.id, exc)
            _notify("error", f"Payment failed: {exc}")
            return CheckoutResult.failed(exc)

        resolution = _Resolution()
        options = self._widget_options(request, order_id, resolution)

        self.state = CheckoutState.WIDGET_OPEN
        try:
            widget = factory(options)
            widget.on(PAYMENT_FAILED_EVENT, lambda response: self._on_failure(response, resolution))
            widget.open()
        except Exception as exc:
            logger.exception("Checkout widget raised while opening")
            resolution.resolve("widget", CheckoutResult.failed(WidgetFailure(f"Checkout widget error: {exc}")))

        result = resolution.wait(self.timeout)
        if result is None:
            timed_out = CheckoutResult.failed(
                CheckoutTimeoutError(f"No payment outcome within {self.timeout} seconds")
            )
            if resolution.resolve("timeout", timed_out):
                result = timed_out
                logger.warning("Checkout for order %s timed out", order_id)
                _notify("error", "Payment timed out. Please try again.")
            else:
                result = resolution.wait(None)
        return result

    def _widget_options(self, request: CheckoutRequest, order_id: str, resolution: _Resolution) -> dict[str, Any]:
        """Build the widget options with every callback already attached."""
        config = get_config()
        return {
            "key": config.razorpay.key_id,
            "amount": request.amount_subunit,
            "currency": config.currency,
            "name": config.razorpay.merchant_name,
            "description": request.event_name,
            "order_id": order_id,
            "prefill": build_prefill(request.registration.payload),
            "theme": {"color": config.razorpay.theme_color},
            "modal": {"ondismiss": lambda: self._on_dismiss(resolution)},
            "handler": lambda response: self._on_success(request, order_id, response, resolution),
        }

    # -- widget callbacks ---------------------------------------------------

    def _on_success(
        self,
        request: CheckoutRequest,
        order_id: str,
        response: Mapping[str, Any],
        resolution: _Resolution,
    ) -> None:
        if not isinstance(response, Mapping):
            logger.error("Payment callback delivered %s instead of a mapping", type(response).__name__)
            response = {}
        if not resolution.claim("success"):
            if resolution.claimed_by == "timeout":
                logger.error(
                    "Payment %s reported after checkout timed out, recording it anyway",
                    response.get("razorpay_payment_id"),
                )
                self._settle_payment(request, order_id, response)
            else:
                logger.warning("Ignoring payment callback, checkout already resolved by %s", resolution.claimed_by)
            return
        # The slot is claimed: it must be set before control returns to the widget.
        resolution.set(self._settle_payment(request, order_id, response))

    def _settle_payment(
        self,
        request: CheckoutRequest,
        order_id: str,
        response: Mapping[str, Any],
    ) -> CheckoutResult:
        payment: PaymentRecord | None = None
        try:
            payment = self._payment_record(request, order_id, response)
            return self._complete_payment(request, payment, response)
        except Exception as exc:
            logger.exception("Post-payment handling failed for order %s", order_id)
            return CheckoutResult(
                success=True,
                state=CheckoutState.SUCCEEDED,
                payment_record=payment,
                warnings=(CheckoutWarning("success_callback", str(exc) or type(exc).__name__),),
            )

    def _on_failure(self, response: Mapping[str, Any], resolution: _Resolution) -> None:
        error = response.get("error") if isinstance(response, Mapping) else None
        description = (error.get("description") if isinstance(error, Mapping) else None) or "Payment failed"
        result = CheckoutResult.failed(WidgetFailure(description))
        if not resolution.resolve("failure", result):
            logger.warning("Ignoring payment.failed callback, checkout already resolved")
            return
        logger.warning("Payment failed: %s", description)
        _notify("error", f"Payment failed: {description}")

    def _on_dismiss(self, resolution: _Resolution) -> None:
        result = CheckoutResult.failed(
            WidgetCancelled("Payment cancelled"),
            state=CheckoutState.CANCELLED,
            error="cancelled",
        )
        if not resolution.resolve("dismiss", result):
            logger.debug("Ignoring dismiss callback, checkout already resolved")
            return
        logger.info("Checkout dismissed by user")
        _notify("info", "Payment cancelled")

    # -- post-payment pipeline ----------------------------------------------

    def _attempt[T](
        self,
        warnings: list[CheckoutWarning],
        step: str,
        func: Callable[..., T],
        *args: Any,
    ) -> T | None:
        """Run one bookkeeping step, recording a warning instead of raising."""
        try:
            return func(*args)
        except Exception as exc:
            logger.exception("Post-payment step %s failed", step)
            warnings.append(CheckoutWarning(step, str(exc) or type(exc).__name__))
            return None

    def _payment_record(self, request: CheckoutRequest, order_id: str, response: Mapping[str, Any]) -> PaymentRecord:
        return PaymentRecord(
            payment_id=str(response.get("razorpay_payment_id") or ""),
            order_id=str(response.get("razorpay_order_id") or order_id),
            signature=str(response.get("razorpay_signature") or ""),
            amount=request.amount_subunit,
            created_at=timezone.now().isoformat(),
            registration_id=request.registration.id,
            event=request.event_name,
            currency=get_config().currency,
        )

    def _complete_payment(
        self,
        request: CheckoutRequest,
        payment: PaymentRecord,
        response: Mapping[str, Any],
    ) -> CheckoutResult:
        """Record a successful payment and submit the registration."""
        registration = request.registration
        warnings: list[CheckoutWarning] = []
        logger.info("Payment %s succeeded for registration %s", payment.payment_id, registration.id)

        self._attempt(warnings, "journal_payment", self.journal.append_payment, payment)
        payment_succeeded.send_robust(sender=CheckoutOrchestrator, payment=payment, registration=registration)

        competition = (
            self._attempt(warnings, "competition", map_event_to_competition, request.event_name, registration.event)
            or request.event_name
        )
        payload: SubmissionPayload | None = None
        submission: SubmissionResult | None = None
        payload = self._attempt(
            warnings, "build_payload", build_submission_payload, registration, response, competition
        )
        if payload is not None:
            submission = self._attempt(warnings, "submission", self.client.submit_registration, payload)

        receipt = None
        if submission is not None and submission.success:
            data = self._attempt(
                warnings,
                "receipt_data",
                lambda: extract_receipt_data(
                    registration,
                    payment,
                    request.event_name,
                    registration_number=submission.registration_number,
                ),
            )
            receipt = self._attempt(warnings, "receipt", generate_receipt, data)
            if receipt is None and not any(w.step.startswith("receipt") for w in warnings):
                warnings.append(CheckoutWarning("receipt", "Receipt could not be generated"))
            _notify("success", "Payment successful! Registration submitted.")
        else:
            self._journal_failed_submission(warnings, payment, payload, submission)
            _notify(
                "warning",
                "Payment succeeded but registration could not be saved. "
                f"Please contact support with payment ID {payment.payment_id}.",
            )

        return CheckoutResult(
            success=True,
            state=CheckoutState.SUCCEEDED,
            payment_record=payment,
            warnings=tuple(warnings),
            submission=submission,
            receipt=receipt,
        )

    def _journal_failed_submission(
        self,
        warnings: list[CheckoutWarning],
        payment: PaymentRecord,
        payload: SubmissionPayload | None,
        submission: SubmissionResult | None,
    ) -> None:
        if submission is not None:
            stage, error = submission.stage, submission.error
            warnings.append(CheckoutWarning("submission", f"{stage}: {error}"))
        else:
            stage = SubmissionStage.UNKNOWN_ERROR
            error = warnings[-1].message if warnings else "Submission was not attempted"

        body = payload.to_dict() if payload is not None else payment.to_dict(legacy_aliases=True)
        record = self._attempt(
            warnings, "journal_failed_submission", self.journal.append_failed_submission, body, error, stage
        )
        if record is not None:
            submission_failed.send_robust(sender=CheckoutOrchestrator, record=record)

    def _record_outcome(self, registration: Registration, result: CheckoutResult) -> None:
        """Amend the journaled registration with the checkout outcome.

        Timeouts leave the registration pending, since the provider may still
        complete the payment.
        """
        if isinstance(result.exception, CheckoutTimeoutError):
            return
        status = _PAYMENT_STATUS.get(result.state)
        if status is None:
            return
        changes: dict[str, Any] = {"payment_status": status}
        if result.payment_record is not None:
            changes["payment_id"] = result.payment_record.payment_id
        try:
            self.journal.update_registration(registration.id, **changes)
        except Exception:
            logger.exception("Could not record checkout outcome for registration %s", registration.id)
