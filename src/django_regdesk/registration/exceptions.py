"""Exception hierarchy for registration checkout.

Errors raised before a payment is taken (:class:`ScriptLoadError`,
:class:`OrderCreationError`) abort the checkout.  Errors raised after a
successful payment are never allowed to turn the checkout into a failure;
they are captured as warnings on the result instead.
"""


class RegdeskError(Exception):
    """Base class for all django-regdesk errors."""


class ScriptLoadError(RegdeskError):
    """The checkout widget could not be loaded."""


class OrderCreationError(RegdeskError):
    """The remote order-creation endpoint failed or returned no order id.

    Attributes:
        status_code: HTTP status returned by the endpoint, if any.
        body: Raw response body text, if any.
    """

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CheckoutInProgressError(RegdeskError):
    """A checkout is already running on this orchestrator."""


class CheckoutTimeoutError(RegdeskError):
    """The checkout widget never reported an outcome."""


class JournalWriteError(RegdeskError):
    """The local journal store could not be written."""


class SubmissionError(RegdeskError):
    """Base class for registration submission failures.

    Attributes:
        stage: The submission pipeline stage that produced the failure.
    """

    stage = "unknown_error"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class PayloadValidationError(SubmissionError):
    """The submission payload failed client-side validation."""

    stage = "validation"


class NetworkError(SubmissionError):
    """The submission endpoint could not be reached."""

    stage = "network_error"


class CorsError(SubmissionError):
    """The submission request was rejected as cross-origin."""

    stage = "cors_error"


class ParseError(SubmissionError):
    """The submission endpoint returned a body that is not JSON."""

    stage = "parse"


class BackendRejectionError(SubmissionError):
    """The submission endpoint returned a non-2xx status."""

    stage = "backend_rejection"


class BackendLogicError(SubmissionError):
    """The submission endpoint answered 2xx with ``success: false``."""

    stage = "backend_error"


class WidgetFailure(RegdeskError):
    """The payment provider reported a failed or declined payment."""


class WidgetCancelled(RegdeskError):
    """The user dismissed the checkout widget."""


class ReceiptGenerationError(RegdeskError):
    """The receipt document could not be rendered."""
