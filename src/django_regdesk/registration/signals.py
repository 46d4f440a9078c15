"""Custom signals for the registration app.

Signals:
    payment_succeeded: Sent when the checkout widget reports a successful
        payment and the payment record has been built.
        Sender: The ``CheckoutOrchestrator`` class.
        Kwargs:
            payment: The ``PaymentRecord`` instance.
            registration: The ``Registration`` the payment belongs to.
    submission_failed: Sent when a paid registration could not be submitted
        to the backend and was written to the failed-submissions journal.
        Sender: The ``CheckoutOrchestrator`` class.
        Kwargs:
            record: The ``FailedSubmissionRecord`` that was journaled.
    checkout_notice: User-facing notification (toast) for terminal and
        near-terminal checkout states.
        Sender: The ``CheckoutOrchestrator`` class.
        Kwargs:
            level: One of ``"success"``, ``"error"``, ``"warning"``, ``"info"``.
            message: Human-readable text.
"""

from django.dispatch import Signal

payment_succeeded = Signal()
submission_failed = Signal()
checkout_notice = Signal()
