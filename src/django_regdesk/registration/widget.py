"""Contract for the third-party checkout widget and its loader.

The checkout widget is a black box supplied by the payment provider.  It is
constructed from an options mapping, exposes ``open()`` and
``on("payment.failed", callback)``, and reports the outcome through three
callbacks: ``options["handler"]`` on success,
``options["modal"]["ondismiss"]`` when the user closes it, and the
``payment.failed`` listener.

:class:`CheckoutScriptLoader` resolves the widget factory at most once per
process.  Concurrent callers wait for a load that is already in flight
instead of starting a second one.
"""

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from django.utils.module_loading import import_string

from django_regdesk.registration.exceptions import ScriptLoadError
from django_regdesk.settings import get_config

logger = logging.getLogger(__name__)

PAYMENT_FAILED_EVENT = "payment.failed"


class CheckoutWidget(Protocol):
    """A constructed checkout widget instance."""

    def open(self) -> None: ...

    def on(self, event: str, callback: Callable[[Mapping[str, Any]], None]) -> None: ...


type WidgetFactory = Callable[[dict[str, Any]], CheckoutWidget]


class CheckoutScriptLoader:
    """Idempotently load the checkout widget factory.

    Args:
        source: Either a dotted import path to the widget factory or a
            zero-argument callable returning it. Defaults to
            ``DJANGO_REGDESK["razorpay"]["widget_factory"]``.
        factory: An already-available factory; when given, no loading ever
            happens.
    """

    def __init__(
        self,
        source: str | Callable[[], WidgetFactory] | None = None,
        *,
        factory: WidgetFactory | None = None,
    ) -> None:
        self.source = source if source is not None else get_config().razorpay.widget_factory
        self._factory = factory
        self._lock = threading.Lock()
        self._loading: threading.Event | None = None
        self._error: ScriptLoadError | None = None

    @property
    def is_loaded(self) -> bool:
        return self._factory is not None

    def _load(self) -> WidgetFactory:
        """Resolve the factory from :attr:`source`.

        Raises:
            ScriptLoadError: If no source is configured or it cannot be loaded.
        """
        if not self.source:
            msg = "No checkout widget factory configured (DJANGO_REGDESK['razorpay']['widget_factory'])"
            raise ScriptLoadError(msg)
        try:
            factory = import_string(self.source) if isinstance(self.source, str) else self.source()
        except Exception as exc:
            msg = f"Checkout widget failed to load: {exc}"
            raise ScriptLoadError(msg) from exc
        if not callable(factory):
            msg = f"Checkout widget factory {self.source!r} is not callable"
            raise ScriptLoadError(msg)
        return factory

    def ensure_loaded(self, timeout: float | None = None) -> WidgetFactory:
        """Return the widget factory, loading it on first use.

        Args:
            timeout: How long to wait for a load started by another thread.

        Returns:
            The widget factory.

        Raises:
            ScriptLoadError: If loading fails, or an in-flight load did not
                finish within *timeout*.
        """
        if self._factory is not None:
            return self._factory

        with self._lock:
            if self._factory is not None:
                return self._factory
            pending = self._loading
            if pending is None:
                self._loading = threading.Event()
                self._error = None

        if pending is not None:
            logger.debug("Waiting for in-flight checkout widget load")
            if not pending.wait(timeout):
                msg = "Timed out waiting for the checkout widget to load"
                raise ScriptLoadError(msg)
            if self._factory is None:
                raise self._error or ScriptLoadError("Checkout widget failed to load")
            return self._factory

        try:
            factory = self._load()
        except ScriptLoadError as exc:
            logger.error("Checkout widget failed to load: %s", exc)
            with self._lock:
                self._error = exc
                done, self._loading = self._loading, None
            done.set()
            raise

        with self._lock:
            self._factory = factory
            done, self._loading = self._loading, None
        done.set()
        logger.info("Loaded checkout widget factory %r", self.source)
        return factory
