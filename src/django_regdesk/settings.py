"""Typed configuration for django-regdesk.

Reads a single ``DJANGO_REGDESK`` dict from Django settings and exposes it as
composed, frozen dataclasses with sensible defaults.

Usage::

    from django_regdesk.settings import get_config

    config = get_config()
    config.razorpay.key_id
    config.api.order_url
    config.per_person_rate
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field

from django.conf import settings
from django.test.signals import setting_changed


@dataclass(frozen=True, slots=True)
class RazorpayConfig:
    """Checkout widget configuration."""

    key_id: str = ""
    checkout_script_url: str = "https://checkout.razorpay.com/v1/checkout.js"
    widget_factory: str = ""
    merchant_name: str = "Technocratz 2.0"
    theme_color: str = "#3b82f6"


@dataclass(frozen=True, slots=True)
class ApiConfig:
    """Remote order-creation and submission endpoints."""

    order_url: str = "https://apvcouncil.in/api/create_order2.php"
    submission_url: str = "https://apvcouncil.in/api/submission_handler.php"
    timeout: float = 30.0


@dataclass(frozen=True, slots=True)
class JournalConfig:
    """Where and how the local registration journal is stored."""

    cache_alias: str = "default"
    key_prefix: str = "technocratz"
    schema_version: int = 1


@dataclass(frozen=True, slots=True)
class LogoConfig:
    """A logo drawn in the receipt header.

    ``url`` may be empty, in which case only ``label`` is rendered.
    """

    label: str
    url: str = ""


@dataclass(frozen=True, slots=True)
class ReceiptConfig:
    """PDF receipt layout and asset configuration."""

    title: str = "Technocratz 2.0"
    subtitle: str = "Registration Receipt"
    footer_lines: tuple[str, ...] = (
        "Thank you for registering for Technocratz 2.0",
        "This is a computer-generated receipt. No signature required.",
    )
    logos: tuple[LogoConfig, ...] = (
        LogoConfig(label="Agnel Polytechnic"),
        LogoConfig(label="APV Council"),
    )
    filename_suffix: str = "Technocratz2.0"
    fetch_timeout: float = 10.0


@dataclass(frozen=True, slots=True)
class RegdeskConfig:
    """Top-level django-regdesk configuration."""

    razorpay: RazorpayConfig = field(default_factory=RazorpayConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    journal: JournalConfig = field(default_factory=JournalConfig)
    receipt: ReceiptConfig = field(default_factory=ReceiptConfig)
    per_person_rate: int = 1
    currency: str = "INR"
    currency_symbol: str = "Rs."
    checkout_timeout_seconds: float | None = 900


def _section(raw_data: dict[str, object], name: str) -> dict[str, object]:
    """Pop a nested section from the raw settings dict, requiring a mapping."""
    value = raw_data.pop(name, {})
    if not isinstance(value, Mapping):
        msg = f"DJANGO_REGDESK['{name}'] must be a mapping (dict-like object)"
        raise TypeError(msg)
    return dict(value)


def _build_receipt_config(data: dict[str, object]) -> ReceiptConfig:
    """Build :class:`ReceiptConfig`, coercing list settings into tuples."""
    if "footer_lines" in data:
        data["footer_lines"] = tuple(str(line) for line in data["footer_lines"])  # type: ignore[union-attr]
    if "logos" in data:
        logos = []
        for idx, logo in enumerate(data["logos"]):  # type: ignore[union-attr]
            if not isinstance(logo, Mapping):
                msg = f"DJANGO_REGDESK['receipt']['logos'][{idx}] must be a mapping (dict-like object)"
                raise TypeError(msg)
            logos.append(LogoConfig(**dict(logo)))
        data["logos"] = tuple(logos)
    return ReceiptConfig(**data)


@functools.lru_cache(maxsize=1)
def get_config() -> RegdeskConfig:
    """Build and return the regdesk configuration.

    Reads ``settings.DJANGO_REGDESK`` (a plain dict) and returns a frozen
    :class:`RegdeskConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "DJANGO_REGDESK", {})
    if not isinstance(raw, Mapping):
        msg = "DJANGO_REGDESK must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    razorpay_data = _section(raw_data, "razorpay")
    api_data = _section(raw_data, "api")
    journal_data = _section(raw_data, "journal")
    receipt_data = _section(raw_data, "receipt")

    config = RegdeskConfig(
        razorpay=RazorpayConfig(**razorpay_data),
        api=ApiConfig(**api_data),
        journal=JournalConfig(**journal_data),
        receipt=_build_receipt_config(receipt_data),
        **raw_data,
    )
    _validate_regdesk_config(config)
    return config


def _validate_regdesk_config(config: RegdeskConfig) -> None:
    """Validate high-impact configuration values with clear error messages."""
    if not isinstance(config.per_person_rate, int) or config.per_person_rate <= 0:
        msg = "DJANGO_REGDESK['per_person_rate'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.currency, str) or not config.currency.strip():
        msg = "DJANGO_REGDESK['currency'] must be a non-empty string"
        raise ValueError(msg)
    timeout = config.checkout_timeout_seconds
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        msg = "DJANGO_REGDESK['checkout_timeout_seconds'] must be a positive number or None"
        raise ValueError(msg)
    for key in ("order_url", "submission_url"):
        value = getattr(config.api, key)
        if not isinstance(value, str) or not value.strip():
            msg = f"DJANGO_REGDESK['api']['{key}'] must be a non-empty string"
            raise ValueError(msg)
    if not isinstance(config.api.timeout, (int, float)) or config.api.timeout <= 0:
        msg = "DJANGO_REGDESK['api']['timeout'] must be a positive number"
        raise ValueError(msg)
    if not isinstance(config.journal.schema_version, int) or config.journal.schema_version <= 0:
        msg = "DJANGO_REGDESK['journal']['schema_version'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.journal.key_prefix, str) or not config.journal.key_prefix.strip():
        msg = "DJANGO_REGDESK['journal']['key_prefix'] must be a non-empty string"
        raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "DJANGO_REGDESK":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="django_regdesk.settings.clear_config_cache")
