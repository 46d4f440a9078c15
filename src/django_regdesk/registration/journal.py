"""Local journal of registrations, payments, and failed submissions.

The journal is a best-effort record kept on the client side of the checkout.
It stores three JSON collections in a key-value store under namespaced keys
and rewrites the whole collection on every append (read-modify-write).

The store is injected through the :class:`JournalStorage` protocol.  By
default the journal lives in Django's cache framework
(:class:`CacheJournalStorage`); tests use :class:`InMemoryJournalStorage`.

Writes are not atomic across processes.  A single user session writes to a
journal at a time, and at the expected scale (hundreds of records) rewriting
the collection is acceptable; a multi-writer deployment would need a real
database instead.
"""

import json
import logging
import secrets
import string
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any, Protocol

from django.core.cache import caches
from django.utils import timezone

from django_regdesk.registration.exceptions import JournalWriteError
from django_regdesk.registration.models import (
    FailedSubmissionRecord,
    PaymentRecord,
    Registration,
)
from django_regdesk.settings import get_config

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase
_FALLBACK_RANDOM_CHARS = 9


class JournalStorage(Protocol):
    """Minimal string key-value store backing the journal."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class CacheJournalStorage:
    """Journal storage on top of a Django cache alias.

    Entries never expire.  Use a persistent cache backend (database or file
    based) when the journal must survive restarts.

    Args:
        alias: Name of the cache in ``settings.CACHES``. Defaults to
            ``DJANGO_REGDESK["journal"]["cache_alias"]``.
    """

    def __init__(self, alias: str | None = None) -> None:
        self.alias = alias or get_config().journal.cache_alias

    def get(self, key: str) -> str | None:
        return caches[self.alias].get(key)

    def set(self, key: str, value: str) -> None:
        caches[self.alias].set(key, value, timeout=None)


class InMemoryJournalStorage:
    """Dict-backed journal storage, mainly for tests."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


def _uuid4() -> str:
    return str(uuid.uuid4())


def _fallback_id() -> str:
    """Return a ``reg_<epochMillis>_<base36>`` identifier."""
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(_FALLBACK_RANDOM_CHARS))
    return f"reg_{millis}_{suffix}"


def generate_id(uuid_factory: Callable[[], str] = _uuid4) -> str:
    """Generate an opaque registration identifier.

    Prefers a random UUID.  When the platform has no secure random source
    (``NotImplementedError`` from ``os.urandom``), falls back to
    ``reg_<epochMillis>_<9 base36 chars>``.  No uniqueness check against the
    journal is performed.

    Args:
        uuid_factory: Callable producing the preferred identifier.

    Returns:
        The new identifier.
    """
    try:
        return uuid_factory()
    except NotImplementedError:
        logger.warning("No secure random source available, using timestamp registration id")
        return _fallback_id()


class RegistrationJournal:
    """Append-only journal of registrations, payments, and failed submissions.

    Args:
        storage: Key-value store to read and write. Defaults to
            :class:`CacheJournalStorage`.
        key_prefix: Namespace for journal keys. Defaults to
            ``DJANGO_REGDESK["journal"]["key_prefix"]``.
        schema_version: Version stamped on every written collection.
    """

    def __init__(
        self,
        storage: JournalStorage | None = None,
        *,
        key_prefix: str | None = None,
        schema_version: int | None = None,
    ) -> None:
        config = get_config().journal
        self.storage = storage if storage is not None else CacheJournalStorage()
        prefix = key_prefix or config.key_prefix
        self.schema_version = schema_version or config.schema_version
        self.registrations_key = f"{prefix}_registrations_v1"
        self.payments_key = f"{prefix}_payments_v1"
        self.failed_submissions_key = f"{prefix}_failed_submissions_v1"

    generate_id = staticmethod(generate_id)

    # -- raw collection access ----------------------------------------------

    def _read(self, key: str) -> list[dict[str, Any]]:
        """Return the raw records stored under *key*.

        Accepts both the versioned envelope and a bare legacy list.

        Raises:
            ValueError: If the stored value is not valid journal JSON.
        """
        raw = self.storage.get(key)
        if not raw:
            return []
        data = json.loads(raw)
        if isinstance(data, dict):
            version = data.get("schema_version")
            if isinstance(version, int) and version > self.schema_version:
                logger.warning(
                    "Journal key %s has schema version %s, newer than supported %s",
                    key,
                    version,
                    self.schema_version,
                )
            data = data.get("records")
        if not isinstance(data, list):
            msg = f"Journal key {key} does not contain a list of records"
            raise ValueError(msg)
        return [record for record in data if isinstance(record, dict)]

    def _write(self, key: str, records: list[dict[str, Any]]) -> None:
        """Replace the collection under *key*.

        Raises:
            JournalWriteError: If the records cannot be encoded or stored.
        """
        envelope = {"schema_version": self.schema_version, "records": records}
        try:
            self.storage.set(key, json.dumps(envelope))
        except Exception as exc:
            msg = f"Could not write journal key {key}: {exc}"
            raise JournalWriteError(msg) from exc

    def _read_for_append(self, key: str) -> list[dict[str, Any]]:
        """Read a collection before appending, resetting it if corrupt."""
        try:
            return self._read(key)
        except ValueError:
            logger.exception("Journal key %s is corrupt, starting a new collection", key)
            return []

    def _append(self, key: str, record: dict[str, Any]) -> None:
        records = self._read_for_append(key)
        records.append(record)
        self._write(key, records)

    def _list[T](self, key: str, parse: Callable[[dict[str, Any]], T]) -> list[T]:
        """Read and parse a collection, returning ``[]`` on corrupt data."""
        try:
            return [parse(record) for record in self._read(key)]
        except (ValueError, KeyError, TypeError):
            logger.exception("Could not read journal key %s", key)
            return []

    # -- registrations ------------------------------------------------------

    def list_registrations(self) -> list[Registration]:
        """Return every journaled registration, or ``[]`` if the store is corrupt."""
        return self._list(self.registrations_key, Registration.from_dict)

    def append_registration(self, registration: Registration) -> None:
        """Journal a registration before payment starts.

        Raises:
            JournalWriteError: If the store is unwritable. Checkout must not
                proceed without the pending record.
        """
        self._append(self.registrations_key, registration.to_dict())
        logger.info("Journaled registration %s for %s", registration.id, registration.event)

    def update_registration(self, registration_id: str, **changes: Any) -> Registration | None:
        """Amend a journaled registration in place.

        Used to record the payment outcome once checkout resolves.

        Args:
            registration_id: The registration to amend.
            **changes: Field values to replace (e.g. ``payment_status``).

        Returns:
            The amended registration, or ``None`` if no record matched.

        Raises:
            JournalWriteError: If the store is unwritable.
        """
        records = self._read_for_append(self.registrations_key)
        for idx, record in enumerate(records):
            if record.get("id") != registration_id:
                continue
            updated = replace(Registration.from_dict(record), **changes)
            records[idx] = updated.to_dict()
            self._write(self.registrations_key, records)
            return updated
        logger.warning("Registration %s not found in journal", registration_id)
        return None

    # -- payments -----------------------------------------------------------

    def list_payments(self) -> list[PaymentRecord]:
        return self._list(self.payments_key, PaymentRecord.from_dict)

    def append_payment(self, record: PaymentRecord) -> None:
        """Journal a successful payment."""
        self._append(self.payments_key, record.to_dict())
        logger.info("Journaled payment %s for registration %s", record.payment_id, record.registration_id)

    # -- failed submissions -------------------------------------------------

    def list_failed_submissions(self) -> list[FailedSubmissionRecord]:
        return self._list(self.failed_submissions_key, FailedSubmissionRecord.from_dict)

    def append_failed_submission(
        self,
        payload: Mapping[str, Any],
        error: str,
        stage: str = "",
    ) -> FailedSubmissionRecord:
        """Journal a submission the backend did not accept.

        Args:
            payload: The submission payload that failed.
            error: The failure message.
            stage: The failing submission stage.

        Returns:
            The journaled record.
        """
        record = FailedSubmissionRecord(
            payload=dict(payload),
            error=error,
            stage=stage,
            timestamp=timezone.now().isoformat(),
        )
        self._append(self.failed_submissions_key, record.to_dict())
        logger.warning("Journaled failed submission at stage %s: %s", stage, error)
        return record
