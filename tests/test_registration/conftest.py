"""Shared fixtures for registration tests."""

import httpx
import pytest

from django_regdesk.registration.client import RegistrationAPIClient
from django_regdesk.registration.journal import InMemoryJournalStorage, RegistrationJournal
from tests.test_registration.factories import FakeBackend


@pytest.fixture
def journal() -> RegistrationJournal:
    return RegistrationJournal(InMemoryJournalStorage())


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def api_client(backend: FakeBackend) -> RegistrationAPIClient:
    return RegistrationAPIClient(transport=httpx.MockTransport(backend))
