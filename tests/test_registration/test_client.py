"""Tests for RegistrationAPIClient -- order creation and submission HTTP layer."""

import httpx
import pytest

from django_regdesk.registration.client import RegistrationAPIClient, classify_request_error
from django_regdesk.registration.exceptions import OrderCreationError
from django_regdesk.registration.models import SubmissionParticipant, SubmissionPayload
from tests.test_registration.factories import ORDER_URL, SUBMISSION_URL, FakeBackend


def _payload(**overrides) -> SubmissionPayload:
    values = {
        "razorpay_payment_id": "pay_1",
        "razorpay_order_id": "order_1",
        "razorpay_signature": "sig",
        "competition": "AutoCAD",
        "institute": "Agnel Polytechnic",
        "participants": (SubmissionParticipant("Asha", "Computer", "5", "asha@example.com", "9876543210"),),
    }
    values.update(overrides)
    return SubmissionPayload(**values)


def _raising_client(exc: Exception) -> RegistrationAPIClient:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    return RegistrationAPIClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_defaults_come_from_settings():
    client = RegistrationAPIClient()
    assert client.order_url == ORDER_URL
    assert client.submission_url == SUBMISSION_URL
    assert client.timeout == 30.0
    assert client.headers["Content-Type"] == "application/json"


@pytest.mark.unit
def test_explicit_urls_override_settings():
    client = RegistrationAPIClient(order_url="https://o.test", submission_url="https://s.test", timeout=5)
    assert (client.order_url, client.submission_url, client.timeout) == ("https://o.test", "https://s.test", 5)


# ---------------------------------------------------------------------------
# create_order()
# ---------------------------------------------------------------------------


class TestCreateOrder:
    @pytest.mark.unit
    def test_returns_order_id_and_posts_amount(self, api_client, backend: FakeBackend):
        assert api_client.create_order(5000) == "order_abc"
        assert backend.bodies(ORDER_URL) == [{"amount": 5000}]

    @pytest.mark.unit
    def test_falls_back_to_id(self, api_client, backend: FakeBackend):
        backend.order_response = httpx.Response(200, json={"id": "order_from_id"})
        assert api_client.create_order(100) == "order_from_id"

    @pytest.mark.unit
    def test_non_success_status(self, api_client, backend: FakeBackend):
        backend.order_response = httpx.Response(500, text="boom")
        with pytest.raises(OrderCreationError, match="Failed to create order: 500 boom") as exc_info:
            api_client.create_order(100)
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "boom"

    @pytest.mark.unit
    def test_missing_order_id(self, api_client, backend: FakeBackend):
        backend.order_response = httpx.Response(200, json={"status": "created"})
        with pytest.raises(OrderCreationError, match="missing order_id"):
            api_client.create_order(100)

    @pytest.mark.unit
    def test_non_json_body(self, api_client, backend: FakeBackend):
        backend.order_response = httpx.Response(200, text="<html>oops</html>")
        with pytest.raises(OrderCreationError, match="not JSON"):
            api_client.create_order(100)

    @pytest.mark.unit
    def test_connection_error(self):
        client = _raising_client(httpx.ConnectError("Connection refused"))
        with pytest.raises(OrderCreationError, match="connection error") as exc_info:
            client.create_order(100)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


# ---------------------------------------------------------------------------
# submit_registration()
# ---------------------------------------------------------------------------


class TestSubmitRegistration:
    @pytest.mark.unit
    def test_success(self, api_client, backend: FakeBackend):
        result = api_client.submit_registration(_payload())
        assert result.success
        assert result.registration_number == "A-042"
        assert backend.bodies(SUBMISSION_URL)[0]["competition"] == "AutoCAD"

    @pytest.mark.unit
    def test_invalid_payload_never_hits_network(self, api_client, backend: FakeBackend):
        result = api_client.submit_registration(_payload(razorpay_signature=""))
        assert not result.success
        assert result.stage == "validation"
        assert "razorpay_signature" in result.error
        assert backend.requests == []

    @pytest.mark.unit
    def test_html_body_is_parse_error(self, api_client, backend: FakeBackend):
        html = "<html><body>Fatal error</body></html>" + "x" * 500
        backend.submission_response = httpx.Response(200, text=html)
        result = api_client.submit_registration(_payload())
        assert result.stage == "parse"
        assert result.error.startswith("Invalid JSON response from server: <html>")
        assert len(result.error) <= len("Invalid JSON response from server: ") + 200

    @pytest.mark.unit
    def test_non_success_status_is_backend_rejection(self, api_client, backend: FakeBackend):
        backend.submission_response = httpx.Response(409, json={"error": "Already registered"})
        result = api_client.submit_registration(_payload())
        assert (result.stage, result.error) == ("backend_rejection", "Already registered")

    @pytest.mark.unit
    def test_non_success_status_without_message(self, api_client, backend: FakeBackend):
        backend.submission_response = httpx.Response(503, json={})
        result = api_client.submit_registration(_payload())
        assert result.error == "HTTP 503: Service Unavailable"

    @pytest.mark.unit
    def test_success_false_uses_backend_stage(self, api_client, backend: FakeBackend):
        backend.submission_response = httpx.Response(
            200, json={"success": False, "stage": "backend_rejection", "error": "duplicate"}
        )
        result = api_client.submit_registration(_payload())
        assert (result.success, result.stage, result.error) == (False, "backend_rejection", "duplicate")

    @pytest.mark.unit
    def test_success_false_defaults_to_backend_error(self, api_client, backend: FakeBackend):
        backend.submission_response = httpx.Response(200, json={"success": False, "message": "Signature mismatch"})
        result = api_client.submit_registration(_payload())
        assert (result.stage, result.error) == ("backend_error", "Signature mismatch")

    @pytest.mark.unit
    def test_network_error(self):
        result = _raising_client(httpx.ConnectError("Connection refused")).submit_registration(_payload())
        assert result.stage == "network_error"
        assert result.error.startswith("Network error")

    @pytest.mark.unit
    def test_cors_error(self):
        exc = httpx.ConnectError("Blocked by CORS policy")
        result = _raising_client(exc).submit_registration(_payload())
        assert result.stage == "cors_error"

    @pytest.mark.unit
    def test_non_http_error_is_unknown_error(self):
        result = _raising_client(RuntimeError("transport exploded")).submit_registration(_payload())
        assert not result.success
        assert (result.stage, result.error) == ("unknown_error", "transport exploded")


@pytest.mark.unit
def test_classify_request_error():
    assert classify_request_error(httpx.ReadTimeout("timed out")) == "network_error"
    assert classify_request_error(httpx.RemoteProtocolError("cross-origin denied")) == "cors_error"
    assert classify_request_error(httpx.TooManyRedirects("loop")) == "unknown_error"
