"""Builders and fakes shared by the registration tests."""

import json
from collections.abc import Callable
from typing import Any

import httpx

from django_regdesk.registration.models import Member, Registration, SingleRegistration, TeamRegistration
from django_regdesk.registration.widget import PAYMENT_FAILED_EVENT

ORDER_URL = "https://api.example.test/create_order.php"
SUBMISSION_URL = "https://api.example.test/submission_handler.php"

SUCCESS_RESPONSE = {
    "razorpay_payment_id": "pay_123",
    "razorpay_order_id": "order_abc",
    "razorpay_signature": "sig_xyz",
}


def make_member(name: str = "Asha Rao", **overrides: str) -> Member:
    values = {
        "name": name,
        "email": "asha@example.com",
        "contact": "9876543210",
        "branch": "Computer",
        "semester": "5",
        "institute": "",
    }
    values.update(overrides)
    return Member(**values)


def make_registration(payload: Any = None, **overrides: Any) -> Registration:
    values: dict[str, Any] = {
        "id": "reg-1",
        "event": "autocad",
        "participants_count": 1,
        "amount_paid": 1,
        "payload": payload or SingleRegistration(make_member(institute="Agnel Polytechnic")),
        "created_at": "2027-01-15T12:00:00+00:00",
    }
    values.update(overrides)
    return Registration(**values)


def make_team_registration() -> Registration:
    payload = TeamRegistration(
        leader=make_member("Leader One", institute="Agnel Polytechnic"),
        members=(make_member("Member Two", email="two@example.com"), make_member("")),
    )
    return make_registration(payload, event="robo-race", participants_count=2, amount_paid=2)


class FakeWidget:
    """Scriptable stand-in for the provider's checkout widget."""

    def __init__(self, options: dict[str, Any], action: Callable[["FakeWidget"], None] | None) -> None:
        self.options = options
        self.action = action
        self.listeners: dict[str, Callable[[Any], None]] = {}
        self.opened = False

    def on(self, event: str, callback: Callable[[Any], None]) -> None:
        self.listeners[event] = callback

    def open(self) -> None:
        self.opened = True
        if self.action is not None:
            self.action(self)

    def succeed(self, response: dict[str, str] | None = None) -> None:
        self.options["handler"](response or SUCCESS_RESPONSE)

    def fail(self, description: str = "Card declined") -> None:
        self.listeners[PAYMENT_FAILED_EVENT]({"error": {"code": "BAD_REQUEST_ERROR", "description": description}})

    def dismiss(self) -> None:
        self.options["modal"]["ondismiss"]()


class WidgetFactory:
    """Callable widget factory that records every widget it builds."""

    def __init__(self, action: Callable[[FakeWidget], None] | None = None) -> None:
        self.action = action
        self.widgets: list[FakeWidget] = []

    def __call__(self, options: dict[str, Any]) -> FakeWidget:
        widget = FakeWidget(options, self.action)
        self.widgets.append(widget)
        return widget


def _copy(response: httpx.Response) -> httpx.Response:
    return httpx.Response(response.status_code, headers=response.headers, content=response.content)


class FakeBackend:
    """Routes order and submission requests for ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.order_response = httpx.Response(200, json={"order_id": "order_abc"})
        self.submission_response = httpx.Response(200, json={"success": True, "srNo": "A-042"})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == ORDER_URL:
            return _copy(self.order_response)
        if str(request.url) == SUBMISSION_URL:
            return _copy(self.submission_response)
        return httpx.Response(404, text="not found")

    def bodies(self, url: str) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if str(r.url) == url]


