from __future__ import annotations

import logging
from typing import Any

import pytest
import requests
import responses

from cloudspace_nav.badges import (
    FINANCE_PATH,
    PENDING_APPROVAL_PATH,
    PROCUREMENT_PATH,
    TRACE_HEADER,
    ApprovalsClient,
    BadgeCountService,
    apply_badges,
    request_count,
)
from cloudspace_nav.config import NavConfig
from cloudspace_nav.exceptions import ApiError, ConfigError, TransportError
from cloudspace_nav.models import ModuleDescriptor
from cloudspace_nav.filters import narrow

BASE_URL = "https://api.example.com/api"


def _client() -> ApprovalsClient:
    return ApprovalsClient(NavConfig(api_base_url=BASE_URL), access_token="token")


class FakeSource:
    def __init__(self, **payloads: Any) -> None:
        self.payloads = payloads
        self.calls: list[tuple[str, dict]] = []

    def _answer(self, name: str, params: dict) -> Any:
        self.calls.append((name, params))
        payload = self.payloads.get(name)
        if isinstance(payload, Exception):
            raise payload
        return payload

    def pending_approvals(self, **params: Any) -> Any:
        return self._answer("pending_approvals", params)

    def pending_procurement(self, **params: Any) -> Any:
        return self._answer("pending_procurement", params)

    def pending_finance(self, **params: Any) -> Any:
        return self._answer("pending_finance", params)

    def list_requests(self, **params: Any) -> Any:
        return self._answer("list_requests", params)


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"data": {"total": 4, "requests": []}}, 4),
        ({"data": {"total": 0, "requests": [{}, {}]}}, 2),
        ({"data": {"requests": [{}]}}, 1),
        ({"data": None}, 0),
        (None, 0),
    ],
)
def test_request_count(payload: Any, expected: int) -> None:
    assert request_count(payload) == expected


@responses.activate
def test_client_sends_auth_and_trace_headers() -> None:
    responses.add(
        responses.GET,
        f"{BASE_URL}/purchase-requests/pending/approval",
        match=[
            responses.matchers.query_param_matcher({"limit": "1"}),
            responses.matchers.header_matcher({"Authorization": "Bearer token"}),
        ],
        json={"data": {"total": 3}},
        status=200,
    )

    payload = _client().pending_approvals(limit=1)

    assert payload == {"data": {"total": 3}}
    assert responses.calls[0].request.headers[TRACE_HEADER]


@responses.activate
def test_client_raises_api_error_with_server_trace() -> None:
    responses.add(
        responses.GET,
        f"{BASE_URL}/purchase-requests",
        json={"code": "FORBIDDEN", "message": "no access"},
        headers={TRACE_HEADER: "trace-9"},
        status=403,
    )

    with pytest.raises(ApiError) as excinfo:
        _client().list_requests(status="payment_in_progress")

    assert excinfo.value.code == "FORBIDDEN"
    assert excinfo.value.status_code == 403
    assert excinfo.value.trace_id == "trace-9"
    assert "FORBIDDEN" in str(excinfo.value)


@responses.activate
def test_client_wraps_transport_failures() -> None:
    responses.add(
        responses.GET,
        f"{BASE_URL}/purchase-requests/pending/finance",
        body=requests.ConnectionError("refused"),
    )

    with pytest.raises(TransportError) as excinfo:
        _client().pending_finance()

    assert excinfo.value.status_code == 0
    assert excinfo.value.details == {"type": "ConnectionError"}


def test_client_requires_base_url() -> None:
    with pytest.raises(ConfigError):
        ApprovalsClient(NavConfig()).pending_approvals()


@responses.activate
def test_badge_counts_from_api() -> None:
    responses.add(responses.GET, f"{BASE_URL}/purchase-requests/pending/approval", json={"data": {"total": 2}})
    responses.add(responses.GET, f"{BASE_URL}/purchase-requests/pending/procurement", json={"data": {"total": 0}})
    responses.add(responses.GET, f"{BASE_URL}/purchase-requests/pending/finance", json={"data": {"total": 1}})
    responses.add(
        responses.GET,
        f"{BASE_URL}/purchase-requests",
        match=[
            responses.matchers.query_param_matcher(
                {
                    "status": "payment_in_progress",
                    "current_stage": "pay_vendor_stage",
                    "show_all": "True",
                    "limit": "1",
                }
            )
        ],
        json={"data": {"requests": [{"id": 1}, {"id": 2}]}},
    )

    counts = BadgeCountService(_client()).load_counts()

    assert counts == {PENDING_APPROVAL_PATH: 2, PROCUREMENT_PATH: 0, FINANCE_PATH: 3}


def test_failed_lookup_only_drops_its_path(caplog: pytest.LogCaptureFixture) -> None:
    source = FakeSource(
        pending_approvals={"data": {"total": 5}},
        pending_procurement=ApiError("HTTP_ERROR", "boom", None, None, 500),
        pending_finance={"data": {"total": 1}},
        list_requests=requests.Timeout("slow"),
    )

    counts = BadgeCountService(source).load_counts()

    assert counts == {PENDING_APPROVAL_PATH: 5}
    failed = sorted(r.path for r in caplog.records if r.getMessage() == "badge_count_failed")
    assert failed == [FINANCE_PATH, PROCUREMENT_PATH]
    assert ("pending_approvals", {"limit": 1}) in source.calls


def test_apply_badges_decorates_matching_sub_items() -> None:
    module = ModuleDescriptor.model_validate(
        {
            "id": "purchasing",
            "subItems": [
                {"id": "approvals", "path": PENDING_APPROVAL_PATH},
                {"id": "procurement", "path": PROCUREMENT_PATH},
                {"id": "finance", "path": FINANCE_PATH, "badge": "new"},
            ],
        }
    )
    resolved = narrow(module, module.sub_items)

    decorated = apply_badges([resolved], {PENDING_APPROVAL_PATH: 4, PROCUREMENT_PATH: 0})

    badges = {item.id: item.badge for item in decorated[0].sub_items}
    assert badges == {"approvals": 4, "procurement": None, "finance": "new"}
    assert resolved.sub_items[0].badge is None


def test_badge_logging_is_quiet_on_success(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="cloudspace_nav.badges")
    source = FakeSource(
        pending_approvals={"data": {"total": 1}},
        pending_procurement={"data": {"total": 1}},
        pending_finance={"data": {"total": 1}},
        list_requests={"data": {"total": 1}},
    )

    BadgeCountService(source).load_counts()

    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
    loaded = next(r for r in caplog.records if r.getMessage() == "badge_counts_loaded")
    assert loaded.paths == sorted([PENDING_APPROVAL_PATH, PROCUREMENT_PATH, FINANCE_PATH])
