from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable, Protocol
from urllib.parse import urljoin

import requests

from .config import NavConfig
from .exceptions import ApiError, TransportError
from .filters import narrow
from .models import ResolvedModule

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-ID"

PENDING_APPROVAL_PATH = "/purchase-requests/pending-approval"
PROCUREMENT_PATH = "/purchase-requests/procurement"
FINANCE_PATH = "/purchase-requests/finance"


class PurchaseRequestSource(Protocol):
    def pending_approvals(self, **params: Any) -> Mapping[str, Any]: ...

    def pending_procurement(self, **params: Any) -> Mapping[str, Any]: ...

    def pending_finance(self, **params: Any) -> Mapping[str, Any]: ...

    def list_requests(self, **params: Any) -> Mapping[str, Any]: ...


@dataclass
class ApprovalsClient:
    """Thin HTTP client over the purchase request approval endpoints."""

    config: NavConfig
    access_token: str | None = None
    session: requests.Session | None = None

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()

    def _build_url(self, path: str) -> str:
        base = self.config.require_api_base_url().rstrip("/") + "/"
        return urljoin(base, path.lstrip("/"))

    def _get(self, path: str, params: Mapping[str, Any]) -> Mapping[str, Any]:
        headers = {"Accept": "application/json", TRACE_HEADER: str(uuid.uuid4())}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        try:
            response = self.session.get(
                self._build_url(path),
                headers=headers,
                params=dict(params),
                timeout=(self.config.connect_timeout_seconds, self.config.read_timeout_seconds),
            )
        except requests.RequestException as exc:
            raise TransportError(
                code="TRANSPORT_ERROR",
                message=str(exc),
                details={"type": type(exc).__name__},
                trace_id=headers[TRACE_HEADER],
                status_code=0,
            ) from exc

        trace_id = response.headers.get(TRACE_HEADER) or headers[TRACE_HEADER]
        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}
        if not response.ok:
            raise ApiError(
                code=str(payload.get("code") or "HTTP_ERROR") if isinstance(payload, dict) else "HTTP_ERROR",
                message=str(payload.get("message") or response.reason) if isinstance(payload, dict) else response.reason,
                details=payload.get("details") if isinstance(payload, dict) else None,
                trace_id=trace_id,
                status_code=response.status_code,
            )
        return payload if isinstance(payload, dict) else {}

    def pending_approvals(self, **params: Any) -> Mapping[str, Any]:
        return self._get("/purchase-requests/pending/approval", params)

    def pending_procurement(self, **params: Any) -> Mapping[str, Any]:
        return self._get("/purchase-requests/pending/procurement", params)

    def pending_finance(self, **params: Any) -> Mapping[str, Any]:
        return self._get("/purchase-requests/pending/finance", params)

    def list_requests(self, **params: Any) -> Mapping[str, Any]:
        return self._get("/purchase-requests", params)


def request_count(payload: Mapping[str, Any] | None) -> int:
    """``data.total`` when positive, otherwise the length of ``data.requests``."""
    data = payload.get("data") if isinstance(payload, Mapping) else None
    if not isinstance(data, Mapping):
        return 0
    total = data.get("total")
    if isinstance(total, int) and not isinstance(total, bool) and total > 0:
        return total
    requests_list = data.get("requests")
    return len(requests_list) if isinstance(requests_list, list) else 0


class BadgeCountService:
    """Collects sub-item badge counts. A failing lookup only drops its own path."""

    def __init__(self, source: PurchaseRequestSource) -> None:
        self.source = source

    def _pending_approval(self) -> int:
        return request_count(self.source.pending_approvals(limit=1))

    def _procurement(self) -> int:
        return request_count(self.source.pending_procurement(limit=1))

    def _finance(self) -> int:
        finance = request_count(self.source.pending_finance(limit=1))
        payment = request_count(
            self.source.list_requests(
                status="payment_in_progress",
                current_stage="pay_vendor_stage",
                show_all=True,
                limit=1,
            )
        )
        return finance + payment

    def load_counts(self) -> dict[str, int]:
        lookups: tuple[tuple[str, Callable[[], int]], ...] = (
            (PENDING_APPROVAL_PATH, self._pending_approval),
            (PROCUREMENT_PATH, self._procurement),
            (FINANCE_PATH, self._finance),
        )
        counts: dict[str, int] = {}
        for path, lookup in lookups:
            try:
                counts[path] = lookup()
            except (ApiError, requests.RequestException, ValueError, KeyError, TypeError) as exc:
                logger.warning("badge_count_failed", extra={"path": path, "error": str(exc)})
        logger.info("badge_counts_loaded", extra={"paths": sorted(counts)})
        return counts


def apply_badges(modules: Iterable[ResolvedModule], counts: Mapping[str, int]) -> list[ResolvedModule]:
    """Copies of ``modules`` whose sub-items carry a badge for every positive count."""
    decorated: list[ResolvedModule] = []
    for module in modules:
        sub_items = [
            item.model_copy(update={"badge": counts[item.path]}) if counts.get(item.path) else item
            for item in module.sub_items
        ]
        decorated.append(narrow(module, sub_items))
    return decorated
