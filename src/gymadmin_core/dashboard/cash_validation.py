# src/gymadmin_core/dashboard/cash_validation.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

logger = logging.getLogger(__name__)

PENDING_VALIDATIONS_PATH = "/api/payments/pending-validations"

ValidationListener = Callable[[dict[str, Any]], None]


def create_http_client(settings) -> httpx.AsyncClient:
    """AsyncClient pointed at the admin backend, with the admin token if configured."""
    headers = {"Accept": "application/json"}
    token = getattr(settings, "api_token", None)
    if token:
        headers["Authorization"] = f"Bearer {token}"

    return httpx.AsyncClient(
        base_url=str(getattr(settings, "api_base_url", "http://localhost:5000")),
        headers=headers,
        timeout=float(getattr(settings, "http_timeout_seconds", 10.0)),
    )


class CashValidationWatcher:
    """
    Poll work for the admin panel's cash-payment validation dialog.

    Each check fetches the pending validations and reports every
    validationCode it has not seen before exactly once. HTTP errors propagate
    so the scheduler applies its backoff.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        on_new: ValidationListener | None = None,
        path: str = PENDING_VALIDATIONS_PATH,
    ) -> None:
        self._client = client
        self._on_new = on_new
        self._path = path
        self._seen: set[str] = set()

    @property
    def seen_codes(self) -> frozenset[str]:
        return frozenset(self._seen)

    def mark_processed(self, validation_code: str) -> None:
        self._seen.add(validation_code)

    async def check(self) -> list[dict[str, Any]]:
        resp = await self._client.get(self._path)
        resp.raise_for_status()
        payload = resp.json()

        # Older backends wrap the list: {"success": true, "validations": [...]}
        if isinstance(payload, dict):
            payload = payload.get("validations") or []
        if not isinstance(payload, list):
            logger.warning("Unexpected pending-validations payload: %r", type(payload).__name__)
            return []

        fresh: list[dict[str, Any]] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            code = str(item.get("validationCode") or "").strip()
            if not code or code in self._seen:
                continue
            self._seen.add(code)
            fresh.append(item)

        for item in fresh:
            logger.info(
                "New cash validation %s (member=%s amount=%s)",
                item.get("validationCode"),
                item.get("memberName") or item.get("userName") or "?",
                item.get("amount", "?"),
            )
            if self._on_new is not None:
                try:
                    self._on_new(item)
                except Exception:
                    logger.exception("Cash validation listener failed")

        return fresh

    async def __call__(self) -> list[dict[str, Any]]:
        return await self.check()
