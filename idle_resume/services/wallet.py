"""Token wallet usage recording."""

from __future__ import annotations

import json
import math
import os
import re
from typing import Any, Callable

from idle_resume.common.errors import HttpStatusError, NetworkError, WalletError
from idle_resume.common.http import error_message, http_put, normalize_base

_USER_DATA_SUFFIX = re.compile(r"/user-data$", re.IGNORECASE)


def resolve_wallet_endpoint(environ: dict | None = None) -> str:
    """Configured wallet endpoint, or the user-data endpoint's ``/user-wallet`` sibling."""
    env = os.environ if environ is None else environ
    configured = env.get("USERWALLET_API_ENDPOINT", "").strip()
    if configured:
        return normalize_base(configured)
    user_data = env.get("USERDATA_API_ENDPOINT", "").strip()
    if not user_data:
        return ""
    return _USER_DATA_SUFFIX.sub("/user-wallet", normalize_base(user_data))


class WalletClient:
    """PUTs ``{user_id, tokens_spent}`` to the wallet API."""

    def __init__(
        self,
        endpoint: str | None = None,
        api_key: str | None = None,
        *,
        put: Callable[..., Any] = http_put,
        timeout: float = 15,
    ) -> None:
        self._endpoint = endpoint if endpoint is not None else resolve_wallet_endpoint()
        if api_key is None:
            api_key = (
                os.environ.get("USERWALLET_API_KEY") or os.environ.get("USERDATA_API_KEY") or ""
            )
        self._api_key = api_key.strip()
        self._put = put
        self._timeout = timeout

    def record_usage(self, user_id: str, usage: dict) -> Any:
        """Charge ``usage["totalTokenCount"]``; returns the wallet, or None if nothing to charge."""
        resolved_user = str(user_id or "").strip()
        if not self._endpoint:
            raise WalletError("User wallet endpoint is not configured.")
        if not resolved_user:
            raise WalletError("Missing user id for wallet usage update.")

        try:
            total = float((usage or {}).get("totalTokenCount"))
        except (TypeError, ValueError):
            return None
        if not math.isfinite(total) or total <= 0:
            return None

        headers = {"accept": "application/json", "Content-Type": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        body = json.dumps({
            "user_id": resolved_user,
            "tokens_spent": max(0, int(math.floor(total + 0.5))),
        }).encode()

        try:
            resp = self._put(self._endpoint, headers=headers, body=body, timeout=self._timeout)
        except HttpStatusError as exc:
            message = error_message(exc.payload) or (
                f"Failed to record wallet usage (status {exc.status})"
            )
            raise WalletError(message) from exc
        except NetworkError as exc:
            raise WalletError(str(exc)) from exc
        return resp.payload
