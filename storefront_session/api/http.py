"""HTTP storefront backend: JSON over httpx, envelope unwrapping, login-required signalling."""
import logging
import time
from typing import Any, Callable, Optional

import httpx

from ..account.schema import AccountUser
from ..cart.schema import Cart, GuestCartLine
from ..errors import NetworkError, SessionExpired
from ..events import Event, LoginRequired, NotificationBus
from .base import AuthTokens, StorefrontAPI, VerifiedIdentity

logger = logging.getLogger(__name__)

# Status codes that mean "the bearer credential is not good enough"
LOGIN_REQUIRED_MESSAGES = {
    401: "Please login to continue",
    403: (
        "You do not have permission to access this resource. "
        "Please login with an account that has the required permissions."
    ),
    419: "Your session has expired. Please login again to continue.",
}

# Minimum spacing between login-required notifications
LOGIN_PROMPT_COOLDOWN = 5.0

_SESSION_EXPIRED_CODES = {"SESSION_EXPIRED", "INVALID_SESSION_INFO", "CODE_EXPIRED"}


def _unwrap(payload: Any) -> dict:
    """Strip the {success, message, data} envelope when present."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload if isinstance(payload, dict) else {}


def _error_details(response: httpx.Response) -> tuple[str, Optional[str]]:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    error = body.get("error")
    code = None
    message = body.get("message")
    if isinstance(error, dict):
        code = error.get("code")
        message = message or error.get("message")
    elif isinstance(error, str):
        code = error
    return message or f"HTTP error! status: {response.status_code}", code


def _identity_from_payload(payload: Any) -> VerifiedIdentity:
    data = _unwrap(payload)
    tokens = data.get("tokens") if isinstance(data.get("tokens"), dict) else data
    id_token = tokens.get("id_token")
    user = data.get("user")
    if not id_token or not isinstance(user, dict):
        raise NetworkError("Login response missing token or user")
    return VerifiedIdentity(
        user=AccountUser.from_api(user),
        id_token=id_token,
        refresh_token=tokens.get("refresh_token"),
    )


def is_session_expired(error: NetworkError) -> bool:
    """Whether a verify-code failure means the challenge itself is dead."""
    if error.status_code == 419:
        return True
    if error.code and error.code.upper() in _SESSION_EXPIRED_CODES:
        return True
    return "session expired" in str(error).lower()


class HttpStorefrontAPI(StorefrontAPI):
    """Storefront backend reached over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        bus: NotificationBus | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._bus = bus
        self._clock = clock
        self._last_login_prompt: Optional[float] = None

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        request_headers = {"Content-Type": "application/json"}
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        if headers:
            request_headers.update(headers)

        try:
            response = await self._client.request(method, path, json=json, headers=request_headers)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, path, type(e).__name__)
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            message, code = _error_details(response)
            logger.warning("%s %s -> %d %s", method, path, response.status_code, code or "")
            if token and response.status_code in LOGIN_REQUIRED_MESSAGES:
                self._notify_login_required(response.status_code, path)
            raise NetworkError(message, status_code=response.status_code, code=code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"{method} {path} returned invalid JSON") from e

    def _notify_login_required(self, status_code: int, path: str) -> None:
        if self._bus is None:
            return
        now = self._clock()
        if self._last_login_prompt is not None and now - self._last_login_prompt < LOGIN_PROMPT_COOLDOWN:
            return
        self._last_login_prompt = now
        self._bus.publish(
            Event.LOGIN_REQUIRED,
            LoginRequired(message=LOGIN_REQUIRED_MESSAGES[status_code], redirect_url=path),
        )

    # ---- auth ----

    async def send_code(self, phone_number: str, proof_token: str) -> str:
        payload = await self._request(
            "POST",
            "/auth/phone/send-code",
            json={"phone_number": phone_number, "proof_token": proof_token},
        )
        session_info = _unwrap(payload).get("session_info")
        if not session_info:
            raise NetworkError("send-code response missing session_info")
        return session_info

    async def verify_code(self, phone_number: str, code: str, session_info: str) -> VerifiedIdentity:
        try:
            payload = await self._request(
                "POST",
                "/auth/phone/verify-code",
                json={"phone_number": phone_number, "code": code, "session_info": session_info},
            )
        except NetworkError as e:
            if is_session_expired(e):
                raise SessionExpired(str(e)) from e
            raise
        return _identity_from_payload(payload)

    async def login(self, email: str, password: str) -> VerifiedIdentity:
        payload = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        return _identity_from_payload(payload)

    async def refresh_token(self, refresh_token: str) -> AuthTokens:
        payload = await self._request("POST", "/auth/refresh-token", json={"refresh_token": refresh_token})
        data = _unwrap(payload)
        tokens = data.get("tokens") if isinstance(data.get("tokens"), dict) else data
        if not tokens.get("id_token"):
            raise NetworkError("refresh response missing id_token")
        return AuthTokens(id_token=tokens["id_token"], refresh_token=tokens.get("refresh_token") or refresh_token)

    async def logout(self, token: str) -> None:
        await self._request("POST", "/auth/logout", token=token)

    # ---- cart ----

    async def migrate_cart(self, token: str, session_id: Optional[str], items: list[GuestCartLine]) -> Cart:
        headers = {"X-Session-ID": session_id} if session_id else None
        payload = await self._request(
            "POST",
            "/cart/migrate",
            token=token,
            headers=headers,
            json={
                "session_id": session_id,
                "items": [
                    {"product_id": line.product_id, "quantity": line.quantity, "unit_price": line.unit_price}
                    for line in items
                ],
            },
        )
        return Cart.from_api(payload)

    async def get_cart(self, token: str) -> Cart:
        payload = await self._request("GET", "/cart", token=token)
        return Cart.from_api(payload)

    async def get_wishlist_count(self, token: str) -> int:
        payload = await self._request("GET", "/wishlist/count", token=token)
        data = _unwrap(payload)
        count = data.get("count", data.get("total_items", 0))
        return int(count or 0)
