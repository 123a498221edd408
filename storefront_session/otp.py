"""
OTP session state machine for phone-number login.

States:
- ABSENT: no challenge in flight
- ACTIVE: code sent, challenge live
- WARNING: final minute, per-second countdown running
- EXPIRED: local or server-asserted expiry; a new code is needed

The challenge is persisted under `phone_auth_session` so a restart can pick
it up again through restore_on_load(). Every OTP timer lives here; callers
read remaining_seconds or pass on_tick/on_warning/on_expired callbacks
instead of scheduling their own.

Timing:
- Client TTL is 4 minutes; the server keeps the session for about 5
- Warning fires 60 seconds before the client TTL
- Attempt counting is left to the server
"""
import asyncio
import logging
import math
import re
import time
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ValidationError

from .api.base import StorefrontAPI, VerifiedIdentity
from .errors import (
    ChallengeSetupFailed,
    InvalidCodeFormat,
    InvalidPhoneNumber,
    NoActiveChallenge,
    SessionExpired,
)
from .output_sanitizer import redact_phone as mask_phone
from .storage import KeyValueStore, PHONE_AUTH_SESSION_KEY
from .verification.base import HumanProofProvider

logger = logging.getLogger(__name__)

OTP_TTL_SECONDS = 4 * 60
OTP_WARNING_SECONDS = 60
COUNTDOWN_INTERVAL = 1.0

E164_PATTERN = re.compile(r"^\+[1-9]\d{7,14}$")
CODE_PATTERN = re.compile(r"^\d{6}$")


class OtpState(str, Enum):
    ABSENT = "absent"
    ACTIVE = "active"
    WARNING = "warning"
    EXPIRED = "expired"


class OtpChallenge(BaseModel):
    """Persisted challenge record. Timestamps are epoch milliseconds."""
    session_info: str
    phone_number: str
    timestamp: int
    expires_at: int

    def remaining(self, now: float) -> float:
        return self.expires_at / 1000 - now


def validate_phone_number(phone_number: str) -> str:
    normalized = re.sub(r"[\s\-()]", "", phone_number or "")
    if not E164_PATTERN.match(normalized):
        raise InvalidPhoneNumber("Phone number must be in E.164 format (e.g. +15551234567)")
    return normalized


class OtpSessionMachine:
    """One phone verification challenge at a time, with expiry that survives restarts."""

    def __init__(
        self,
        api: StorefrontAPI,
        proof: HumanProofProvider,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
        ttl_seconds: float = OTP_TTL_SECONDS,
        warning_seconds: float = OTP_WARNING_SECONDS,
        on_warning: Optional[Callable[[int], None]] = None,
        on_tick: Optional[Callable[[int], None]] = None,
        on_expired: Optional[Callable[[], None]] = None,
    ):
        self._api = api
        self._proof = proof
        self._store = store
        self._clock = clock
        self._ttl = ttl_seconds
        self._warning = warning_seconds
        self.on_warning = on_warning
        self.on_tick = on_tick
        self.on_expired = on_expired

        self._state = OtpState.ABSENT
        self._challenge: Optional[OtpChallenge] = None
        self._generation = 0
        self._warning_handle: Optional[asyncio.TimerHandle] = None
        self._expiry_handle: Optional[asyncio.TimerHandle] = None
        self._tick_handle: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> OtpState:
        return self._state

    @property
    def challenge(self) -> Optional[OtpChallenge]:
        return self._challenge

    @property
    def remaining_seconds(self) -> int:
        if self._challenge is None or self._state not in (OtpState.ACTIVE, OtpState.WARNING):
            return 0
        return max(0, math.ceil(self._challenge.remaining(self._clock())))

    @property
    def has_pending_timers(self) -> bool:
        return any(h is not None for h in (self._warning_handle, self._expiry_handle, self._tick_handle))

    # ---- transitions ----

    async def issue_challenge(self, phone_number: str) -> int:
        """
        Send a verification code to phone_number.

        Any live challenge is reset first. Returns the seconds remaining
        before the new challenge expires.
        """
        phone = validate_phone_number(phone_number)
        if self._state != OtpState.ABSENT:
            logger.info("Replacing existing %s challenge", self._state.value)
            self.reset()
        generation = self._generation

        try:
            proof = await self._proof.obtain_proof("phone_login")
        except ChallengeSetupFailed:
            raise
        except Exception as e:
            logger.error("%s proof failed: %s", self._proof.provider_name, e)
            raise ChallengeSetupFailed(f"Human verification failed: {e}") from e

        session_info = await self._api.send_code(phone, proof)

        if generation != self._generation:
            raise ChallengeSetupFailed("Challenge was reset before the code was sent")

        now = self._clock()
        challenge = OtpChallenge(
            session_info=session_info,
            phone_number=phone,
            timestamp=int(now * 1000),
            expires_at=int((now + self._ttl) * 1000),
        )
        self._store.set(PHONE_AUTH_SESSION_KEY, challenge.model_dump())
        self._challenge = challenge
        self._state = OtpState.ACTIVE
        self._schedule(challenge)
        logger.info("Verification code sent to %s", mask_phone(phone))
        return self.remaining_seconds

    def restore_on_load(self) -> Optional[int]:
        """
        Pick up a persisted challenge after a restart.

        Returns the seconds remaining, or None when nothing was restored.
        Must run inside the event loop that will own the timers.
        """
        raw = self._store.get(PHONE_AUTH_SESSION_KEY)
        if not raw:
            self._state = OtpState.ABSENT
            return None
        try:
            challenge = OtpChallenge.model_validate(raw)
        except ValidationError:
            logger.warning("Discarding malformed phone auth record")
            self._store.remove(PHONE_AUTH_SESSION_KEY)
            self._state = OtpState.ABSENT
            return None

        if challenge.remaining(self._clock()) <= 0:
            logger.info("Stored challenge for %s already expired", mask_phone(challenge.phone_number))
            self._store.remove(PHONE_AUTH_SESSION_KEY)
            self._challenge = None
            self._state = OtpState.ABSENT
            return None

        self._challenge = challenge
        self._state = OtpState.ACTIVE
        self._schedule(challenge)
        remaining = self.remaining_seconds
        logger.info(
            "Restored challenge for %s, %d minute(s) remaining",
            mask_phone(challenge.phone_number), math.ceil(remaining / 60),
        )
        return remaining

    async def verify(self, code: str, phone_number: str) -> VerifiedIdentity:
        """Exchange a six-digit code for an authenticated identity."""
        challenge = self._challenge
        if challenge is None or self._state not in (OtpState.ACTIVE, OtpState.WARNING):
            raise NoActiveChallenge("No active verification code. Please request a new one.")
        if challenge.remaining(self._clock()) <= 0:
            self._expire()
            raise NoActiveChallenge("Verification code expired. Please request a new one.")
        try:
            phone = validate_phone_number(phone_number)
        except InvalidPhoneNumber:
            raise NoActiveChallenge("No active verification code for this phone number.")
        if phone != challenge.phone_number:
            raise NoActiveChallenge("No active verification code for this phone number.")

        code = (code or "").strip()
        if not CODE_PATTERN.match(code):
            raise InvalidCodeFormat("Verification code must be exactly 6 digits")

        try:
            identity = await self._api.verify_code(phone, code, challenge.session_info)
        except SessionExpired:
            logger.info("Server reported expired session for %s", mask_phone(phone))
            if self._challenge is challenge:
                self._expire()
            raise

        if self._challenge is challenge:
            self._finish()
        await self._proof.release()
        logger.info("Phone %s verified", mask_phone(phone))
        return identity

    def reset(self) -> None:
        """Cancel the challenge: both timers, the countdown and the persisted record."""
        self._generation += 1
        self._cancel_timers()
        self._store.remove(PHONE_AUTH_SESSION_KEY)
        self._challenge = None
        self._state = OtpState.ABSENT

    async def close(self) -> None:
        """
        Teardown. Stops timers and releases the proof widget but keeps the
        persisted record so a later restore_on_load() can resume.
        """
        self._cancel_timers()
        await self._proof.release()

    # ---- timers ----

    def _schedule(self, challenge: OtpChallenge) -> None:
        self._cancel_timers()
        loop = asyncio.get_running_loop()
        remaining = challenge.remaining(self._clock())
        until_warning = remaining - self._warning

        self._expiry_handle = loop.call_later(max(remaining, 0), self._expire)
        if until_warning <= 0:
            self._enter_warning()
        else:
            self._warning_handle = loop.call_later(until_warning, self._enter_warning)

    def _enter_warning(self) -> None:
        self._warning_handle = None
        if self._state != OtpState.ACTIVE:
            return
        self._state = OtpState.WARNING
        remaining = self.remaining_seconds
        logger.info("Verification code expires in %d seconds", remaining)
        if self.on_warning:
            self.on_warning(remaining)
        self._tick()

    def _tick(self) -> None:
        self._tick_handle = None
        if self._state != OtpState.WARNING:
            return
        remaining = self.remaining_seconds
        if self.on_tick:
            self.on_tick(remaining)
        if remaining > 0:
            self._tick_handle = asyncio.get_running_loop().call_later(COUNTDOWN_INTERVAL, self._tick)

    def _expire(self) -> None:
        self._expiry_handle = None
        self._cancel_timers()
        self._store.remove(PHONE_AUTH_SESSION_KEY)
        self._challenge = None
        self._state = OtpState.EXPIRED
        logger.info("Verification code expired")
        if self.on_expired:
            self.on_expired()

    def _finish(self) -> None:
        self._cancel_timers()
        self._store.remove(PHONE_AUTH_SESSION_KEY)
        self._challenge = None
        self._state = OtpState.ABSENT

    def _cancel_timers(self) -> None:
        for handle in (self._warning_handle, self._expiry_handle, self._tick_handle):
            if handle is not None:
                handle.cancel()
        self._warning_handle = None
        self._expiry_handle = None
        self._tick_handle = None
