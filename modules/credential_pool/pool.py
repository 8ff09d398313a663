"""
Credential pool.

Round-robin hand-out of API keys with per-key health tracking. Every
mutation happens under one lock: the cursor and per-key status updates
are read-then-write sequences, so the pool stays consistent whether it is
driven from the event loop or from worker threads.
"""

import re
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Literal, Optional

from shared.config import settings
from shared.logging import get_logger
from shared.models.credential import Credential, CredentialStatus, PoolStats

logger = get_logger("credential_pool")

MIN_KEY_LENGTH = 20
_KEY_SEPARATORS = re.compile(r"[\n,;]")

_RATE_LIMIT_MARKERS = ("429", "rate limit", "quota", "resource exhausted", "resource_exhausted")
_INVALID_MARKERS = (
    "401", "403", "unauthorized", "forbidden", "api key not valid", "invalid api key", "permission denied",
)

FailureKind = Literal["rate_limited", "invalid", "other"]
Clock = Callable[[], datetime]
Listener = Callable[[List[Credential]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mask_key(key: str) -> str:
    """Show only the first 6 and last 4 characters of a key."""
    if len(key) <= 10:
        return "***"
    return f"{key[:6]}***{key[-4:]}"


def classify_failure(error_text: str) -> FailureKind:
    """
    Classify a provider error message.

    Quota style messages are checked first so "429 ... invalid request"
    still counts as rate limiting.
    """
    text = (error_text or "").lower()
    if any(marker in text for marker in _RATE_LIMIT_MARKERS):
        return "rate_limited"
    if any(marker in text for marker in _INVALID_MARKERS):
        return "invalid"
    return "other"


def parse_key_input(raw_input: str) -> List[str]:
    """Split free-form text into candidate keys, dropping short fragments."""
    candidates = (part.strip() for part in _KEY_SEPARATORS.split(raw_input or ""))
    return [c for c in candidates if len(c) > MIN_KEY_LENGTH]


class CredentialPool:
    """Shared, mutable set of credentials for one provider."""

    def __init__(
        self,
        provider: str = "google",
        recovery_window: Optional[timedelta] = None,
        max_errors: Optional[int] = None,
        clock: Optional[Clock] = None
    ):
        self.provider = provider
        self.recovery_window = recovery_window or timedelta(seconds=settings.credential_recovery_seconds)
        self.max_errors = max_errors if max_errors is not None else settings.credential_max_errors
        self._clock = clock or _utcnow
        self._credentials: List[Credential] = []
        self._cursor = 0
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def __len__(self) -> int:
        return len(self._credentials)

    def add(self, raw_input: str) -> int:
        """
        Ingest a delimited batch of keys (newline, comma or semicolon).

        Returns:
            Number of new keys appended with status "unknown"
        """
        return self.add_keys(parse_key_input(raw_input))

    def add_keys(self, keys: Iterable[str]) -> int:
        added = 0
        with self._lock:
            known = {c.key for c in self._credentials}
            for key in keys:
                key = key.strip()
                if len(key) <= MIN_KEY_LENGTH or key in known:
                    continue
                self._credentials.append(Credential(key=key))
                known.add(key)
                added += 1

        if added:
            logger.info(
                f"Added {added} credential(s) to {self.provider} pool",
                extra={"provider": self.provider, "pool_size": len(self._credentials)}
            )
            self._notify()
        return added

    def next(self) -> Optional[str]:
        """
        Hand out the next usable credential, round-robin from the cursor.

        Expired rate limits are lifted on the way. Returns None when every
        credential is dead, checking or still rate limited.
        """
        with self._lock:
            count = len(self._credentials)
            if count == 0:
                return None

            now = self._clock()
            for offset in range(count):
                index = (self._cursor + offset) % count
                credential = self._credentials[index]

                if (
                    credential.status == "rate_limited"
                    and credential.rate_limit_reset is not None
                    and now >= credential.rate_limit_reset
                ):
                    credential.status = "active"
                    credential.error_count = 0
                    credential.rate_limit_reset = None
                    logger.info(
                        "Credential recovered from rate limit",
                        extra={"provider": self.provider, "key": mask_key(credential.key)}
                    )

                if credential.is_usable:
                    credential.usage_count += 1
                    credential.last_used = now
                    self._cursor = (index + 1) % count
                    key = credential.key
                    break
            else:
                return None

        self._notify()
        return key

    def report_success(self, key: str) -> None:
        with self._lock:
            credential = self._find(key)
            if credential is None:
                return
            credential.status = "active"
            credential.error_count = 0
            credential.last_error = None
        self._notify()

    def report_failure(
        self,
        key: str,
        error_text: str,
        kind: Optional[FailureKind] = None
    ) -> CredentialStatus:
        """
        Record a failed call and update the credential's health.

        Args:
            key: Credential that failed
            error_text: Provider error message
            kind: Failure kind already decided by the caller; classified
                from `error_text` when omitted

        Returns:
            The credential's status after classification
        """
        if kind is None:
            kind = classify_failure(error_text)
        with self._lock:
            credential = self._find(key)
            if credential is None:
                return "unknown"

            credential.error_count += 1
            credential.last_error = error_text

            if kind == "rate_limited":
                credential.status = "rate_limited"
                credential.rate_limit_reset = self._clock() + self.recovery_window
            elif kind == "invalid":
                credential.status = "dead"
            elif credential.error_count >= self.max_errors:
                credential.status = "dead"

            status = credential.status
            error_count = credential.error_count

        logger.warning(
            f"Credential failure classified as {kind}",
            extra={
                "provider": self.provider,
                "key": mask_key(key),
                "credential_status": status,
                "error_count": error_count,
                "error": error_text[:200],
            }
        )
        self._notify()
        return status

    def set_status(self, key: str, status: CredentialStatus, error: Optional[str] = None) -> None:
        """Set a credential's status directly (used by health checks)."""
        with self._lock:
            credential = self._find(key)
            if credential is None:
                return
            credential.status = status
            if status == "active":
                credential.error_count = 0
                credential.last_error = None
            elif status == "rate_limited":
                credential.rate_limit_reset = self._clock() + self.recovery_window
            if error is not None:
                credential.last_error = error
        self._notify()

    def remove(self, key: str) -> bool:
        with self._lock:
            credential = self._find(key)
            if credential is None:
                return False
            self._credentials.remove(credential)
            if self._cursor >= len(self._credentials):
                self._cursor = 0
        self._notify()
        return True

    def clear(self) -> None:
        with self._lock:
            self._credentials = []
            self._cursor = 0
        self._notify()

    def has_available(self) -> bool:
        """True if next() could currently return a credential."""
        with self._lock:
            now = self._clock()
            return any(
                c.is_usable
                or (c.status == "rate_limited" and c.rate_limit_reset is not None and now >= c.rate_limit_reset)
                for c in self._credentials
            )

    def stats(self) -> PoolStats:
        with self._lock:
            counts: Dict[str, int] = {}
            for c in self._credentials:
                counts[c.status] = counts.get(c.status, 0) + 1
            return PoolStats(total=len(self._credentials), **counts)

    def credentials(self) -> List[Credential]:
        """Snapshot copies; mutating them does not affect the pool."""
        with self._lock:
            return [c.model_copy() for c in self._credentials]

    def export(self) -> str:
        """All keys, one per line, for backing up the pool."""
        with self._lock:
            return "\n".join(c.key for c in self._credentials)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with a snapshot after every mutation."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _find(self, key: str) -> Optional[Credential]:
        for credential in self._credentials:
            if credential.key == key:
                return credential
        return None

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.credentials()
        for listener in list(self._listeners):
            listener(snapshot)


class CredentialPools:
    """One CredentialPool per provider."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock
        self._pools: Dict[str, CredentialPool] = {}

    def get(self, provider: str) -> CredentialPool:
        if provider not in self._pools:
            self._pools[provider] = CredentialPool(provider=provider, clock=self._clock)
        return self._pools[provider]

    def providers(self) -> List[str]:
        return list(self._pools)

    @classmethod
    def from_settings(cls) -> "CredentialPools":
        """Seed each provider's pool from its *_API_KEYS setting."""
        pools = cls()
        for provider in ("google", "openai", "openrouter"):
            raw = settings.pool_input_for(provider)
            if raw:
                pools.get(provider).add(raw)
        return pools
