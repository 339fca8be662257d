"""
Guest verification: name + shared phrase, attempt-limited and time-boxed.

The checks themselves are pure functions. Attempt counters and verification
records live in a caller-supplied key-value store scoped to one client
session, wrapped by `GuestVerificationSession`.
"""

from __future__ import annotations

import json
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Protocol

from app.core.clock import as_utc

logger = logging.getLogger(__name__)

MAX_VERIFICATION_ATTEMPTS = 5
VERIFICATION_TTL = timedelta(hours=24)
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 80
MAX_TRACKED_SESSIONS = 10000

PHRASE_TEMPLATE = "kviečiame į {slug} šventę"


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    name: Optional[str] = None


@dataclass(frozen=True)
class VerificationRecord:
    name: str
    verified_at: datetime

    def to_json(self) -> str:
        return json.dumps({"name": self.name, "verifiedAt": as_utc(self.verified_at).isoformat()})


def build_verification_phrase(slug: str) -> str:
    return PHRASE_TEMPLATE.format(slug=slug.lower())


def validate_guest_verification(input_name: str, input_phrase: str, expected_phrase: str) -> VerificationResult:
    """Check a guest's name and phrase.

    Which check failed is deliberately not reported.
    """
    name = (input_name or "").strip()
    phrase = (input_phrase or "").strip().lower()
    expected = (expected_phrase or "").strip().lower()

    if len(name) < MIN_NAME_LENGTH or len(name) > MAX_NAME_LENGTH or phrase != expected:
        return VerificationResult(ok=False)

    return VerificationResult(ok=True, name=name)


def is_locked_out(attempts: int) -> bool:
    return attempts >= MAX_VERIFICATION_ATTEMPTS


def next_verification_attempts(attempts: int) -> int:
    return attempts + 1


def is_verification_expired(verified_at: datetime, now: datetime) -> bool:
    return as_utc(now) - as_utc(verified_at) >= VERIFICATION_TTL


def parse_verification_record(raw: Optional[str]) -> Optional[VerificationRecord]:
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
        name = parsed.get("name")
        verified_at = parsed.get("verifiedAt")
        if name and verified_at:
            return VerificationRecord(name=name, verified_at=as_utc(datetime.fromisoformat(verified_at)))
    except (ValueError, TypeError, AttributeError):
        return None
    return None


# -------- Client-held session state --------

class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store for a single client session.

    When owned by a registry, the store drops out of it once emptied and
    rejoins on the next write.
    """

    def __init__(self, registry: Optional["SessionRegistry"] = None, session_key: Optional[str] = None):
        self._data: Dict[str, str] = {}
        self._registry = registry
        self._session_key = session_key

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        if self._registry is not None:
            self._registry._attach(self._session_key, self)

    def clear(self, key: str) -> None:
        self._data.pop(key, None)
        if not self._data and self._registry is not None:
            self._registry._detach(self._session_key, self)

    def is_empty(self) -> bool:
        return not self._data


class SessionRegistry:
    """In-process map of client session id -> key-value store.

    Only sessions holding state are kept, least recently used first out
    beyond `max_sessions`.
    """

    def __init__(self, max_sessions: int = MAX_TRACKED_SESSIONS):
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, InMemoryKeyValueStore]" = OrderedDict()

    def store_for(self, session_key: str) -> InMemoryKeyValueStore:
        store = self._sessions.get(session_key)
        if store is None:
            # registered on first write
            return InMemoryKeyValueStore(self, session_key)
        self._sessions.move_to_end(session_key)
        return store

    def _attach(self, session_key: str, store: InMemoryKeyValueStore) -> None:
        self._sessions[session_key] = store
        self._sessions.move_to_end(session_key)
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info(f"Evicted guest session {evicted[:8]}... from a full registry")

    def _detach(self, session_key: str, store: InMemoryKeyValueStore) -> None:
        if self._sessions.get(session_key) is store:
            del self._sessions[session_key]

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_key: str) -> bool:
        return session_key in self._sessions

    def reset(self) -> None:
        self._sessions.clear()


session_registry = SessionRegistry()


class GuestVerificationSession:
    """Verification state of one client for one event"""

    def __init__(self, store: KeyValueStore, event_id):
        self.store = store
        self.event_id = event_id

    @property
    def record_key(self) -> str:
        return f"guest_verified:{self.event_id}"

    @property
    def attempts_key(self) -> str:
        return f"guest_verify_attempts:{self.event_id}"

    def attempts(self) -> int:
        raw = self.store.get(self.attempts_key)
        if not raw:
            return 0
        try:
            return int(raw)
        except ValueError:
            return 0

    def is_locked_out(self) -> bool:
        return is_locked_out(self.attempts())

    def attempts_remaining(self) -> int:
        return max(MAX_VERIFICATION_ATTEMPTS - self.attempts(), 0)

    def current_record(self, now: datetime) -> Optional[VerificationRecord]:
        """Return the stored record, clearing it if malformed or expired"""
        raw = self.store.get(self.record_key)
        if not raw:
            return None

        record = parse_verification_record(raw)
        if record is None or is_verification_expired(record.verified_at, now):
            self.store.clear(self.record_key)
            return None

        return record

    def is_verified(self, now: datetime) -> bool:
        return self.current_record(now) is not None

    def verify(self, input_name: str, input_phrase: str, expected_phrase: str, now: datetime) -> VerificationResult:
        if self.is_locked_out():
            logger.info(f"Verification attempt refused for locked-out session on event {self.event_id}")
            return VerificationResult(ok=False)

        result = validate_guest_verification(input_name, input_phrase, expected_phrase)

        if not result.ok:
            self.store.set(self.attempts_key, str(next_verification_attempts(self.attempts())))
            return result

        record = VerificationRecord(name=result.name, verified_at=as_utc(now))
        self.store.set(self.record_key, record.to_json())
        self.store.clear(self.attempts_key)
        return result

    def logout(self) -> None:
        self.store.clear(self.record_key)
