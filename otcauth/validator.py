"""Exactly-once challenge validation."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .challenges import ChallengeStore
from .codes import codes_match
from .database import StorageError
from .models import Challenge, ChallengePurpose, utcnow
from .results import Err, ErrorKind, Ok, Result

LOGGER = logging.getLogger(__name__)


class ChallengeValidator:
    """Find the live challenge for a code and consume it.

    Wrong, expired, already used and superseded codes all come back as the
    same ``InvalidOrExpiredCode`` error. A caller that loses the consume race
    gets that error too.
    """

    def __init__(
        self,
        store: ChallengeStore,
        supersede_on_reissue: bool = True,
        clock: Callable[[], object] = utcnow,
    ) -> None:
        self.store = store
        self.supersede_on_reissue = supersede_on_reissue
        self.clock = clock

    def validate(self, email: str, code: str, purpose: ChallengePurpose) -> Result:
        now = self.clock()
        try:
            challenge = self._candidate(email, code, purpose, now)
            if challenge is None:
                return Err(ErrorKind.INVALID_OR_EXPIRED_CODE)
            if not self.store.consume(challenge.id, now):
                LOGGER.info("Challenge %s already consumed by a concurrent request", challenge.id)
                return Err(ErrorKind.INVALID_OR_EXPIRED_CODE)
        except StorageError as exc:
            LOGGER.error("Challenge store unavailable during validation: %s", exc)
            return Err(ErrorKind.STORAGE_UNAVAILABLE, str(exc))
        challenge.consumed = True
        challenge.consumed_at = now
        return Ok(challenge)

    def _candidate(
        self, email: str, code: str, purpose: ChallengePurpose, now
    ) -> Optional[Challenge]:
        if not self.supersede_on_reissue:
            return self.store.find_live(email, code, purpose, now)
        latest = self.store.latest(email, purpose)
        if latest is None or not latest.is_live(now) or not codes_match(latest.code, code):
            return None
        return latest
