"""UsageLedger: per-identity rolling token counters."""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Protocol

from ..logging_config import get_logger
from ..models import UsageRecord
from ..storage import IStorage
from .tokenizer import ITokenizer, TiktokenTokenizer

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IUsageLedger(Protocol):
    """Token accounting per chat/user identity."""

    async def charge(self, identity: str, token_delta: int) -> UsageRecord:
        """Add tokens to an identity's counters and persist them."""
        ...

    def count_exchange(self, input_text: str, output_text: str) -> int:
        """Tokens chargeable for one request and its reply."""
        ...

    def read(self, identity: str) -> UsageRecord | None:
        """Current counters of an identity, or None before its first charge."""
        ...


def apply_charge(record: UsageRecord, token_delta: int, now: datetime) -> UsageRecord:
    """Return ``record`` updated with ``token_delta`` charged at ``now``.

    Daily counters restart on a new UTC calendar day, monthly counters on a
    new UTC calendar month; the total always accumulates.
    """
    last = record.updated.astimezone(timezone.utc)
    now = now.astimezone(timezone.utc)

    same_month = (last.year, last.month) == (now.year, now.month)
    same_day = same_month and last.day == now.day

    return replace(
        record,
        updated=now,
        daily_tokens=record.daily_tokens + token_delta if same_day else token_delta,
        monthly_tokens=record.monthly_tokens + token_delta if same_month else token_delta,
        total_tokens=record.total_tokens + token_delta,
    )


class UsageLedger:
    """Keeps usage records in memory and writes through to Storage.

    Charges for the same identity are serialized so read-modify-persist acts
    as one step. The in-memory record is only replaced after persistence
    succeeded.
    """

    def __init__(
        self,
        storage: IStorage,
        tokenizer: ITokenizer | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._storage = storage
        self._tokenizer = tokenizer or TiktokenTokenizer()
        self._clock = clock
        self._records: dict[str, UsageRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def load(self) -> None:
        """Load every stored record."""
        records = await self._storage.get_usage_records()
        self._records = {record.identity: record for record in records}
        logger.info("Loaded usage for %s identities", len(self._records))

    def read(self, identity: str) -> UsageRecord | None:
        record = self._records.get(str(identity))
        return replace(record) if record else None

    async def charge(self, identity: str, token_delta: int) -> UsageRecord:
        if token_delta < 0:
            raise ValueError("token_delta must not be negative")

        identity = str(identity)
        lock = self._locks.setdefault(identity, asyncio.Lock())
        async with lock:
            now = self._clock()
            current = self._records.get(identity)
            if current is None:
                updated = UsageRecord(
                    identity=identity,
                    updated=now,
                    daily_tokens=token_delta,
                    monthly_tokens=token_delta,
                    total_tokens=token_delta,
                )
            else:
                updated = apply_charge(current, token_delta, now)

            await self._storage.save_usage_record(updated)
            self._records[identity] = updated

        logger.debug(
            "Charged %s tokens",
            token_delta,
            extra={"context": {"identity": identity, "total": updated.total_tokens}},
        )
        return replace(updated)

    def count_exchange(self, input_text: str, output_text: str) -> int:
        return self._tokenizer.count(input_text) + self._tokenizer.count(output_text)
