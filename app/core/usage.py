"""
Usage-limit enforcement against the per-user usage summary.

Media quotas (photo, video, audio, text) come from the precomputed
``user_usage_summary`` row. The property quota is a live count of the user's
``properties`` rows compared against the tier's static property limit.

Snapshots are cached per user and re-read once they are older than
``settings.usage_refresh_seconds``. Realtime change events call
``usage_cache.invalidate`` so a server-side change is visible on the next read.
"""
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Callable

from app.core.config import settings
from app.core.features import SubscriptionTier, get_property_limit
from app.repositories.property import PropertyRepository
from app.repositories.usage_summary import UsageSummaryRepository

logger = logging.getLogger(__name__)


class UsageKind(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"
    TEXT = "text"
    PROPERTY = "property"


MEDIA_KINDS = (UsageKind.PHOTO, UsageKind.VIDEO, UsageKind.AUDIO, UsageKind.TEXT)


@dataclass(frozen=True)
class UsageCheck:
    can_use: bool
    is_at_limit: bool
    is_locked: bool
    remaining: int
    usage: int
    limit: int

    def to_dict(self) -> dict:
        return asdict(self)


# Returned while the summary has not been loaded
LOCKED_CHECK = UsageCheck(
    can_use=False,
    is_at_limit=False,
    is_locked=True,
    remaining=0,
    usage=0,
    limit=0,
)


@dataclass
class UsageSnapshot:
    """A user's usage counters and limits at one point in time."""
    usage: dict[str, int]
    limits: dict[str, int]
    subscription_tier: str = SubscriptionTier.FREE.value
    current_period_start: str | None = None
    current_period_end: str | None = None
    loaded_at: float = field(default_factory=time.monotonic)

    @classmethod
    def from_rows(cls, summary: dict, properties_used: int) -> "UsageSnapshot":
        tier = summary.get("subscription_tier") or SubscriptionTier.FREE.value
        usage = {kind.value: int(summary.get(f"{kind.value}_usage") or 0) for kind in MEDIA_KINDS}
        limits = {kind.value: int(summary.get(f"{kind.value}_limit") or 0) for kind in MEDIA_KINDS}
        usage[UsageKind.PROPERTY.value] = properties_used
        limits[UsageKind.PROPERTY.value] = get_property_limit(tier)
        return cls(
            usage=usage,
            limits=limits,
            subscription_tier=tier,
            current_period_start=summary.get("current_period_start"),
            current_period_end=summary.get("current_period_end"),
        )


def check_usage(snapshot: UsageSnapshot | None, kind: UsageKind | str) -> UsageCheck:
    """Evaluate one quota.

    A limit of 0 means the tier does not include the resource at all
    (locked), which is reported even when nothing has been used.
    """
    if snapshot is None:
        return LOCKED_CHECK

    key = UsageKind(kind).value
    used = snapshot.usage.get(key, 0)
    limit = snapshot.limits.get(key, 0)

    is_locked = limit == 0
    is_at_limit = used >= limit
    return UsageCheck(
        can_use=not is_locked and not is_at_limit,
        is_at_limit=is_at_limit,
        is_locked=is_locked,
        remaining=max(0, limit - used),
        usage=used,
        limit=limit,
    )


def load_usage_snapshot(user_id: str) -> UsageSnapshot | None:
    """Read the summary row and count properties. None when the summary is missing."""
    summary = UsageSummaryRepository.get_by_user_id(user_id)
    if not summary:
        logger.warning(f"No usage summary found for user {user_id}")
        return None
    properties_used = PropertyRepository.count(user_id)
    return UsageSnapshot.from_rows(summary, properties_used)


class UsageSnapshotCache:
    """Per-user snapshot cache with a fixed refresh interval."""

    def __init__(
        self,
        refresh_seconds: float,
        loader: Callable[[str], UsageSnapshot | None] = load_usage_snapshot,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.refresh_seconds = refresh_seconds
        self._loader = loader
        self._clock = clock
        self._entries: dict[str, tuple[float, UsageSnapshot | None]] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str, fresh: bool = False) -> UsageSnapshot | None:
        now = self._clock()
        if not fresh:
            with self._lock:
                entry = self._entries.get(user_id)
            if entry and now - entry[0] < self.refresh_seconds:
                return entry[1]

        snapshot = self._loader(user_id)
        with self._lock:
            self._evict_expired(now)
            # Missing summaries are not cached so the next read retries
            if snapshot is not None:
                self._entries[user_id] = (now, snapshot)
        return snapshot

    def _evict_expired(self, now: float) -> None:
        expired = [uid for uid, (loaded, _) in self._entries.items() if now - loaded >= self.refresh_seconds]
        for uid in expired:
            del self._entries[uid]

    def __len__(self) -> int:
        return len(self._entries)

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


usage_cache = UsageSnapshotCache(settings.usage_refresh_seconds)


def get_usage_snapshot(user_id: str, fresh: bool = False) -> UsageSnapshot | None:
    return usage_cache.get(user_id, fresh=fresh)
