from typing import Iterable

from .models import LeaderboardEntry, UserRecord

DEFAULT_SIZE = 10


def rank(records: Iterable[UserRecord], size: int = DEFAULT_SIZE) -> list[LeaderboardEntry]:
    # Balance descending, then id ascending so equal balances keep a stable order
    ordered = sorted(records, key=lambda r: (-r.balance, r.id))
    return [
        LeaderboardEntry(rank=position, user_id=record.id, balance=record.balance)
        for position, record in enumerate(ordered[:max(size, 0)], start=1)
    ]
