"""
Reward Bot Backend

This package provides:
- A JSON-file ledger of user records with whole-store transactions
- Referral attribution with a single bonus per referee
- Cooldown-gated earning and threshold-gated withdrawals
- A deterministic balance leaderboard
- A Telegram webhook app and gateway client
"""

from .models import (
    CommandKind,
    ResponseStatus,
    TextKey,
    UserRecord,
    Command,
    CommandResponse,
)
from .service import RewardService
from .store import LedgerStore, StoreIOError, StoreCorruptError

__all__ = [
    "CommandKind",
    "ResponseStatus",
    "TextKey",
    "UserRecord",
    "Command",
    "CommandResponse",
    "RewardService",
    "LedgerStore",
    "StoreIOError",
    "StoreCorruptError",
]
