from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class CommandKind(str, Enum):
    START = "start"
    EARN = "earn"
    BALANCE = "balance"
    REFERRALS = "referrals"
    LEADERBOARD = "leaderboard"
    WITHDRAW = "withdraw"
    VIP = "vip"
    UNKNOWN = "unknown"


class ResponseStatus(str, Enum):
    OK = "ok"
    REJECTED = "rejected"
    ERROR = "error"


class TextKey(str, Enum):
    WELCOME = "welcome"
    EARNED = "earned"
    COOLDOWN = "cooldown"
    NOT_ACTIVATED = "not_activated"
    BALANCE = "balance"
    REFERRALS = "referrals"
    REFERRAL_JOINED = "referral_joined"
    LEADERBOARD = "leaderboard"
    WITHDRAW_REQUESTED = "withdraw_requested"
    WITHDRAW_SHORTFALL = "withdraw_shortfall"
    WITHDRAW_PENDING = "withdraw_pending"
    VIP_INFO = "vip_info"
    UNKNOWN_COMMAND = "unknown_command"
    INTERNAL_ERROR = "internal_error"


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"


class UserRecord(BaseModel):
    id: str
    balance: int = Field(default=0, ge=0)
    last_earn_at: Optional[datetime] = None
    referrals: int = Field(default=0, ge=0)
    ref_code: str
    referred_by: Optional[str] = None
    activated: bool = False
    vip: bool = False

    model_config = ConfigDict(validate_assignment=True)


class Command(BaseModel):
    kind: CommandKind
    chat_id: str
    ref_code: Optional[str] = None
    callback_id: Optional[str] = None


class Notification(BaseModel):
    chat_id: str
    text_key: TextKey
    data: dict[str, Any] = Field(default_factory=dict)


class CommandResponse(BaseModel):
    status: ResponseStatus
    text_key: TextKey
    data: dict[str, Any] = Field(default_factory=dict)
    notifications: list[Notification] = Field(default_factory=list)


class WithdrawalRequest(BaseModel):
    id: UUID
    user_id: str
    amount: int
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    created_at: datetime


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    balance: int
