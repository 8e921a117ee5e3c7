import logging
import math
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import uuid4

from . import leaderboard
from .config import Settings, settings as default_settings
from .models import (
    Command,
    CommandKind,
    CommandResponse,
    Notification,
    ResponseStatus,
    TextKey,
    UserRecord,
    WithdrawalRequest,
)
from .referrals import resolve_referral
from .store import LedgerStore, Transaction

logger = logging.getLogger(__name__)

Handler = Callable[[Transaction, UserRecord, Command], CommandResponse]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_total(handlers: dict) -> None:
    missing = set(CommandKind) - set(handlers)
    if missing:
        raise RuntimeError(f"No handler for command kinds: {sorted(k.value for k in missing)}")


class RewardService:
    def __init__(
        self,
        store: LedgerStore,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = settings or default_settings
        self.clock = clock or utc_now
        self.handlers: dict[CommandKind, Handler] = {
            CommandKind.START: self._start,
            CommandKind.EARN: self._earn,
            CommandKind.BALANCE: self._balance,
            CommandKind.REFERRALS: self._referrals,
            CommandKind.LEADERBOARD: self._leaderboard,
            CommandKind.WITHDRAW: self._withdraw,
            CommandKind.VIP: self._vip,
            CommandKind.UNKNOWN: self._unknown,
        }
        ensure_total(self.handlers)

    def handle(self, command: Command) -> CommandResponse:
        with self.store.transaction() as tx:
            record = tx.get_or_create(command.chat_id)
            return self.handlers[command.kind](tx, record, command)

    def _start(self, tx: Transaction, record: UserRecord, command: Command) -> CommandResponse:
        notifications = []
        if command.ref_code:
            notification = resolve_referral(tx, record, command.ref_code, self.settings.REFERRAL_BONUS)
            if notification:
                notifications.append(notification)

        return CommandResponse(
            status=ResponseStatus.OK,
            text_key=TextKey.WELCOME,
            data={
                "chat_id": record.id,
                "ref_code": record.ref_code,
                "activated": record.activated,
                "referred": bool(notifications),
            },
            notifications=notifications,
        )

    def _earn(self, tx: Transaction, record: UserRecord, command: Command) -> CommandResponse:
        if self.settings.REQUIRE_ACTIVATION and not record.activated:
            return CommandResponse(status=ResponseStatus.REJECTED, text_key=TextKey.NOT_ACTIVATED)

        now = self.clock()
        cooldown = self.settings.EARN_COOLDOWN_SECONDS
        if record.last_earn_at is not None:
            elapsed = (now - record.last_earn_at).total_seconds()
            if elapsed < cooldown:
                # A clock reading behind last_earn_at counts as no time elapsed
                remaining = math.ceil(cooldown - max(elapsed, 0))
                return CommandResponse(
                    status=ResponseStatus.REJECTED,
                    text_key=TextKey.COOLDOWN,
                    data={"remaining_seconds": remaining},
                )

        amount = self.settings.VIP_EARN_BONUS if record.vip else self.settings.EARN_BONUS
        record.balance += amount
        record.last_earn_at = now
        tx.put(record)
        logger.info(f"{record.id} earned {amount}, balance {record.balance}")

        return CommandResponse(
            status=ResponseStatus.OK,
            text_key=TextKey.EARNED,
            data={"amount": amount, "balance": record.balance},
        )

    def _balance(self, tx: Transaction, record: UserRecord, command: Command) -> CommandResponse:
        return CommandResponse(
            status=ResponseStatus.OK,
            text_key=TextKey.BALANCE,
            data={"balance": record.balance, "vip": record.vip},
        )

    def _referrals(self, tx: Transaction, record: UserRecord, command: Command) -> CommandResponse:
        return CommandResponse(
            status=ResponseStatus.OK,
            text_key=TextKey.REFERRALS,
            data={
                "referrals": record.referrals,
                "ref_code": record.ref_code,
                "bonus": self.settings.REFERRAL_BONUS,
            },
        )

    def _leaderboard(self, tx: Transaction, record: UserRecord, command: Command) -> CommandResponse:
        entries = leaderboard.rank(tx.records(), self.settings.LEADERBOARD_SIZE)
        return CommandResponse(
            status=ResponseStatus.OK,
            text_key=TextKey.LEADERBOARD,
            data={"entries": [entry.model_dump() for entry in entries]},
        )

    def _withdraw(self, tx: Transaction, record: UserRecord, command: Command) -> CommandResponse:
        threshold = self.settings.WITHDRAW_THRESHOLD
        if record.balance < threshold:
            return CommandResponse(
                status=ResponseStatus.REJECTED,
                text_key=TextKey.WITHDRAW_SHORTFALL,
                data={"balance": record.balance, "threshold": threshold, "shortfall": threshold - record.balance},
            )

        record.balance -= threshold
        tx.put(record)
        request = WithdrawalRequest(id=uuid4(), user_id=record.id, amount=threshold, created_at=self.clock())
        logger.info(f"Withdrawal request {request.id}: {record.id} debited {threshold}, balance {record.balance}")

        notifications = []
        if self.settings.ADMIN_CHAT_ID:
            notifications.append(Notification(
                chat_id=self.settings.ADMIN_CHAT_ID,
                text_key=TextKey.WITHDRAW_PENDING,
                data=request.model_dump(mode="json"),
            ))

        return CommandResponse(
            status=ResponseStatus.OK,
            text_key=TextKey.WITHDRAW_REQUESTED,
            data={
                "amount": threshold,
                "balance": record.balance,
                "request": request.model_dump(mode="json"),
            },
            notifications=notifications,
        )

    def _vip(self, tx: Transaction, record: UserRecord, command: Command) -> CommandResponse:
        return CommandResponse(
            status=ResponseStatus.OK,
            text_key=TextKey.VIP_INFO,
            data={"vip": record.vip, "bonus": self.settings.VIP_EARN_BONUS},
        )

    def _unknown(self, tx: Transaction, record: UserRecord, command: Command) -> CommandResponse:
        return CommandResponse(status=ResponseStatus.REJECTED, text_key=TextKey.UNKNOWN_COMMAND)
