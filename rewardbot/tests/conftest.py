"""
Pytest fixtures shared by the reward bot tests.
"""
from datetime import datetime, timedelta, timezone

import pytest

from rewardbot.config import Settings
from rewardbot.models import Command, CommandKind
from rewardbot.service import RewardService
from rewardbot.store import LedgerStore


START_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START_TIME):
        self.now = start
    
    def __call__(self) -> datetime:
        return self.now
    
    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingGateway:
    """Stands in for TelegramGateway and records outbound calls."""
    
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []
        self.acknowledged: list[str] = []
        self.webhooks: list[str] = []
        self.closed = False
    
    def send(self, chat_id, text, reply_markup=None) -> bool:
        self.sent.append({"chat_id": chat_id, "text": text, "reply_markup": reply_markup})
        return not self.fail
    
    def acknowledge(self, callback_id) -> bool:
        self.acknowledged.append(callback_id)
        return not self.fail
    
    def set_webhook(self, url) -> dict:
        self.webhooks.append(url)
        return {"ok": True, "result": True, "description": "Webhook was set"}
    
    def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        BOT_TOKEN="test-token",
        USERS_FILE=str(tmp_path / "users.json"),
        ERROR_LOG=str(tmp_path / "error.log"),
    )


@pytest.fixture
def store(settings) -> LedgerStore:
    return LedgerStore(settings.USERS_FILE)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store, settings, clock) -> RewardService:
    return RewardService(store, settings, clock=clock)


def command(kind: CommandKind, chat_id: str, ref_code=None) -> Command:
    return Command(kind=kind, chat_id=chat_id, ref_code=ref_code)
