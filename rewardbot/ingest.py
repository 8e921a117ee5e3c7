from typing import Optional, Union
from pydantic import BaseModel

from .models import Command, CommandKind


class InvalidUpdateError(ValueError):
    pass


class Chat(BaseModel):
    id: Union[int, str]


class Message(BaseModel):
    chat: Chat
    text: Optional[str] = None


class CallbackQuery(BaseModel):
    id: str
    data: Optional[str] = None
    message: Optional[Message] = None


class Update(BaseModel):
    update_id: Optional[int] = None
    message: Optional[Message] = None
    callback_query: Optional[CallbackQuery] = None


COMMAND_NAMES: dict[str, CommandKind] = {
    "start": CommandKind.START,
    "earn": CommandKind.EARN,
    "balance": CommandKind.BALANCE,
    "ref": CommandKind.REFERRALS,
    "referrals": CommandKind.REFERRALS,
    "leaderboard": CommandKind.LEADERBOARD,
    "top": CommandKind.LEADERBOARD,
    "withdraw": CommandKind.WITHDRAW,
    "vip": CommandKind.VIP,
}


def parse_text(text: Optional[str]) -> tuple[CommandKind, Optional[str]]:
    """Split ``/command[@bot] [argument]`` into a command kind and its argument."""
    text = (text or "").strip()
    if not text.startswith("/"):
        return CommandKind.UNKNOWN, None
    head, _, rest = text[1:].partition(" ")
    name = head.split("@", 1)[0].lower()
    kind = COMMAND_NAMES.get(name, CommandKind.UNKNOWN)
    argument = rest.strip() or None
    return kind, argument if kind == CommandKind.START else None


def to_command(update: Update) -> Command:
    if update.message is not None:
        kind, ref_code = parse_text(update.message.text)
        return Command(kind=kind, chat_id=str(update.message.chat.id), ref_code=ref_code)

    if update.callback_query is not None:
        query = update.callback_query
        if query.message is None:
            raise InvalidUpdateError("Callback query has no originating chat")
        kind = COMMAND_NAMES.get((query.data or "").strip().lower(), CommandKind.UNKNOWN)
        return Command(kind=kind, chat_id=str(query.message.chat.id), callback_id=query.id)

    raise InvalidUpdateError("Update carries neither a message nor a callback query")
