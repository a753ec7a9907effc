from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from .conversation import ConversationStateStore
from .normalizer import normalize

AWAITING_LINK_CODE = "awaiting_link_code"

_IMPLICIT_ADD_RE = re.compile(r"^\d+(\.\d+)?\s+.+", re.DOTALL)


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Link:
    code: str | None


@dataclass(frozen=True)
class Add:
    payload: str


@dataclass(frozen=True)
class Budget:
    pass


@dataclass(frozen=True)
class Today:
    pass


@dataclass(frozen=True)
class Total:
    pass


@dataclass(frozen=True)
class ListExpenses:
    pass


@dataclass(frozen=True)
class SetBudget:
    amount: str | None


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class ImplicitAdd:
    text: str


@dataclass(frozen=True)
class Unrecognized:
    pass


Action = Union[
    Start,
    Link,
    Add,
    Budget,
    Today,
    Total,
    ListExpenses,
    SetBudget,
    Help,
    ImplicitAdd,
    Unrecognized,
]


def _link_action(args: str) -> Link:
    tokens = args.split()
    return Link(code=tokens[0] if tokens else None)


def _set_budget_action(args: str) -> SetBudget:
    tokens = args.split()
    return SetBudget(amount=tokens[0] if tokens else None)


_COMMANDS = {
    "/start": lambda args: Start(),
    "/link": _link_action,
    "/add": lambda args: Add(payload=args.strip()),
    "/budget": lambda args: Budget(),
    "/today": lambda args: Today(),
    "/total": lambda args: Total(),
    "/list": lambda args: ListExpenses(),
    "/setbudget": _set_budget_action,
    "/help": lambda args: Help(),
}


def is_command(text: str) -> bool:
    return text.lstrip().startswith("/")


def parse_command(raw_text: str | None) -> Action:
    """Turn one inbound chat message into an :data:`Action`."""

    if not raw_text or not raw_text.strip():
        return Unrecognized()

    text = normalize(raw_text)
    head, _, rest = text.partition(" ")
    # Group chats address commands as /add@SomeBot.
    head = head.split("@", 1)[0].lower()
    for prefix, build in _COMMANDS.items():
        if head.startswith(prefix):
            args = head[len(prefix):] + (" " + rest if rest else "")
            return build(args)

    if _IMPLICIT_ADD_RE.match(text):
        return ImplicitAdd(text=text)
    return Unrecognized()


def split_add_payload(payload: str) -> tuple[str, str]:
    """Split ``"12.50 lunch with Sam"`` into amount text and description."""
    parts = payload.strip().split(None, 1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1]


class CommandRouter:
    """Parses chat messages, taking the pending linking conversation into account.

    After an unlinked ``/start`` the chat is marked as awaiting a linking code;
    while the mark lives, plain text is treated as the code. Commands always
    win over the pending conversation.
    """

    def __init__(self, state_store: ConversationStateStore, *, state_ttl_seconds: float) -> None:
        self.state_store = state_store
        self.state_ttl_seconds = state_ttl_seconds

    async def route(self, chat_id: str, raw_text: str | None) -> Action:
        if raw_text and raw_text.strip() and not is_command(raw_text):
            if await self.state_store.get(chat_id) == AWAITING_LINK_CODE:
                return Link(code=raw_text.strip())
        return parse_command(raw_text)

    async def begin_linking(self, chat_id: str) -> None:
        await self.state_store.set(chat_id, AWAITING_LINK_CODE, ttl_seconds=self.state_ttl_seconds)

    async def finish_linking(self, chat_id: str) -> None:
        await self.state_store.clear(chat_id)

    async def is_awaiting_code(self, chat_id: str) -> bool:
        return await self.state_store.get(chat_id) == AWAITING_LINK_CODE
