from __future__ import annotations

import unittest
from unittest import IsolatedAsyncioTestCase

from budgetly.models import ExpenseCategory
from budgetly.services.categories import classify
from budgetly.services.commands import (
    Add,
    Budget,
    CommandRouter,
    Help,
    ImplicitAdd,
    Link,
    ListExpenses,
    SetBudget,
    Start,
    Today,
    Total,
    Unrecognized,
    parse_command,
    split_add_payload,
)
from budgetly.services.conversation import InMemoryStateStore
from budgetly.services.normalizer import normalize, replace_number_words


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class NormalizerTests(unittest.TestCase):
    def test_spoken_add_becomes_payload(self) -> None:
        self.assertEqual(normalize("add five pounds for coffee"), "5 coffee")

    def test_currency_symbol_is_dropped(self) -> None:
        self.assertEqual(normalize("Add £12.50 for lunch"), "12.50 lunch")

    def test_budget_and_today_questions(self) -> None:
        self.assertEqual(normalize("How much left?"), "/budget")
        self.assertEqual(normalize("show my budget"), "/budget")
        self.assertEqual(normalize("what have I spent today"), "/today")

    def test_commands_are_untouched(self) -> None:
        self.assertEqual(normalize("  /add five coffee "), "/add five coffee")

    def test_number_words_respect_word_boundaries(self) -> None:
        self.assertEqual(replace_number_words("Fifty lunch"), "50 lunch")
        self.assertEqual(replace_number_words("someone paid"), "someone paid")


class CategoryTests(unittest.TestCase):
    def test_keyword_categories(self) -> None:
        self.assertEqual(classify("Flat white coffee"), ExpenseCategory.FOOD)
        self.assertEqual(classify("Uber home"), ExpenseCategory.TRANSPORT)
        self.assertEqual(classify("Netflix"), ExpenseCategory.ENTERTAINMENT)
        self.assertEqual(classify("new shoes"), ExpenseCategory.SHOPPING)
        self.assertEqual(classify("electricity"), ExpenseCategory.BILLS)

    def test_unknown_description_is_other(self) -> None:
        self.assertEqual(classify("random"), ExpenseCategory.OTHER)

    def test_earlier_category_wins_on_overlap(self) -> None:
        self.assertEqual(classify("gas bill"), ExpenseCategory.TRANSPORT)

    def test_custom_keyword_table(self) -> None:
        keywords = {ExpenseCategory.BILLS: ("gas",), ExpenseCategory.TRANSPORT: ("gas",)}
        self.assertEqual(classify("Gas", keywords), ExpenseCategory.BILLS)


class ParseCommandTests(unittest.TestCase):
    def test_explicit_commands(self) -> None:
        self.assertEqual(parse_command("/start"), Start())
        self.assertEqual(parse_command("/help"), Help())
        self.assertEqual(parse_command("/budget"), Budget())
        self.assertEqual(parse_command("/today"), Today())
        self.assertEqual(parse_command("/add 10 coffee"), Add(payload="10 coffee"))

    def test_link_takes_first_token(self) -> None:
        self.assertEqual(parse_command("/link abc123 extra"), Link(code="abc123"))
        self.assertEqual(parse_command("/link"), Link(code=None))

    def test_month_commands(self) -> None:
        self.assertEqual(parse_command("/total"), Total())
        self.assertEqual(parse_command("/list"), ListExpenses())
        self.assertEqual(parse_command("/link ABC123"), Link(code="ABC123"))
        self.assertEqual(parse_command("/setbudget 150 pounds"), SetBudget(amount="150"))
        self.assertEqual(parse_command("/setbudget"), SetBudget(amount=None))

    def test_group_chat_mention_and_case(self) -> None:
        self.assertEqual(parse_command("/ADD@BudgetlyBot 10 coffee"), Add(payload="10 coffee"))

    def test_implicit_add(self) -> None:
        self.assertEqual(parse_command("50 Coffee"), ImplicitAdd(text="50 Coffee"))
        self.assertEqual(parse_command("add five pounds for coffee"), ImplicitAdd(text="5 coffee"))

    def test_natural_language_intents(self) -> None:
        self.assertEqual(parse_command("how much left"), Budget())
        self.assertEqual(parse_command("spent today"), Today())

    def test_unrecognized(self) -> None:
        self.assertEqual(parse_command("50"), Unrecognized())
        self.assertEqual(parse_command("hello there"), Unrecognized())
        self.assertEqual(parse_command("/unknown"), Unrecognized())
        self.assertEqual(parse_command("   "), Unrecognized())
        self.assertEqual(parse_command(None), Unrecognized())

    def test_split_add_payload(self) -> None:
        self.assertEqual(split_add_payload("12.50 lunch with Sam"), ("12.50", "lunch with Sam"))
        self.assertEqual(split_add_payload("12"), ("12", ""))
        self.assertEqual(split_add_payload(""), ("", ""))


class ConversationStateTests(IsolatedAsyncioTestCase):
    async def test_state_expires_after_ttl(self) -> None:
        clock = FakeClock()
        store = InMemoryStateStore(clock=clock)
        await store.set("42", "waiting", ttl_seconds=300)
        self.assertEqual(await store.get("42"), "waiting")

        clock.now += 301
        self.assertIsNone(await store.get("42"))

    async def test_clear_is_idempotent(self) -> None:
        store = InMemoryStateStore()
        await store.set("42", "waiting", ttl_seconds=60)
        await store.clear("42")
        await store.clear("42")
        self.assertIsNone(await store.get("42"))

    async def test_writes_drop_expired_entries_of_other_chats(self) -> None:
        clock = FakeClock()
        store = InMemoryStateStore(clock=clock)
        await store.set("1", "waiting", ttl_seconds=300)
        await store.set("2", "waiting", ttl_seconds=300)

        clock.now += 301
        await store.set("3", "waiting", ttl_seconds=300)

        self.assertEqual(len(store), 1)
        self.assertEqual(await store.get("3"), "waiting")


class CommandRouterTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.clock = FakeClock()
        self.router = CommandRouter(InMemoryStateStore(clock=self.clock), state_ttl_seconds=300)

    async def test_plain_text_is_code_while_awaiting(self) -> None:
        await self.router.begin_linking("42")
        self.assertTrue(await self.router.is_awaiting_code("42"))
        self.assertEqual(await self.router.route("42", " abc123 "), Link(code="abc123"))

    async def test_commands_win_over_pending_link(self) -> None:
        await self.router.begin_linking("42")
        self.assertEqual(await self.router.route("42", "/help"), Help())
        self.assertTrue(await self.router.is_awaiting_code("42"))

    async def test_other_chats_are_unaffected(self) -> None:
        await self.router.begin_linking("42")
        self.assertEqual(await self.router.route("7", "abc123"), Unrecognized())

    async def test_pending_link_expires(self) -> None:
        await self.router.begin_linking("42")
        self.clock.now += 301
        self.assertEqual(await self.router.route("42", "abc123"), Unrecognized())

    async def test_finish_linking_clears_state(self) -> None:
        await self.router.begin_linking("42")
        await self.router.finish_linking("42")
        self.assertFalse(await self.router.is_awaiting_code("42"))
        self.assertEqual(await self.router.route("42", "50 coffee"), ImplicitAdd(text="50 coffee"))
