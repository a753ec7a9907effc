from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest import IsolatedAsyncioTestCase
from uuid import uuid4

from budgetly.models import ExpenseCategory, ExpenseSource
from budgetly.services.accounts import NotLinkedError
from budgetly.services.expenses import (
    DescriptionTooLongError,
    ExpenseNotFoundError,
    InvalidAmountError,
    InvalidDescriptionError,
    add_chat_expense,
    add_expense,
    clean_description,
    delete_expense,
    list_expenses,
    parse_amount,
)

from db_support import count_expenses, create_account, create_test_database


class ExpenseValidationTests(unittest.TestCase):
    def test_rejects_non_positive_and_garbage_amounts(self) -> None:
        for raw in ("0", "-5", "abc", "", None, "0.001", "NaN", "1e10"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidAmountError):
                    parse_amount(raw)

    def test_accepts_smallest_unit_and_thousands_separator(self) -> None:
        self.assertEqual(parse_amount("0.01"), Decimal("0.01"))
        self.assertEqual(parse_amount("1,250.5"), Decimal("1250.50"))
        self.assertEqual(parse_amount(Decimal("10")), Decimal("10.00"))

    def test_description_rules(self) -> None:
        with self.assertRaises(InvalidDescriptionError):
            clean_description("   ")
        with self.assertRaises(DescriptionTooLongError):
            clean_description("x" * 201)
        self.assertEqual(clean_description("x" * 200), "x" * 200)

    def test_markup_is_stripped(self) -> None:
        self.assertEqual(clean_description("<b>lunch</b> with Sam"), "lunch with Sam")
        with self.assertRaises(InvalidDescriptionError):
            clean_description("<br>")


class ExpenseServiceTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.engine, self.session_factory = await create_test_database()
        self.session = self.session_factory()

    async def asyncTearDown(self) -> None:
        await self.session.close()
        await self.engine.dispose()

    async def test_unlinked_chat_records_nothing(self) -> None:
        await create_account(self.session)

        with self.assertRaises(NotLinkedError):
            await add_chat_expense(self.session, "chat-1", "10", "coffee")
        self.assertEqual(await count_expenses(self.session), 0)

    async def test_inactive_account_is_treated_as_unlinked(self) -> None:
        await create_account(self.session, chat_id="chat-1", is_active=False)

        with self.assertRaises(NotLinkedError):
            await add_chat_expense(self.session, "chat-1", "10", "coffee")

    async def test_chat_expense_is_classified(self) -> None:
        account = await create_account(self.session, chat_id="chat-1")

        receipt = await add_chat_expense(self.session, "chat-1", "10", "coffee")

        self.assertEqual(receipt.amount, Decimal("10.00"))
        self.assertEqual(receipt.currency, "GBP")
        self.assertEqual(receipt.category, ExpenseCategory.FOOD)
        self.assertEqual(receipt.source, ExpenseSource.CHAT)
        expenses = await list_expenses(self.session, account.id)
        self.assertEqual(len(expenses), 1)
        self.assertEqual(expenses[0].amount, Decimal("10.00"))
        self.assertEqual(expenses[0].source, ExpenseSource.CHAT)

    async def test_invalid_input_records_nothing(self) -> None:
        await create_account(self.session, chat_id="chat-1")

        with self.assertRaises(InvalidAmountError):
            await add_chat_expense(self.session, "chat-1", "0", "coffee")
        with self.assertRaises(InvalidDescriptionError):
            await add_chat_expense(self.session, "chat-1", "10", "")
        self.assertEqual(await count_expenses(self.session), 0)

    async def test_explicit_category_overrides_keywords(self) -> None:
        account = await create_account(self.session)

        receipt = await add_expense(
            self.session,
            account,
            "25",
            "coffee beans for the office",
            ExpenseSource.WEB,
            category=ExpenseCategory.SHOPPING,
        )

        self.assertEqual(receipt.category, ExpenseCategory.SHOPPING)
        self.assertEqual(receipt.source, ExpenseSource.WEB)

    async def test_list_is_newest_first_and_windowed(self) -> None:
        account = await create_account(self.session)
        base = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
        for offset, description in enumerate(("bus", "lunch", "cinema")):
            await add_expense(
                self.session,
                account,
                "5",
                description,
                ExpenseSource.WEB,
                occurred_at=base + timedelta(hours=offset),
            )

        expenses = await list_expenses(self.session, account.id)
        self.assertEqual([e.description for e in expenses], ["cinema", "lunch", "bus"])

        windowed = await list_expenses(
            self.session,
            account.id,
            start=base + timedelta(minutes=30),
            end=base + timedelta(hours=2),
        )
        self.assertEqual([e.description for e in windowed], ["lunch"])

    async def test_delete_checks_owner(self) -> None:
        owner = await create_account(self.session)
        other = await create_account(self.session, email="bob@example.com", name="Bob")
        receipt = await add_expense(self.session, owner, "5", "bus", ExpenseSource.WEB)

        with self.assertRaises(ExpenseNotFoundError):
            await delete_expense(self.session, other.id, receipt.expense_id)
        with self.assertRaises(ExpenseNotFoundError):
            await delete_expense(self.session, owner.id, uuid4())

        await delete_expense(self.session, owner.id, receipt.expense_id)
        self.assertEqual(await count_expenses(self.session), 0)
