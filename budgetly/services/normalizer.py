"""Rewrite free-form chat text (typed or transcribed) into bot commands."""

from __future__ import annotations

import re

NUMBER_WORDS: dict[str, int] = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "thirteen": 13,
    "fourteen": 14,
    "fifteen": 15,
    "sixteen": 16,
    "seventeen": 17,
    "eighteen": 18,
    "nineteen": 19,
    "twenty": 20,
    "thirty": 30,
    "forty": 40,
    "fifty": 50,
    "sixty": 60,
    "seventy": 70,
    "eighty": 80,
    "ninety": 90,
}

_NUMBER_WORD_RE = re.compile(
    r"\b(" + "|".join(NUMBER_WORDS) + r")\b",
    re.IGNORECASE,
)
_CURRENCY_RE = re.compile(r"\b(?:pounds?|gbp|dollars?|euros?|lbs?)\b|[£$€]", re.IGNORECASE)
_FILLER_RE = re.compile(r"\bfor\b", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")

BUDGET_PHRASES = ("budget", "how much left")
TODAY_PHRASES = ("today", "spent today")
ADD_PREFIX = "add "


def replace_number_words(text: str) -> str:
    """Swap standalone number words ("five", "Twenty") for digits."""
    return _NUMBER_WORD_RE.sub(lambda match: str(NUMBER_WORDS[match.group(1).lower()]), text)


def strip_add_fillers(text: str) -> str:
    """Drop currency words/symbols and the filler "for", then collapse whitespace."""
    cleaned = _CURRENCY_RE.sub(" ", text)
    cleaned = _FILLER_RE.sub(" ", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def normalize(text: str) -> str:
    """Return the canonical command string for ``text``.

    Explicit commands (anything starting with ``/``) are returned untouched.
    Budget and today questions become ``/budget`` and ``/today``; messages
    starting with "add " are reduced to a bare ``"<amount> <description>"``
    payload, leaving the caller to decide how to route it.
    """

    stripped = text.strip()
    if stripped.startswith("/"):
        return stripped

    original = replace_number_words(stripped)
    lowered = original.lower()

    if any(phrase in lowered for phrase in BUDGET_PHRASES):
        return "/budget"
    if any(phrase in lowered for phrase in TODAY_PHRASES):
        return "/today"
    if lowered.startswith(ADD_PREFIX):
        return strip_add_fillers(lowered[len(ADD_PREFIX):])
    return original
