# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Text normalization and pattern helpers for ledger memos.

Ledger rows carry free text (payee name + memo). The classifier and the
payroll inferencer both need the same small vocabulary of text operations:

- `normalize_key`        : lower-case and keep only [a-z0-9] ("SP Services" -> "spservices").
- `strip_period_tokens`  : remove month tokens ("Mar", "March", "Mar'23") and
                           2-4 digit runs (years, day numbers).
- `strip_procedural_prefix`: remove leading bookkeeping verbs such as
                           "Being", "Payment", "Adv", "Advance", "Salary".
- `payee_tokens`         : word tokens of a payee field once period tokens and
                           procedural prefixes are removed.
- `extract_employee_name`: the "<NAME> <MONTH>" pattern used by payroll memos.

The regular expressions are an implementation detail; what matters is which
substrings count as a month token and which prefixes are stripped.
"""

import re
from typing import Optional

MONTH_TOKEN = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)

PROCEDURAL_PREFIXES: tuple[str, ...] = ("being", "payment", "advance", "adv", "salary")

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_WORD = re.compile(r"[^a-z0-9\s]")
_PERIOD_TOKENS = re.compile(
    rf"\b{MONTH_TOKEN}(?:'\d{{2}})?\b|\b\d{{2,4}}\b", re.IGNORECASE
)
_PREFIX = re.compile(
    r"^(?:" + "|".join(PROCEDURAL_PREFIXES) + r")\s+", re.IGNORECASE
)
_NAME_BEFORE_MONTH = re.compile(
    rf"^\s*([A-Za-z\s]+?)\s+{MONTH_TOKEN}\b", re.IGNORECASE
)
_DIGIT = re.compile(r"\d")
_WORD = re.compile(r"[a-z0-9]+")


def normalize_key(text: Optional[str]) -> str:
    """Lower-case a text and drop every character outside [a-z0-9]."""
    if not text:
        return ""
    return _NON_ALNUM.sub("", str(text).lower())


def strip_period_tokens(text: str) -> str:
    """Remove month tokens and 2-4 digit runs, then collapse whitespace.

    Examples:
        "John Tan Mar'23"  -> "John Tan"
        "Salary 2023 June" -> "Salary"
    """
    out = _PERIOD_TOKENS.sub(" ", text)
    return " ".join(out.split())


def strip_procedural_prefix(text: str) -> str:
    """Remove leading procedural words ("Being", "Payment", "Adv", ...).

    Prefixes are removed repeatedly, so "Being payment Jane Lim" becomes
    "Jane Lim".
    """
    out = text.strip()
    while True:
        stripped = _PREFIX.sub("", out, count=1)
        if stripped == out:
            return out
        out = stripped.strip()


def payee_tokens(payee: str) -> list[str]:
    """Word tokens of a payee field once period tokens and prefixes are gone."""
    cleaned = strip_period_tokens(payee.lower())
    cleaned = " ".join(_NON_WORD.sub(" ", cleaned).split())
    return strip_procedural_prefix(cleaned).split()


def has_digit(text: str) -> bool:
    return _DIGIT.search(text) is not None


def word_set(text: Optional[str]) -> frozenset[str]:
    """Lower-cased alphanumeric words of a text ("IRAS/GST" -> {"iras", "gst"})."""
    if not text:
        return frozenset()
    return frozenset(_WORD.findall(str(text).lower()))


def extract_employee_name(description: Optional[str]) -> Optional[str]:
    """Extract the employee name from a "<NAME> <MONTH> ..." payroll memo.

    The name is the run of letters and spaces preceding the first month
    token, with leading procedural words removed. Returns None when the memo
    does not follow the pattern.

    Examples:
        "Jane Lim Apr salary"        -> "Jane Lim"
        "Being Salary John Tan Mar"  -> "John Tan"
        "Office rent 2023"           -> None
    """
    if not description:
        return None
    match = _NAME_BEFORE_MONTH.match(description)
    if match is None:
        return None
    name = " ".join(strip_procedural_prefix(match.group(1)).split())
    if not name or name.lower() in PROCEDURAL_PREFIXES:
        return None
    return name
