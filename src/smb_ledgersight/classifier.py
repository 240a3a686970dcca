# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Heuristic transaction classifier.

Each ledger row (payee name + memo) is assigned to one category of the
current `CategoryTree` by a first-match rule table. Rules are evaluated in
strict priority order:

    1. utility override   : utility-provider tokens => Utilities
    2. entity keywords    : government words => fines & penalties,
                            banking / loan tokens => loan interest,
                            food tokens => staff meals
    3. name index         : the text contains a normalized category name
                            => that category (first in insertion order)
    4. human-name payroll : the payee looks like a person (2 to 5 tokens, no
                            digits, no business suffix) => payroll
                            liabilities; otherwise salary tokens =>
                            salaries & wages
    5. rejection          : no rule matched; the row stays uncategorized

Each rule is a small named function `(LedgerText, RuleContext) -> id | None`
so it can be tested on its own, and the table can be replaced by the caller.

Classification is a pure function of (text, tree state at call time): the
classifier never mutates the tree, and it rebuilds its lookup structures
whenever the tree's `version` changes, so categories created earlier in the
same import are visible to later rows.

Rules that target a fixed category ("anchor", e.g. Utilities) only match
when the tree actually contains a category for that anchor; otherwise the
cascade falls through to the next rule.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import pandas as pd

from .categories import CategoryTree
from .io import parse_amount
from .textnorm import has_digit, normalize_key, payee_tokens, word_set

logger = logging.getLogger(__name__)

# Number of rejection lines written to the log at the end of a pass.
REJECTION_LOG_LIMIT = 50


@dataclass(frozen=True)
class ClassifierKeywords:
    """Keyword lists used by the entity and payroll rules.

    Keywords are compared against the alphanumeric-normalized text, so
    "standard chartered" and "standardchartered" are equivalent. Government
    keywords are agency acronyms and only match whole words.
    """

    utility: tuple[str, ...] = (
        "spservices",
        "spbill",
        "electricity",
        "waterbill",
        "utilities",
    )
    government: tuple[str, ...] = (
        "lta",
        "iras",
        "spf",
        "cpfb",
        "fwl",
        "mom",
        "acra",
        "ura",
        "comc",
    )
    banking: tuple[str, ...] = (
        "dbs",
        "ocbc",
        "uob",
        "maybank",
        "cimb",
        "standard chartered",
        "loan",
        "interest",
        "finance",
        "bridging",
    )
    food: tuple[str, ...] = (
        "mcdonald",
        "food",
        "lunch",
        "dinner",
        "restaurant",
        "catering",
        "kitchen",
        "cafe",
        "pantry",
        "yum cha",
        "coffee",
    )
    business_suffixes: tuple[str, ...] = (
        "pte",
        "ltd",
        "corp",
        "inc",
        "engineering",
        "services",
        "technologies",
        "logistic",
        "express",
        "towing",
        "repair",
    )
    salary: tuple[str, ...] = ("salary", "salaries", "wage", "pay")


# Anchor key -> category name fragments, tried in order.
ANCHOR_NAMES: dict[str, tuple[str, ...]] = {
    "utilities": ("utilities", "electricity"),
    "fines": ("fine and penalty", "fines & penalties", "fines and penalties", "penalt"),
    "loan_interest": ("loan interest",),
    "staff_meals": ("staff meals",),
    "payroll_other": ("payroll liabilities - other", "payroll liabilities"),
    "salaries_wages": ("salaries & wages", "salaries and wages", "salaries", "wages"),
}


@dataclass(frozen=True)
class Transaction:
    """A ledger row, classified or not.

    Attributes:
        id: Storage identifier (None until persisted).
        user_id: Owner of the row (normalized e-mail).
        date: Transaction date.
        description: Payee name and memo, as imported.
        debit: Money out (>= 0).
        credit: Money in (>= 0).
        category_id: Category assigned by the classifier (None when the row
            was rejected).
        category_name: Name of the category, attached when loading history.
    """

    id: Optional[int]
    user_id: str
    date: date
    description: str
    debit: float
    credit: float
    category_id: Optional[int] = None
    category_name: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        """Composite key user|date|description|debit used for de-duplication."""
        return (
            f"{self.user_id.strip().lower()}|{self.date.isoformat()}|"
            f"{self.description.strip().lower()}|{round(self.debit, 2):.2f}"
        )


@dataclass(frozen=True)
class LedgerText:
    """Pre-computed views of one ledger row's text."""

    raw: str
    clean: str
    payee: str
    payee_tokens: tuple[str, ...]
    words: frozenset[str]

    @classmethod
    def from_parts(cls, payee: str, memo: str = "") -> "LedgerText":
        payee = (payee or "").strip()
        memo = (memo or "").strip()
        raw = f"{payee} {memo}".strip()
        return cls(
            raw=raw,
            clean=normalize_key(raw),
            payee=payee,
            payee_tokens=tuple(payee_tokens(payee)),
            words=word_set(raw),
        )


@dataclass(frozen=True)
class RuleContext:
    """Read-only lookups derived from the tree at classification time."""

    anchors: Mapping[str, Optional[int]]
    name_index: Sequence[tuple[str, int]]
    keywords: ClassifierKeywords


@dataclass(frozen=True)
class ClassificationRule:
    """A named rule of the cascade."""

    name: str
    apply: Callable[[LedgerText, RuleContext], Optional[int]]


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one row.

    `category_id` is None for a rejection; `reason` always explains the
    outcome (rule name or rejection reason).
    """

    category_id: Optional[int]
    rule: Optional[str]
    reason: str

    @property
    def matched(self) -> bool:
        return self.category_id is not None


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _contains_any(clean: str, keywords: Sequence[str]) -> bool:
    return any(k and k in clean for k in (normalize_key(kw) for kw in keywords))


def _has_word(text: LedgerText, keywords: Sequence[str]) -> bool:
    # Single-word keywords must be a whole word ("ura" does not hit "restaurant").
    for kw in keywords:
        key = normalize_key(kw)
        if not key:
            continue
        if len(kw.split()) > 1 and key in text.clean:
            return True
        if key in text.words:
            return True
    return False


def rule_utility_override(text: LedgerText, ctx: RuleContext) -> Optional[int]:
    if _contains_any(text.clean, ctx.keywords.utility):
        return ctx.anchors.get("utilities")
    return None


def rule_government(text: LedgerText, ctx: RuleContext) -> Optional[int]:
    if _has_word(text, ctx.keywords.government):
        return ctx.anchors.get("fines")
    return None


def rule_banking(text: LedgerText, ctx: RuleContext) -> Optional[int]:
    if _contains_any(text.clean, ctx.keywords.banking):
        return ctx.anchors.get("loan_interest")
    return None


def rule_food(text: LedgerText, ctx: RuleContext) -> Optional[int]:
    if _contains_any(text.clean, ctx.keywords.food):
        return ctx.anchors.get("staff_meals")
    return None


def rule_name_index(text: LedgerText, ctx: RuleContext) -> Optional[int]:
    # First hit in insertion order wins; there is no other tie-break.
    for key, category_id in ctx.name_index:
        if key in text.clean:
            return category_id
    return None


def rule_human_name(text: LedgerText, ctx: RuleContext) -> Optional[int]:
    tokens = text.payee_tokens
    if not 2 <= len(tokens) <= 5:
        return None
    if has_digit(" ".join(tokens)):
        return None
    suffixes = {normalize_key(s) for s in ctx.keywords.business_suffixes}
    if text.words & suffixes:
        return None
    return ctx.anchors.get("payroll_other")


def rule_salary_keywords(text: LedgerText, ctx: RuleContext) -> Optional[int]:
    if _contains_any(text.clean, ctx.keywords.salary):
        return ctx.anchors.get("salaries_wages")
    return None


def default_rules() -> list[ClassificationRule]:
    """The default cascade, in priority order."""
    return [
        ClassificationRule("utility_override", rule_utility_override),
        ClassificationRule("government", rule_government),
        ClassificationRule("banking", rule_banking),
        ClassificationRule("food", rule_food),
        ClassificationRule("name_index", rule_name_index),
        ClassificationRule("human_name", rule_human_name),
        ClassificationRule("salary_keywords", rule_salary_keywords),
    ]


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class TransactionClassifier:
    """Classify ledger text against the current state of a CategoryTree."""

    def __init__(
        self,
        tree: CategoryTree,
        keywords: Optional[ClassifierKeywords] = None,
        rules: Optional[Sequence[ClassificationRule]] = None,
    ):
        self.tree = tree
        self.keywords = keywords or ClassifierKeywords()
        self.rules = list(rules) if rules is not None else default_rules()
        self._context: Optional[RuleContext] = None
        self._context_version = -1

    def context(self) -> RuleContext:
        """Return lookups for the current tree, rebuilding them if it changed."""
        if self._context is None or self._context_version != self.tree.version:
            anchors: dict[str, Optional[int]] = {}
            for key, fragments in ANCHOR_NAMES.items():
                cat = self.tree.find_first_containing(*fragments)
                anchors[key] = cat.id if cat is not None else None
                if cat is None:
                    logger.debug("No category found for anchor %r", key)
            self._context = RuleContext(
                anchors=anchors,
                name_index=self.tree.name_index(),
                keywords=self.keywords,
            )
            self._context_version = self.tree.version
        return self._context

    def classify_text(self, text: LedgerText) -> Classification:
        if not text.clean:
            return Classification(None, None, "empty text")
        ctx = self.context()
        for rule in self.rules:
            category_id = rule.apply(text, ctx)
            if category_id is not None:
                logger.debug("%r matched rule %s -> %d", text.raw, rule.name, category_id)
                return Classification(category_id, rule.name, rule.name)
        return Classification(None, None, "no rule matched")

    def classify(self, payee: str, memo: str = "") -> Classification:
        """Classify a row given its payee name and memo."""
        return self.classify_text(LedgerText.from_parts(payee, memo))


# ---------------------------------------------------------------------------
# Batch pass over a ledger
# ---------------------------------------------------------------------------


@dataclass
class ClassificationPass:
    """Result of classifying a whole ledger.

    Attributes:
        transactions: Rows with a valid date, de-duplicated by composite
            key. Rejected rows are included with `category_id=None`.
        rejections: One human-readable line per skipped or rejected row.
        rows_total: Number of ledger rows read.
        skipped_empty: Rows without payee and memo.
        duplicates_in_batch: Classified rows dropped as repeats of an
            earlier row of the same batch.
    """

    transactions: list[Transaction] = field(default_factory=list)
    rejections: list[str] = field(default_factory=list)
    rows_total: int = 0
    skipped_empty: int = 0
    duplicates_in_batch: int = 0

    @property
    def matched(self) -> int:
        return sum(1 for t in self.transactions if t.category_id is not None)

    @property
    def rejected(self) -> int:
        return sum(1 for t in self.transactions if t.category_id is None)


def _cell_text(value) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def classify_ledger(
    ledger: pd.DataFrame,
    classifier: TransactionClassifier,
    *,
    user_id: str,
) -> ClassificationPass:
    """Classify every row of a normalized ledger DataFrame.

    The DataFrame is the output of `io.read_ledger` and has the columns
    row_number, date, payee, memo, debit, credit. Rows are handled one at a
    time; a failure on one row is recorded and the pass continues.

    Duplicates (same user, date, description and debit) are resolved with
    "first wins".
    """
    result = ClassificationPass()
    seen: set[str] = set()
    user_key = user_id.strip().lower()

    for _, row in ledger.iterrows():
        result.rows_total += 1
        row_number = row.get("row_number", result.rows_total)
        try:
            payee = _cell_text(row.get("payee"))
            memo = _cell_text(row.get("memo"))
            text = LedgerText.from_parts(payee, memo)
            if not text.raw:
                result.skipped_empty += 1
                continue

            raw_date = row.get("date")
            if raw_date is None or pd.isna(raw_date):
                result.rejections.append(
                    f"Row {row_number}: [DATE ERROR] {text.raw!r}"
                )
                continue

            outcome = classifier.classify_text(text)
            if not outcome.matched:
                # Kept with category_id None; excluded from aggregation later.
                result.rejections.append(f"Row {row_number}: [REJECTED] {text.raw!r}")

            txn = Transaction(
                id=None,
                user_id=user_key,
                date=pd.Timestamp(raw_date).date(),
                description=text.raw,
                debit=parse_amount(row.get("debit")),
                credit=parse_amount(row.get("credit")),
                category_id=outcome.category_id,
            )
        except Exception as exc:  # noqa: BLE001
            result.rejections.append(f"Row {row_number}: [CRASH] {exc}")
            continue

        if txn.dedup_key in seen:
            result.duplicates_in_batch += 1
            continue
        seen.add(txn.dedup_key)
        result.transactions.append(txn)

    logger.info(
        "Classification pass: %d rows, %d matched, %d skipped empty, "
        "%d rejected, %d duplicates in batch",
        result.rows_total,
        result.matched,
        result.skipped_empty,
        len(result.rejections),
        result.duplicates_in_batch,
    )
    for line in result.rejections[:REJECTION_LOG_LIMIT]:
        logger.warning(line)
    if len(result.rejections) > REJECTION_LOG_LIMIT:
        logger.warning(
            "... and %d more rejected rows.",
            len(result.rejections) - REJECTION_LOG_LIMIT,
        )
    return result
