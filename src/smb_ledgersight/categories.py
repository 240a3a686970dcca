# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Category tree (chart of accounts) for SMB LedgerSight.

The chart of accounts is a forest of categories, one forest per account type
(Income, Expense, Asset, Liability). Every other component reads it:

- the resolver extends it while reading report sheets,
- the classifier looks categories up by name,
- the payroll inferencer selects payroll-like categories,
- the forecast reads category names already attached to transactions.

Responsibilities:
- Represent a category (`Category`) and the in-memory tree (`CategoryTree`).
- Provide the lookups used during an import: find by natural key
  (name, type, parent), "first category whose name contains ...", and an
  insertion-ordered index of normalized names.
- Load a user-maintained chart of accounts from CSV.

The `CategoryTree` is the shared cache of one import run: it is created by the
caller, passed explicitly to the resolver and the classifier, and records the
categories created during the run so that the storage layer can persist them.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Literal, Optional

import pandas as pd

from .textnorm import normalize_key

CategoryType = Literal["Income", "Expense", "Asset", "Liability"]
"""
Type alias for the account type of a category.

Values
------
- "Income"   : revenue and other income accounts.
- "Expense"  : operating and non-operating expense accounts.
- "Asset"    : balance sheet asset accounts.
- "Liability": balance sheet liability accounts.
"""

CATEGORY_TYPES: tuple[str, ...] = ("Income", "Expense", "Asset", "Liability")

# Category name fragments identifying payroll-related categories.
PAYROLL_NAME_FRAGMENTS: tuple[str, ...] = ("payroll", "salaries", "wages")


@dataclass
class Category:
    """A node of the chart of accounts.

    Attributes:
        id: Unique integer identifier.
        name: Human-readable label as read from the source sheet.
        type: Account type (see `CategoryType`).
        parent_id: Identifier of the parent category, None for a root.
        is_active: Inactive categories are kept but never created anew.
        account_code: Optional external account code.
    """

    id: int
    name: str
    type: str
    parent_id: Optional[int] = None
    is_active: bool = True
    account_code: Optional[str] = None


class CategoryTree:
    """In-memory chart of accounts shared by one import run.

    Categories are kept in insertion order. Parents must exist before their
    children are added, which keeps every ancestor chain finite and free of
    cycles.

    The `version` counter is bumped on each mutation so that readers holding
    derived structures (e.g. the classifier's name index) can detect changes.
    """

    def __init__(self, categories: Iterable[Category] = ()):
        self._by_id: dict[int, Category] = {}
        self._created: list[Category] = []
        self.version = 0
        for cat in categories:
            self._insert(cat)
        # Categories passed at construction time are already persisted.
        self._created.clear()

    # ------------------------------------------------------------------
    # Container protocol
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[Category]:
        return iter(list(self._by_id.values()))

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _insert(self, cat: Category) -> None:
        if cat.id in self._by_id:
            raise ValueError(f"Duplicate category id {cat.id}.")
        if cat.parent_id is not None and cat.parent_id not in self._by_id:
            raise ValueError(
                f"Unknown parent id {cat.parent_id} for category {cat.name!r}."
            )
        self._by_id[cat.id] = cat
        self._created.append(cat)
        self.version += 1

    def next_id(self) -> int:
        """Return the identifier that the next created category will get."""
        return max(self._by_id, default=0) + 1

    def add(
        self,
        name: str,
        type: str,
        parent_id: Optional[int] = None,
        account_code: Optional[str] = None,
    ) -> Category:
        """Create a new category and append it to the tree immediately.

        Raises:
            ValueError: if the type is unknown or the parent does not exist.
        """
        if type not in CATEGORY_TYPES:
            raise ValueError(f"Unknown category type: {type!r}")
        cat = Category(
            id=self.next_id(),
            name=name.strip(),
            type=type,
            parent_id=parent_id,
            is_active=True,
            account_code=account_code,
        )
        self._insert(cat)
        return cat

    @property
    def created(self) -> list[Category]:
        """Categories created since the tree was loaded (to be persisted)."""
        return list(self._created)

    def mark_persisted(self) -> None:
        """Forget the list of created categories once they have been saved."""
        self._created.clear()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, category_id: Optional[int]) -> Optional[Category]:
        if category_id is None:
            return None
        return self._by_id.get(category_id)

    def find(
        self, name: str, type: str, parent_id: Optional[int]
    ) -> Optional[Category]:
        """Find a category by natural key (name, type, parent).

        The name comparison is case-insensitive and ignores surrounding
        whitespace.
        """
        key = name.strip().lower()
        for cat in self._by_id.values():
            if (
                cat.name.strip().lower() == key
                and cat.type == type
                and cat.parent_id == parent_id
            ):
                return cat
        return None

    def find_first_containing(self, *fragments: str) -> Optional[Category]:
        """Return the first category whose name contains one of the fragments.

        Fragments are tried in order; for each fragment the categories are
        scanned in insertion order. Matching is case-insensitive.
        """
        for fragment in fragments:
            needle = fragment.lower()
            for cat in self._by_id.values():
                if needle in cat.name.lower():
                    return cat
        return None

    def children(self, category_id: Optional[int]) -> list[Category]:
        """Direct children of a category (roots when category_id is None)."""
        return [c for c in self._by_id.values() if c.parent_id == category_id]

    def roots(self, type: Optional[str] = None) -> list[Category]:
        return [
            c
            for c in self._by_id.values()
            if c.parent_id is None and (type is None or c.type == type)
        ]

    def ancestors(self, category_id: int) -> list[Category]:
        """Ancestor chain of a category, nearest parent first."""
        chain: list[Category] = []
        seen = {category_id}
        cat = self._by_id.get(category_id)
        while cat is not None and cat.parent_id is not None:
            if cat.parent_id in seen:
                raise ValueError(f"Cycle detected above category {category_id}.")
            seen.add(cat.parent_id)
            cat = self._by_id.get(cat.parent_id)
            if cat is not None:
                chain.append(cat)
        return chain

    def depth(self, category_id: int) -> int:
        """Depth of a category (0 for a root)."""
        return len(self.ancestors(category_id))

    def name_index(self) -> list[tuple[str, int]]:
        """Normalized category names in insertion order.

        Each entry is `(normalized_name, category_id)`. Names that normalize
        to an empty string are never indexed (they would match any text).
        """
        out: list[tuple[str, int]] = []
        for cat in self._by_id.values():
            if not cat.is_active:
                continue
            key = normalize_key(cat.name)
            if key:
                out.append((key, cat.id))
        return out

    def payroll_category_ids(self) -> set[int]:
        """Ids of categories whose name marks them as payroll-related."""
        return {
            c.id
            for c in self._by_id.values()
            if any(f in c.name.lower() for f in PAYROLL_NAME_FRAGMENTS)
        }

    # ------------------------------------------------------------------
    # DataFrame conversion
    # ------------------------------------------------------------------

    def to_dataframe(self) -> pd.DataFrame:
        """Return the tree as a DataFrame (one row per category, with depth)."""
        rows = [
            {
                "id": c.id,
                "name": c.name,
                "type": c.type,
                "parent_id": c.parent_id,
                "depth": self.depth(c.id),
                "is_active": c.is_active,
                "account_code": c.account_code,
            }
            for c in self._by_id.values()
        ]
        columns = [
            "id",
            "name",
            "type",
            "parent_id",
            "depth",
            "is_active",
            "account_code",
        ]
        return pd.DataFrame(rows, columns=columns)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "CategoryTree":
        """Build a tree from a DataFrame with id, name, type, parent_id columns.

        Rows are re-ordered so that parents are always inserted before their
        children, whatever the order of the input.
        """
        pending: list[Category] = []
        for _, r in df.iterrows():
            parent_raw = r.get("parent_id")
            parent_id = None if pd.isna(parent_raw) else int(parent_raw)
            code_raw = r.get("account_code")
            pending.append(
                Category(
                    id=int(r["id"]),
                    name=str(r["name"]).strip(),
                    type=str(r["type"]).strip(),
                    parent_id=parent_id,
                    is_active=bool(r.get("is_active", True)),
                    account_code=None if pd.isna(code_raw) else str(code_raw),
                )
            )

        ordered: list[Category] = []
        known: set[int] = set()
        while pending:
            ready = [c for c in pending if c.parent_id is None or c.parent_id in known]
            if not ready:
                names = ", ".join(repr(c.name) for c in pending)
                raise ValueError(f"Categories with missing or cyclic parents: {names}")
            for c in ready:
                ordered.append(c)
                known.add(c.id)
            pending = [c for c in pending if c.id not in known]
        return cls(ordered)


def load_category_tree(path: str) -> CategoryTree:
    """Load a chart of accounts from CSV into a CategoryTree.

    Expected structure
    ------------------
    The CSV must contain at least:
        - an id column:      'id' or 'category_id'
        - a name column:     'name', 'label' or 'category'
        - a type column:     'type' or 'account_type'
    and may contain 'parent_id' / 'parent', 'account_code' and 'is_active'.

    Column names are matched case-insensitively and trimmed.

    Raises:
        ValueError: if a mandatory column cannot be found, or if a type
            value is not one of Income / Expense / Asset / Liability.
    """
    df = pd.read_csv(path)
    col_map = {str(c).strip().lower(): c for c in df.columns}

    def _pick(candidates: list[str], required: bool) -> Optional[str]:
        for cand in candidates:
            if cand in col_map:
                return col_map[cand]
        if required:
            raise ValueError(
                "Could not find a column in chart of accounts file. "
                f"Expected one of: {', '.join(repr(c) for c in candidates)}."
            )
        return None

    id_col = _pick(["id", "category_id"], required=True)
    name_col = _pick(["name", "label", "category"], required=True)
    type_col = _pick(["type", "account_type"], required=True)
    parent_col = _pick(["parent_id", "parent"], required=False)
    code_col = _pick(["account_code", "code"], required=False)
    active_col = _pick(["is_active", "active"], required=False)

    out = pd.DataFrame(
        {
            "id": df[id_col],
            "name": df[name_col].astype(str).str.strip(),
            "type": df[type_col].astype(str).str.strip().str.capitalize(),
            "parent_id": df[parent_col] if parent_col else None,
            "account_code": df[code_col] if code_col else None,
            "is_active": df[active_col].astype(bool) if active_col else True,
        }
    )

    bad_types = sorted(set(out["type"]) - set(CATEGORY_TYPES))
    if bad_types:
        raise ValueError(f"Unknown category type(s) in chart of accounts: {bad_types}")

    return CategoryTree.from_dataframe(out)
