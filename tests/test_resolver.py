import pytest

from smb_ledgersight.categories import CategoryTree
from smb_ledgersight.resolver import (
    AnnualSummary,
    CategoryResolver,
    merge_annual_summaries,
    parse_year,
    resolve_workbook,
    sheet_base_type,
)

USER = "Owner@SMEWorks.com"

PL_ROWS = [
    ["Account", None, None, "2023", "2022"],
    ["Income", None, None, None, None],
    [None, "Sales", None, 1000.0, 900.0],
    [None, "Other income", None, 50.0, None],
    ["Total Income", None, None, 1050.0, 900.0],
    ["Expenses", None, None, None, None],
    [None, "Rent", None, 300.0, 250.0],
    [None, "Salaries & wages", None, 500.0, 400.0],
    ["Total Expenses", None, None, 800.0, 650.0],
    ["Net Income", None, None, 250.0, 250.0],
]

BS_ROWS = [
    [None, None, "FY2023"],
    ["Current assets", None, None],
    [None, "Cash at bank", 5000.0],
    ["Liabilities", None, None],
    [None, "Bank loan", 2000.0],
]


@pytest.mark.parametrize(
    "value, expected",
    [
        (2023, 2023),
        (2023.0, 2023),
        ("2023", 2023),
        ("FY2023", 2023),
        ("FY 2022", 2022),
        ("FY23", 2023),
        ("'22", 2022),
        ("Jan - Dec 2021", 2021),
        ("Sales", None),
        (1000.0, None),
        (None, None),
    ],
)
def test_parse_year(value, expected) -> None:
    assert parse_year(value) == expected


@pytest.mark.parametrize(
    "name, expected",
    [
        ("PL 2023", "Income"),
        ("P&L", "Income"),
        ("BS 2023", "Asset"),
        ("Balance sheet", "Asset"),
        ("Notes", None),
    ],
)
def test_sheet_base_type(name, expected) -> None:
    assert sheet_base_type(name) == expected


def test_resolve_sheet_builds_hierarchy_from_indentation() -> None:
    tree = CategoryTree()

    CategoryResolver(tree).resolve_sheet(PL_ROWS, "Income", user_id=USER)

    income = tree.find("Income", "Income", None)
    expenses = tree.find("Expenses", "Expense", None)
    assert income is not None and expenses is not None

    sales = tree.find("Sales", "Income", income.id)
    rent = tree.find("Rent", "Expense", expenses.id)
    assert sales is not None
    assert rent is not None
    assert tree.find("Salaries & wages", "Expense", expenses.id) is not None

    # Totals and the header label are never categories.
    names = {c.name.lower() for c in tree}
    assert "total income" not in names
    assert "net income" not in names
    assert "account" not in names
    assert len(tree) == 6


def test_resolve_sheet_emits_one_summary_per_year_cell() -> None:
    tree = CategoryTree()

    summaries = CategoryResolver(tree).resolve_sheet(PL_ROWS, "Income", user_id=USER)

    assert len(summaries) == 7
    assert all(s.user_id == "owner@smeworks.com" for s in summaries)

    sales = tree.find_first_containing("sales")
    by_year = {s.year: s for s in summaries if s.category_id == sales.id}
    assert by_year[2023].amount == pytest.approx(1000.0)
    assert by_year[2022].amount == pytest.approx(900.0)
    assert by_year[2023].report_type == "Income"

    rent = tree.find_first_containing("rent")
    assert {s.report_type for s in summaries if s.category_id == rent.id} == {"Expense"}


def test_resolve_sheet_reuses_existing_categories() -> None:
    tree = CategoryTree()
    resolver = CategoryResolver(tree)

    resolver.resolve_sheet(PL_ROWS, "Income", user_id=USER)
    tree.mark_persisted()
    resolver.resolve_sheet(PL_ROWS, "Income", user_id=USER)

    assert len(tree) == 6
    assert tree.created == []


def test_resolved_tree_is_acyclic_and_type_consistent() -> None:
    tree = CategoryTree()

    resolve_workbook({"PL 2023": PL_ROWS, "BS 2023": BS_ROWS}, tree, user_id=USER)

    for cat in tree:
        chain = tree.ancestors(cat.id)
        assert len(chain) <= len(tree)
        assert all(parent.type == cat.type for parent in chain)


def test_resolve_workbook_routes_sheets_by_name() -> None:
    tree = CategoryTree()
    notes = [[None, "2023"], ["Random remark", 1.0]]

    summaries = resolve_workbook(
        {"PL 2023": PL_ROWS, "Notes": notes, "BS 2023": BS_ROWS}, tree, user_id=USER
    )

    assert tree.find_first_containing("random remark") is None

    assets = tree.find("Current assets", "Asset", None)
    assert assets is not None
    cash = tree.find("Cash at bank", "Asset", assets.id)
    assert cash is not None

    liabilities = tree.find("Liabilities", "Liability", None)
    loan = tree.find("Bank loan", "Liability", liabilities.id)
    assert loan is not None

    bs = [s for s in summaries if s.category_id in (cash.id, loan.id)]
    assert {(s.year, s.amount) for s in bs} == {(2023, 5000.0), (2023, 2000.0)}


def test_merge_annual_summaries_sums_duplicates() -> None:
    summaries = [
        AnnualSummary("a@x.com", 1, 2023, 100.0, "Expense"),
        AnnualSummary("A@X.com", 1, 2023, 50.0, "Liability"),
        AnnualSummary("a@x.com", 1, 2022, 10.0, "Expense"),
    ]

    merged = merge_annual_summaries(summaries)

    assert len(merged) == 2
    assert merged[0].amount == pytest.approx(150.0)
    assert merged[0].report_type == "Expense"
    assert merged[1].year == 2022
