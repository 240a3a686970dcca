import pandas as pd
import pytest

from smb_ledgersight.categories import Category, CategoryTree, load_category_tree


def _sample_tree() -> CategoryTree:
    tree = CategoryTree()
    expenses = tree.add("Expenses", "Expense")
    tree.add("Utilities", "Expense", expenses.id)
    salaries = tree.add("Salaries & wages", "Expense", expenses.id)
    tree.add("Bonus", "Expense", salaries.id)
    liabilities = tree.add("Liabilities", "Liability")
    tree.add("Payroll Liabilities - Other", "Liability", liabilities.id)
    return tree


def test_add_assigns_sequential_ids_and_records_creations() -> None:
    tree = _sample_tree()

    assert len(tree) == 6
    assert [c.id for c in tree] == [1, 2, 3, 4, 5, 6]
    assert tree.next_id() == 7
    assert len(tree.created) == 6

    tree.mark_persisted()
    assert tree.created == []


def test_add_rejects_unknown_type_and_parent() -> None:
    tree = CategoryTree()
    with pytest.raises(ValueError):
        tree.add("Misc", "Equity")
    with pytest.raises(ValueError):
        tree.add("Orphan", "Expense", parent_id=42)


def test_find_is_case_insensitive_on_natural_key() -> None:
    tree = _sample_tree()

    found = tree.find("  utilities ", "Expense", 1)
    assert found is not None and found.name == "Utilities"
    # Same name under another parent or type is a different category.
    assert tree.find("Utilities", "Expense", None) is None
    assert tree.find("Utilities", "Liability", 1) is None


def test_find_first_containing_tries_fragments_in_order() -> None:
    tree = _sample_tree()

    cat = tree.find_first_containing("payroll liabilities", "salaries")
    assert cat is not None and cat.name == "Payroll Liabilities - Other"
    assert tree.find_first_containing("nothing like this") is None


def test_ancestors_and_depth() -> None:
    tree = _sample_tree()

    assert [c.name for c in tree.ancestors(4)] == ["Salaries & wages", "Expenses"]
    assert tree.depth(4) == 2
    assert tree.depth(1) == 0
    assert [c.name for c in tree.roots()] == ["Expenses", "Liabilities"]
    assert [c.name for c in tree.roots("Liability")] == ["Liabilities"]
    assert [c.id for c in tree.children(1)] == [2, 3]


def test_name_index_skips_empty_keys_and_inactive_categories() -> None:
    tree = CategoryTree(
        [
            Category(id=1, name="Office Supplies", type="Expense"),
            Category(id=2, name="!!!", type="Expense"),
            Category(id=3, name="Old account", type="Expense", is_active=False),
        ]
    )

    assert tree.name_index() == [("officesupplies", 1)]


def test_payroll_category_ids() -> None:
    tree = _sample_tree()
    assert tree.payroll_category_ids() == {3, 6}


def test_version_changes_on_mutation() -> None:
    tree = CategoryTree()
    before = tree.version
    tree.add("Income", "Income")
    assert tree.version == before + 1


def test_constructor_categories_are_not_reported_as_created() -> None:
    tree = CategoryTree([Category(id=10, name="Income", type="Income")])
    assert tree.created == []
    assert tree.next_id() == 11


def test_from_dataframe_reorders_children_after_parents() -> None:
    df = pd.DataFrame(
        [
            {"id": 2, "name": "Sales", "type": "Income", "parent_id": 1},
            {"id": 1, "name": "Income", "type": "Income", "parent_id": None},
        ]
    )

    tree = CategoryTree.from_dataframe(df)

    assert [c.id for c in tree] == [1, 2]
    assert tree.get(2).parent_id == 1


def test_from_dataframe_rejects_cycles() -> None:
    df = pd.DataFrame(
        [
            {"id": 1, "name": "A", "type": "Expense", "parent_id": 2},
            {"id": 2, "name": "B", "type": "Expense", "parent_id": 1},
        ]
    )

    with pytest.raises(ValueError):
        CategoryTree.from_dataframe(df)


def test_to_dataframe_reports_depth() -> None:
    df = _sample_tree().to_dataframe()

    assert list(df.columns) == [
        "id",
        "name",
        "type",
        "parent_id",
        "depth",
        "is_active",
        "account_code",
    ]
    assert df.loc[df["name"] == "Bonus", "depth"].iloc[0] == 2


def test_load_category_tree_accepts_column_aliases(tmp_path) -> None:
    path = tmp_path / "coa.csv"
    path.write_text(
        "Category_ID,Label,Account_Type,Parent\n"
        "1,Expenses,expense,\n"
        "2,Utilities,expense,1\n"
        "3,Sales,income,\n",
        encoding="utf-8",
    )

    tree = load_category_tree(str(path))

    assert len(tree) == 3
    assert tree.get(2).type == "Expense"
    assert tree.get(2).parent_id == 1
    assert tree.get(3).type == "Income"


def test_load_category_tree_rejects_unknown_types(tmp_path) -> None:
    path = tmp_path / "coa.csv"
    path.write_text("id,name,type\n1,Capital,equity\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_category_tree(str(path))
