import pytest

from smb_ledgersight.textnorm import (
    extract_employee_name,
    has_digit,
    normalize_key,
    payee_tokens,
    strip_period_tokens,
    strip_procedural_prefix,
)


def test_normalize_key_keeps_only_lowercase_alphanumerics() -> None:
    assert normalize_key("SP Services!") == "spservices"
    assert normalize_key("Salaries & Wages") == "salarieswages"
    assert normalize_key("") == ""
    assert normalize_key(None) == ""


@pytest.mark.parametrize(
    "text, expected",
    [
        ("John Tan Mar'23", "John Tan"),
        ("Salary 2023 June", "Salary"),
        ("Rent for 15 March", "Rent for"),
        ("Marketing fees", "Marketing fees"),
    ],
)
def test_strip_period_tokens(text, expected) -> None:
    assert strip_period_tokens(text) == expected


def test_strip_procedural_prefix_is_repeated() -> None:
    assert strip_procedural_prefix("Being payment Jane Lim") == "Jane Lim"
    assert strip_procedural_prefix("Adv Ravi Kumar") == "Ravi Kumar"
    # Only leading words are procedural.
    assert strip_procedural_prefix("Jane Lim salary") == "Jane Lim salary"


def test_payee_tokens_drop_months_and_prefixes() -> None:
    assert payee_tokens("Being Salary John Tan Mar") == ["john", "tan"]
    assert payee_tokens("SP Services") == ["sp", "services"]
    assert payee_tokens("") == []


def test_has_digit() -> None:
    assert has_digit("invoice 7")
    assert not has_digit("john tan")


@pytest.mark.parametrize(
    "memo, expected",
    [
        ("Jane Lim Apr salary", "Jane Lim"),
        ("Being Salary John Tan Mar", "John Tan"),
        ("Mark Lee Mar", "Mark Lee"),
        ("Office rent 2023", None),
        ("Salary Mar", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_employee_name(memo, expected) -> None:
    assert extract_employee_name(memo) == expected
