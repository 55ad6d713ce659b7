import pytest

from businessclub.game import Card, Mod, Modifier
from businessclub.ui.companies import (
    COLORS,
    CompanyProvider,
    PlayerProvider,
    card_to_string,
    positive_integer_validator,
)


@pytest.fixture
def provider():
    cp = CompanyProvider()
    cp.set_companies(["Alpha", "Beta", "Gamma", "Delta"])
    return cp


def test_company_and_color_lookup(provider):
    assert provider.company_by_index(1) == "Beta"
    assert provider.color_by_index(3) == "red"
    assert [provider.color_by_index(i) for i in range(4)] == list(COLORS)


@pytest.mark.parametrize("index", [-1, 4, 10])
def test_out_of_range_lookup_is_empty(provider, index):
    assert provider.company_by_index(index) == ""
    assert provider.color_by_index(index) == ""


def test_empty_provider_knows_nothing():
    cp = CompanyProvider()
    assert cp.companies == []
    assert cp.color_by_index(0) == ""


def test_companies_property_returns_set_list(provider):
    assert provider.companies == ["Alpha", "Beta", "Gamma", "Delta"]


def test_opponents_exclude_player():
    pp = PlayerProvider(["ann", "bob", "cid"])
    assert pp.opponents_of("bob") == ["ann", "cid"]
    assert pp.opponents_of("zed") == ["ann", "bob", "cid"]


@pytest.mark.parametrize(
    "text,ok",
    [("1", True), ("50", True), ("51", False), ("0", False), ("-3", False), ("abc", False), ("", False)],
)
def test_positive_integer_validator(text, ok):
    assert positive_integer_validator(50)(text) is ok


def test_card_to_string_layout(provider):
    card = Card(9, [Modifier(0, Mod("+", 100)), Modifier(-1, Mod("-", 70))])
    expected = (
        "[blue]" + "Alpha".ljust(12) + " [green]+ 100"
        + "   "
        + "[fuchsia]" + "???".ljust(12) + " [red]- 70 "
    )
    assert card_to_string(provider, card) == expected


def test_card_to_string_single_mod_has_trailing_gap(provider):
    card = Card(1, [Modifier(2, Mod("=", 150))])
    assert card_to_string(provider, card).endswith("[blue]= 150   ")