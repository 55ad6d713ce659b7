import pytest

from businessclub.game import Player
from businessclub.message import GameState
from businessclub.ui.companies import CompanyProvider
from businessclub.ui.standings import StandingsPanel, breakdown_text


@pytest.fixture
def provider():
    p = CompanyProvider()
    p.set_companies(["A", "B", "C", "D"])
    return p


def test_numbers_with_total(provider):
    text = breakdown_text(provider, [0, 0, 0, 0], [0, 0, 0, 0], 1500, True, True)
    assert text == "[blue]0\n[orange]0\n[yellow]0\n[red]0\n[green]1,500\n[white]1,500\n"


def test_numbers_without_total(provider):
    text = breakdown_text(provider, [10, 10, 10, 10], [1, 2, 3, 4], 7, False, True)
    assert text.splitlines() == ["[blue]1", "[orange]2", "[yellow]3", "[red]4", "[green]7"]


def test_levels_are_symbols(provider):
    text = breakdown_text(provider, [1, 1, 1, 1], [2, 0, 1, 0], 3, True, False)
    assert text == "[blue]♦♦\n[orange]-\n[yellow]♦\n[red]-\n[green]$$$\n"


def test_update_renders_player_and_hidden_opponents(provider):
    state = GameState(
        started=True,
        stock_prices=[0, 0, 0, 0],
        player=Player(name="Me", cash=5, stocks=[0, 0, 0, 0]),
        opponents=[Player(name="Bob", cash=2, stocks=[1, 0, 0, 0])],
    )
    panel = StandingsPanel(provider)
    panel.update(state)

    assert panel.player_name_text == "[green]Me"
    assert panel.opponent_name_texts == ["[yellow]Bob", "[yellow]", "[yellow]"]
    assert panel.player_text.splitlines()[-1] == "[white]5"
    assert panel.opponent_texts[0] == "[blue]♦\n[orange]-\n[yellow]-\n[red]-\n[green]$$\n"
    assert panel.opponent_texts[1:] == ["", ""]
    lines = panel.company_names_text.split("\n")
    assert len(lines) == 6
    assert lines[0] == "[blue]A[white]: "
    assert lines[-1] == "[white]Total value: "


def test_update_shows_opponent_numbers_when_ended(provider):
    state = GameState(
        started=True,
        ended=True,
        stock_prices=[0, 0, 0, 0],
        player=Player(name="Me"),
        opponents=[Player(name="Bob", cash=2500, stocks=[0, 0, 0, 0])],
    )
    panel = StandingsPanel(provider)
    panel.update(state)
    assert panel.opponent_texts[0].splitlines()[-2:] == ["[green]2,500", "[white]2,500"]