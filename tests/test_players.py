from businessclub.players import PlayerMap, ServerPlayer


def _filled_map():
    pm = PlayerMap()
    pm.add("zzz", ServerPlayer(None, "zzz", "Player ZZZ"))
    pm.add("fff", ServerPlayer(None, "fff", "Player FFF"))
    pm.add("aaa", ServerPlayer(None, "aaa", "Player AAA"))
    pm.add("mmm", ServerPlayer(None, "mmm", "Player MMM"))
    return pm


def test_player_map_keys_sorted_after_add_and_remove():
    pm = _filled_map()
    assert pm.keys() == ["aaa", "fff", "mmm", "zzz"]

    pm.remove("fff")
    assert pm.keys() == ["aaa", "mmm", "zzz"]


def test_keys_returns_a_copy():
    pm = _filled_map()
    keys = pm.keys()
    keys.clear()
    assert pm.keys() == ["aaa", "fff", "mmm", "zzz"]


def test_get_and_len():
    pm = _filled_map()
    assert len(pm) == 4
    assert pm.get("mmm").name == "Player MMM"
    assert pm.get("missing") is None


def test_remove_unknown_key_is_harmless():
    pm = _filled_map()
    pm.remove("nope")
    assert len(pm) == 4


def test_iteration_follows_key_order():
    pm = _filled_map()
    assert [p.key for p in pm] == pm.keys()


def test_add_cash_accumulates():
    player = ServerPlayer(None, "k", "n")
    player.add_cash(100)
    player.add_cash(-40)
    assert player.cash == 60


def test_add_stocks_ignores_out_of_range_index():
    player = ServerPlayer(None, "k", "n")
    player.add_stocks(2, 5)
    player.add_stocks(-1, 3)
    player.add_stocks(4, 3)
    assert player.stocks == [0, 0, 5, 0]


def test_new_player_is_not_ready():
    player = ServerPlayer(None, "k", "n")
    assert player.ready is False
    assert player.hand == []