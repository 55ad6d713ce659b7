# businessclub

The game server and engine for **The Business Club**. It is a turn-based
stock-trading board game for two to four players. Players connect over
WebSockets and vote to start in a lobby. A game lasts fifteen turns. On each
turn a player plays an action card that moves company share prices, and then
buys or sells shares. The player with the most wealth at the end wins.

## Installation

```
pip install businessclub
```

## Running a server

The server needs an assets file. This JSON document holds the company names,
the player deck and the bank deck:

```json
{
  "companies": ["Alpha", "Beta", "Gamma", "Delta"],
  "playerDeck": [
    {"id": 1, "mods": [{"company": 0, "mod": "+ 60"}, {"company": 2, "mod": "- 30"}]},
    {"id": 2, "mods": [{"company": -1, "mod": "* 2"}, {"company": 1, "mod": "= 100"}]}
  ],
  "bankDeck": [
    {"id": 100, "mods": [{"company": 3, "mod": "- 50"}, {"company": 0, "mod": "+ 20"}]}
  ]
}
```

A modifier is an operator and an integer with exactly one space between them.
The operators are `+`, `-`, `*` and `=`. The `=` operator sets the price
outright. A company index of `-1` is a wildcard, and the player who plays the
card chooses the company. Each player is dealt fifteen cards from the player
deck, and the bank plays one card from the bank deck on each of the fifteen
turns, so the bank deck needs at least fifteen cards.

Start the server with:

```
bc-server assets.json
```

The server listens on port 8585 over plain WebSockets. It does not support TLS.
It logs JSON lines to standard output. When it receives SIGINT, SIGTERM or
SIGQUIT (for example, Ctrl+C), it stops accepting connections and closes every
player connection. It exits with status 1 in three cases: the assets file is
missing, the file cannot be read, or its contents are not valid assets.

## Rules in brief

- A game takes at most 4 players. It starts once at least two players have
  joined and all of them have voted ready.
- Each player starts with 100 cash. Each company starts at a share price of 150.
- Prices are clamped between 0 and 400.
- There are 15 turns, and the player order is shuffled each turn. On their
  turn a player plays one card from their hand, then makes any number of buy
  or sell trades and ends the turn. After all players have gone, the bank
  plays a card.
- During the game, each player sees only coarse wealth levels (0–5) for their
  opponents' cash and stock. The exact figures are sent in the final state.
- On joining, the server gives each player a reconnect key. A player whose
  connection dropped can rejoin with that key. If a connection is lost before
  the game starts, that player is removed from the lobby.

## Using the engine as a library

```python
from businessclub.game import parse_mod, load_assets, cash_level, stock_level

mod = parse_mod("+ 100")
mod.calculate(150)      # 250

cash_level(5000)        # 2
stock_level(0)          # 0

assets = load_assets(open("assets.json", "rb").read())
```

The package is made of these modules:

- `businessclub.game`: cards, modifiers, assets, player snapshots and the
  game constants.
- `businessclub.players`: `ServerPlayer` and `PlayerMap`, a registry of
  players kept sorted by key.
- `businessclub.message`: the wire messages. Use `parse` to decode a raw
  message and `Message.to_json` to encode one.
- `businessclub.network`: `Connection` delivers messages over a WebSocket,
  with acknowledgements and retransmission.
- `businessclub.runner`: `GameRunner`, which runs the turn-by-turn flow of a
  game.
- `businessclub.lobby`: `Lobby`, which admits and reconnects players and
  starts the game.
- `businessclub.server`: `Server` and the `main` entry point of `bc-server`.
- `businessclub.ui`: text-rendering and input helpers for a client's views.
  These cover the price graph, turn order, history, standings, lobby list,
  login validation and trade forms.

## What the package does not include

The package has no playable client. `businessclub.ui` only produces the
marked-up text and validates input for client screens. It does not draw a
terminal interface and does not connect to a server. The package also keeps
nothing on disk: there are no saved games and no score history.

## Running the tests

```
pip install "businessclub[test]"
pytest
```