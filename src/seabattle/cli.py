"""Command-line driver: play a local match against the AI, or run the timeout sweeper."""

from __future__ import annotations

import argparse
import logging
import random
import threading
from typing import Sequence
from uuid import UUID, uuid4

from seabattle.config import load_settings
from seabattle.engine.board import STANDARD_FLEET, Board, CellState
from seabattle.engine.errors import SeaBattleError, TurnTimeoutError
from seabattle.engine.match import AI_PLAYER_ID, Difficulty, GameMode, MatchStatus
from seabattle.engine.ship import MoveDirection, ShipOrientation
from seabattle.service.orchestrator import MatchService
from seabattle.service.schemas import (
    BoardView,
    MatchStateView,
    MoveShipInput,
    PlaceShipsInput,
    ShipPlacement,
    ShipView,
    ShootInput,
    StartMatchInput,
)
from seabattle.service.sweeper import TimeoutSweeper
from seabattle.storage.durable import SqlMatchRepository
from seabattle.storage.hot_store import InMemoryMatchStateStore
from seabattle.telemetry import configure_console_logging, init_telemetry

ROW_LABELS = "ABCDEFGHIJ"
SYMBOLS = {CellState.WATER: ".", CellState.SHIP: "S", CellState.HIT: "X", CellState.MISSED: "o"}


def _coordinate_from_input(text: str) -> tuple[int, int]:
    """Parse `A5` (row letter, column number) into `(x, y)`."""
    cleaned = text.strip().upper()
    if not cleaned:
        raise ValueError("Empty coordinate.")
    if cleaned[0] not in ROW_LABELS:
        raise ValueError("Row must be between A and J.")
    y = ROW_LABELS.index(cleaned[0])
    try:
        x = int(cleaned[1:]) - 1
    except ValueError as exc:
        raise ValueError("Column must be a number between 1 and 10.") from exc
    if x not in range(10):
        raise ValueError("Coordinates must be within the 10x10 board.")
    return x, y


def _label(x: int, y: int) -> str:
    return f"{ROW_LABELS[y]}{x + 1}"


def _format_board(view: BoardView) -> str:
    header = "    " + " ".join(f"{col + 1:>2}" for col in range(len(view.grid)))
    rows = [header]
    for y, row in enumerate(view.grid):
        rows.append(f"{ROW_LABELS[y]} |" + " ".join(f"{SYMBOLS[state]:>2}" for state in row))
    return "\n".join(rows)


def _prompt_orientation(name: str, size: int) -> ShipOrientation:
    while True:
        raw = input(f"Place your {name} (length {size}). Orientation [H/V]: ").strip().upper()
        if raw in {"H", "HOR", "HORIZONTAL"}:
            return ShipOrientation.HORIZONTAL
        if raw in {"V", "VER", "VERTICAL"}:
            return ShipOrientation.VERTICAL
        print("Please enter H for horizontal or V for vertical.")


def _manual_fleet() -> PlaceShipsInput:
    scratch = Board(owner="preview")
    placements: list[ShipPlacement] = []
    for name, size in STANDARD_FLEET:
        while True:
            print("\nCurrent layout:")
            print(_format_board(BoardView.own(scratch)))
            orientation = _prompt_orientation(name, size)
            try:
                x, y = _coordinate_from_input(input("Enter starting coordinate (e.g., A1): "))
                placement = ShipPlacement(name=name, size=size, x=x, y=y, orientation=orientation)
                scratch.place(placement.to_ship())
            except ValueError as exc:
                print(f"Ship cannot be placed there: {exc}")
                continue
            placements.append(placement)
            break
    return PlaceShipsInput(ships=placements)


def _random_fleet(rng: random.Random) -> PlaceShipsInput:
    scratch = Board(owner="preview")
    scratch.auto_place(rng)
    return PlaceShipsInput(
        ships=[
            ShipPlacement(
                name=ship.name,
                size=ship.size,
                x=ship.coordinates[0].x,
                y=ship.coordinates[0].y,
                orientation=ship.orientation,
            )
            for ship in scratch.ships
        ]
    )


def _prompt_manual_setup() -> bool:
    while True:
        raw = input("Would you like to place your ships manually? [Y/n]: ").strip().lower()
        if raw in {"", "y", "yes"}:
            return True
        if raw in {"n", "no"}:
            return False
        print("Please answer with 'y' or 'n'.")


def _show(state: MatchStateView) -> None:
    print("\nYour Board:")
    print(_format_board(state.my_board))
    print("\nEnemy Waters:")
    print(_format_board(state.opponent_board))
    print(
        f"Hits {state.my_stats.hits}  Misses {state.my_stats.misses}  Streak {state.my_stats.streak}"
    )


def _ship_by_number(board: BoardView, number: int) -> ShipView:
    """Ships are listed from 1; anything outside that range is rejected."""
    if not 1 <= number <= len(board.ships):
        raise ValueError(f"Ship number must be between 1 and {len(board.ships)}.")
    return board.ships[number - 1]


def _play_turn(
    service: MatchService, match_id: UUID, player_id: UUID, state: MatchStateView, dynamic: bool
) -> None:
    prompt = "Enter target (e.g., A5)"
    if dynamic:
        prompt += ", 'move <ship#> <N|S|E|W>'"
        for index, ship in enumerate(state.my_board.ships, start=1):
            where = _label(ship.coordinates[0].x, ship.coordinates[0].y)
            print(f"  {index}. {ship.name} at {where}{' (damaged)' if ship.damaged else ''}")
    raw = input(f"{prompt} or 'q' to quit: ").strip()
    if raw.lower() == "q":
        service.cancel(match_id, player_id)
        raise SystemExit("You left the battle.")

    if dynamic and raw.lower().startswith("move"):
        parts = raw.split()
        directions = {d.name[0]: d for d in MoveDirection}
        if len(parts) != 3 or not parts[1].isdigit() or parts[2].upper()[:1] not in directions:
            raise ValueError("Use 'move <ship#> <N|S|E|W>'.")
        ship = _ship_by_number(state.my_board, int(parts[1]))
        result = service.move(
            match_id, player_id, MoveShipInput(ship_id=ship.id, direction=directions[parts[2].upper()[0]])
        )
        print(f"Moved {ship.name} to {_label(result.moved_coordinates[0].x, result.moved_coordinates[0].y)}.")
    else:
        x, y = _coordinate_from_input(raw)
        result = service.shoot(match_id, player_id, ShootInput(x=x, y=y))
        outcome = "sank a ship!" if result.sunk else ("hit" if result.hit else "miss")
        print(f"You fired at {_label(x, y)}: {outcome}")

    for shot in result.ai_shots:
        print(f"AI fired at {_label(shot.x, shot.y)}: {'hit' if shot.hit else 'miss'}")


def play_game(difficulty: Difficulty, mode: GameMode, seed: int | None = None) -> None:
    print("Welcome to Sea Battle!\n")
    rng = random.Random(seed)
    service = MatchService(
        SqlMatchRepository.from_url("sqlite://", rng_factory=lambda: random.Random(rng.random())),
        InMemoryMatchStateStore(rng_factory=lambda: random.Random(rng.random())),
        settings=load_settings(),
        rng_factory=lambda: random.Random(rng.random()),
    )
    player_id = uuid4()
    match_id = service.start_match(player_id, StartMatchInput(ai_difficulty=difficulty, mode=mode))

    fleet = _manual_fleet() if _prompt_manual_setup() else _random_fleet(rng)
    state = service.setup_fleet(match_id, player_id, fleet)

    while state.status is not MatchStatus.FINISHED:
        _show(state)
        try:
            _play_turn(service, match_id, player_id, state, mode is GameMode.DYNAMIC)
        except TurnTimeoutError:
            print("Too slow! Your turn passed to the AI.")
        except (SeaBattleError, ValueError, IndexError) as exc:
            print(f"Invalid action: {exc}")
        state = service.get_state(match_id, player_id)

    _show(state)
    if state.winner_id == AI_PLAYER_ID:
        print("\nThe AI won this time. Better luck next battle!")
    else:
        print("\nCongratulations, you won!")


def run_sweeper(once: bool = False) -> None:
    settings = load_settings()
    service = MatchService.from_settings(settings)
    sweeper = TimeoutSweeper(service, settings.sweep_interval_seconds)
    if once:
        results = sweeper.sweep()
        print(f"Checked {len(results)} matches.")
        return
    sweeper.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        sweeper.shutdown()


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Sea battle match engine.")
    parser.add_argument("--log-level", default="WARNING", help="Console log level.")
    commands = parser.add_subparsers(dest="command", required=True)

    play = commands.add_parser("play", help="Play a local match against the AI.")
    play.add_argument(
        "--difficulty", choices=[d.value for d in Difficulty], default=Difficulty.BASIC.value
    )
    play.add_argument("--mode", choices=[m.value for m in GameMode], default=GameMode.CLASSIC.value)
    play.add_argument(
        "--seed", type=int, default=None, help="Optional RNG seed for reproducibility."
    )

    sweep = commands.add_parser("sweep", help="Run the turn timeout sweeper.")
    sweep.add_argument("--once", action="store_true", help="Run a single pass and exit.")

    args = parser.parse_args(argv)
    configure_console_logging(getattr(logging, args.log_level.upper(), logging.WARNING))
    init_telemetry()

    if args.command == "play":
        play_game(Difficulty(args.difficulty), GameMode(args.mode), seed=args.seed)
    else:
        run_sweeper(once=args.once)


if __name__ == "__main__":
    main()
