"""
Duelcore CLI - Command-line interface for the engine.

Usage:
    duelcore play --stage ID [--seed N] [--auto]   Fight through a stage
    duelcore validate                              Validate the starter catalog
    duelcore stages                                List stages

In interactive play:
    p N    play hand card N (1-based) into the first free combat slot
    g      register your guard for the enemy's next turn
    e      end your turn
    s      show the table
    q      quit
"""

import argparse
import logging
import os
import sys


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Duelcore - Turn-based card combat engine",
        prog="duelcore",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("DUELCORE_LOG_LEVEL", "WARNING"),
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Play command
    play_parser = subparsers.add_parser("play", help="Fight through a stage")
    play_parser.add_argument("--stage", default="outskirts", help="Stage id")
    play_parser.add_argument("--seed", type=int, default=None, help="RNG seed")
    play_parser.add_argument("--name", default="Hero", help="Player name")
    play_parser.add_argument("--auto", action="store_true", help="Let the engine play for you")
    play_parser.add_argument("--max-turns", type=int, default=100, help="Stop autoplay after N turns")

    # Validate command
    subparsers.add_parser("validate", help="Validate the starter catalog")

    # Stages command
    subparsers.add_parser("stages", help="List stages")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "play":
        return cmd_play(args)
    elif args.command == "validate":
        return cmd_validate(args)
    elif args.command == "stages":
        return cmd_stages(args)
    else:
        parser.print_help()
        return 1


def cmd_stages(args):
    """List the catalog's stages."""
    from .content import create_starter_catalog

    catalog = create_starter_catalog()
    for stage in catalog.list_stages():
        enemies = ", ".join(catalog.get_enemy(e).name if catalog.get_enemy(e) else e for e in stage.enemy_ids)
        print(f"{stage.number}. {stage.stage_id:<12} {stage.name} ({enemies})")
    return 0


def cmd_validate(args):
    """Validate the starter catalog and deck."""
    from .content import STARTER_DECK, create_starter_catalog, validate_catalog

    catalog = create_starter_catalog()
    result = validate_catalog(catalog, player_deck=STARTER_DECK)

    print(f"Catalog: {catalog.name}")
    print(f"Cards: {len(catalog.cards)}  Enemies: {len(catalog.enemies)}  Stages: {len(catalog.stages)}")

    if result.warnings:
        print("\nWarnings:")
        for w in result.warnings:
            print(f"  - {w}")

    if result.errors:
        print("\nErrors:")
        for e in result.errors:
            print(f"  - {e}")

    print("\nValid" if result.valid else "\nInvalid")
    return 0 if result.valid else 1


def cmd_play(args):
    """Fight through a stage, interactively or on autoplay."""
    from .engine_core import Action, Side
    from .engine_core.errors import CombatError
    from .session import FirstReadyCardSelector, LoopState, SessionManager

    manager = SessionManager()
    try:
        session = manager.create_session(args.stage, seed=args.seed, player_name=args.name)
    except CombatError as e:
        print(f"Error: {e}")
        return 1

    result = session.start()
    _print_result(result)

    autoplayer = FirstReadyCardSelector(side=Side.PLAYER) if args.auto else None
    while result.loop_state is not LoopState.GAME_OVER:
        if autoplayer is not None:
            if session.combat.current_turn_number > args.max_turns:
                print(f"Stopping after {args.max_turns} turns")
                break
            choice = autoplayer.select(session.combat)
            action = Action.play_card(choice.instance_id, choice.position) if choice else Action.end_turn()
        else:
            _print_table(session.combat)
            action = _prompt_action(session.combat)
            if action is None:
                manager.end_session(session.session_id, reason="quit")
                print("Bye")
                return 0

        result = session.apply(action)
        _print_result(result)

    if result.loop_state is LoopState.GAME_OVER:
        print("\nVictory!" if result.victory else "\nDefeat.")
        stats = session.statistics.snapshot()
        print(f"Turns: {stats['total_turns']}  Damage dealt: {stats['damage_dealt']}  "
              f"Damage taken: {stats['damage_taken']}  Enemies defeated: {stats['enemies_defeated']}")
    manager.end_session(session.session_id)
    return 0 if result.victory else 1


def _prompt_action(combat):
    """Read commands until one maps to an action. None means quit."""
    from .engine_core import Action, Side

    while True:
        try:
            line = input("> ").strip().lower()
        except EOFError:
            return None
        if not line:
            continue
        parts = line.split()
        if parts[0] == "q":
            return None
        if parts[0] == "e":
            return Action.end_turn()
        if parts[0] == "g":
            return Action.register_guard()
        if parts[0] == "s":
            _print_table(combat)
            continue
        if parts[0] == "p" and len(parts) == 2 and parts[1].isdigit():
            hand = _sorted_hand(combat, Side.PLAYER)
            index = int(parts[1]) - 1
            if 0 <= index < len(hand):
                return Action.play_card(hand[index].instance_id)
            print(f"No card {parts[1]} in hand")
            continue
        print("Commands: p N, g, e, s, q")


def _sorted_hand(combat, side):
    return sorted(combat.hand(side), key=lambda c: c.hand_slot.value if c.hand_slot else "")


def _print_table(combat):
    from .engine_core import Side

    for character in (combat.enemy, combat.player):
        if character is None:
            continue
        flags = [f.kind for f in character.effects]
        if character.is_guarded:
            flags.append("guarded")
        resource = ""
        if character.resource is not None:
            resource = f"  {character.resource.name} {character.resource.current_amount}/{character.resource.max_amount}"
        print(f"  {character.name:<14} HP {character.current_health}/{character.max_health}{resource}"
              f"  {' '.join(flags)}")
    print(f"  Turn {combat.current_turn_number} ({combat.phase.value})")
    for index, card in enumerate(_sorted_hand(combat, Side.PLAYER), start=1):
        cooldown = f" (cooldown {card.current_cooldown})" if card.current_cooldown else ""
        cost = card.definition.resource_cost
        print(f"  {index}. {card.name} [{cost}]{cooldown} - {card.definition.description}")


def _print_result(result):
    for line in result.player_actions:
        print(f"  {line}")
    for line in result.enemy_actions:
        print(f"  enemy: {line}")
    for line in result.errors:
        print(f"  ! {line}")


if __name__ == "__main__":
    sys.exit(main())
