"""Turn arithmetic over an ordered list of player ids.

Hint turns walk the turn order ``passes`` times; ``current_turn`` is a
running counter across all passes, so the active player is always
``turn_order[current_turn % len(turn_order)]``.
"""
from typing import List, Optional, Tuple

DEFAULT_PASSES = 2


def active_player(turn_order: List[int], current_turn: int) -> Optional[int]:
    if not turn_order:
        return None
    return turn_order[current_turn % len(turn_order)]


def total_turns(turn_order: List[int], passes: int = DEFAULT_PASSES) -> int:
    return len(turn_order) * passes


def is_last_turn(turn_order: List[int], current_turn: int, passes: int = DEFAULT_PASSES) -> bool:
    """True when the hint given at ``current_turn`` completes every pass."""
    return current_turn + 1 >= total_turns(turn_order, passes)


def turns_exhausted(turn_order: List[int], current_turn: int, passes: int = DEFAULT_PASSES) -> bool:
    return current_turn >= total_turns(turn_order, passes)


def remove_from_order(turn_order: List[int], current_turn: int, player_id: int) -> Tuple[List[int], int, bool]:
    """Drop ``player_id`` from the order, keeping the current player in place.

    Returns ``(new_order, new_turn, was_current)``. When the removed player
    held the turn, the same slot now belongs to whoever followed them. When
    they sat before the current player, the counter moves back one slot so
    the same player keeps the turn. Completed passes shrink with the order,
    which keeps second-pass positions aligned too.
    """
    if player_id not in turn_order:
        return list(turn_order), current_turn, False

    size = len(turn_order)
    removed_idx = turn_order.index(player_id)
    pass_no, current_idx = divmod(current_turn, size)
    was_current = removed_idx == current_idx

    new_order = [pid for pid in turn_order if pid != player_id]
    if removed_idx < current_idx:
        current_idx -= 1
    new_turn = pass_no * len(new_order) + current_idx
    return new_order, new_turn, was_current
