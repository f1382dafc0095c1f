"""Position arithmetic for cards inside lists.

Positions are zero-based and dense: the cards of a list always occupy
``0..N-1`` exactly once. Every function here is pure; the mutation handlers
turn the returned plans into range ``UPDATE`` statements.
"""
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional
@dataclass(frozen=True)
class Shift:
    """Add ``delta`` to every card of ``list_id`` whose position is in ``[low, high]``.

    ``high`` of ``None`` means unbounded. The moving card itself is never shifted.
    """
    list_id: int
    low: int
    high: Optional[int]
    delta: int
    def covers(self, list_id: int, position: int) -> bool:
        if list_id != self.list_id or position < self.low:
            return False
        return self.high is None or position <= self.high
@dataclass(frozen=True)
class MovePlan:
    card_id: int
    source_list_id: int
    destination_list_id: int
    old_position: int
    new_position: int
    shifts: tuple[Shift, ...] = field(default_factory=tuple)
    @property
    def is_noop(self) -> bool:
        return self.source_list_id == self.destination_list_id and self.old_position == self.new_position
    @property
    def crosses_lists(self) -> bool:
        return self.source_list_id != self.destination_list_id
    def apply(self, placements: Mapping[int, tuple[int, int]]) -> dict[int, tuple[int, int]]:
        """Apply the plan to ``{card_id: (list_id, position)}`` and return the new mapping."""
        result = {}
        for card_id, (list_id, position) in placements.items():
            if card_id == self.card_id:
                result[card_id] = (self.destination_list_id, self.new_position)
                continue
            for shift in self.shifts:
                if shift.covers(list_id, position):
                    position += shift.delta
                    break
            result[card_id] = (list_id, position)
        return result
def clamp_target(target_index: int, destination_size: int, same_list: bool) -> int:
    """Clamp a requested index into the valid slot range of the destination list.

    ``destination_size`` counts the cards currently stored in the destination
    list. For a same-list move the moving card is one of them, so the last
    valid index is ``size - 1``; for a cross-list move the card may be
    appended, so it is ``size``.
    """
    upper = destination_size - 1 if same_list else destination_size
    return max(0, min(target_index, max(upper, 0)))
def plan_move(
    card_id: int,
    old_position: int,
    source_list_id: int,
    destination_list_id: int,
    target_index: int,
    destination_size: int,
) -> MovePlan:
    same_list = source_list_id == destination_list_id
    new_position = clamp_target(target_index, destination_size, same_list)
    shifts: list[Shift] = []
    if same_list:
        if old_position < new_position:
            shifts.append(Shift(source_list_id, old_position + 1, new_position, -1))
        elif old_position > new_position:
            shifts.append(Shift(source_list_id, new_position, old_position - 1, 1))
    else:
        # close the gap in the source, open a slot in the destination
        shifts.append(Shift(source_list_id, old_position + 1, None, -1))
        shifts.append(Shift(destination_list_id, new_position, None, 1))
    return MovePlan(
        card_id=card_id,
        source_list_id=source_list_id,
        destination_list_id=destination_list_id,
        old_position=old_position,
        new_position=new_position,
        shifts=tuple(shifts),
    )
def plan_removal(list_id: int, removed_position: int) -> Shift:
    """Shift that closes the gap left by a card removed from ``list_id``."""
    return Shift(list_id, removed_position + 1, None, -1)
def next_position(positions: Iterable[Optional[int]]) -> int:
    """Tail slot of a container: ``max + 1``, or ``0`` when it is empty."""
    existing = [p for p in positions if p is not None]
    return max(existing) + 1 if existing else 0
def is_dense(positions: Iterable[int]) -> bool:
    ordered = sorted(positions)
    return ordered == list(range(len(ordered)))
