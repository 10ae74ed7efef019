from __future__ import annotations

from statemachine import State, StateMachine


class HeldTokenFSM(StateMachine):
    """FSM for the player's single held-token slot.

    - states: empty -> holding -> holding (merge) -> empty (release on reset)
    - the session applies the game rules; the FSM only guards transitions and tracks the value.
    """

    empty = State("empty", value="empty", initial=True)
    holding = State("holding", value="holding")

    pick_up = empty.to(holding)
    merge = holding.to(holding)
    release = holding.to(empty) | empty.to(empty)

    def __init__(self, held: int | None = None):
        self.held = held
        super().__init__(start_value="empty" if held is None else "holding")

    @property
    def slot_empty(self) -> bool:
        return self.current_state == self.empty

    def on_pick_up(self, value: int) -> None:
        self.held = value

    def on_merge(self) -> None:
        assert self.held is not None
        self.held *= 2

    def on_release(self) -> None:
        self.held = None
