from __future__ import annotations

from enum import Enum
from typing import Dict, Set, Tuple


class EngineState(str, Enum):
    CLEAN = "CLEAN"
    APPLYING = "APPLYING"
    APPLIED = "APPLIED"
    DIFFED = "DIFFED"
    PREVIEW_POPULATED = "PREVIEW_POPULATED"
    COMMITTED = "COMMITTED"
    FAILED = "FAILED"


_ALLOWED: Set[Tuple[EngineState, EngineState]] = {
    (EngineState.CLEAN, EngineState.APPLYING),
    (EngineState.APPLYING, EngineState.APPLIED),
    (EngineState.APPLIED, EngineState.DIFFED),
    (EngineState.DIFFED, EngineState.PREVIEW_POPULATED),

    (EngineState.APPLIED, EngineState.COMMITTED),

    # a failed save leaves the local scope in place
    (EngineState.APPLIED, EngineState.FAILED),
}

_TERMINAL: Set[EngineState] = {
    EngineState.COMMITTED,
    EngineState.FAILED,
}


def is_terminal(state: EngineState) -> bool:
    return state in _TERMINAL


def can_transition(src: EngineState, dst: EngineState) -> bool:
    if src == dst:
        return True
    # rollback restores CLEAN from anywhere, a committed or failed session starts over from CLEAN
    if dst == EngineState.CLEAN:
        return True
    if is_terminal(src):
        return False
    return (src, dst) in _ALLOWED


def ensure_transition(src: EngineState, dst: EngineState) -> None:
    if not can_transition(src, dst):
        raise ValueError(f"Illegal transition: {src.value} -> {dst.value}")


def allowed_next(src: EngineState) -> Dict[str, bool]:
    out: Dict[str, bool] = {EngineState.CLEAN.value: True}
    if is_terminal(src):
        return out
    for a, b in _ALLOWED:
        if a == src:
            out[b.value] = True
    return out
