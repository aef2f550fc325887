from __future__ import annotations

from enum import Enum
from typing import Set, Tuple


class ModelState(str, Enum):
    UNREGISTERED = "UNREGISTERED"  # no loader for the contract's runtime type
    REGISTERED = "REGISTERED"      # loader present, model not loaded
    LOADED = "LOADED"              # cached model present


_ALLOWED: Set[Tuple[ModelState, ModelState]] = {
    (ModelState.UNREGISTERED, ModelState.REGISTERED),
    (ModelState.REGISTERED, ModelState.LOADED),

    # explicit cache eviction only
    (ModelState.LOADED, ModelState.REGISTERED),
}


def can_transition(src: ModelState, dst: ModelState) -> bool:
    return src == dst or (src, dst) in _ALLOWED
