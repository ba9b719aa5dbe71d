"""
Owned native model handle.

A ModelHandle is the only thing that ever holds the native model, its
context and its sampler settings. It is valid from a successful load until
release; after release every slot is cleared and the handle stays invalid.
"""

import itertools
import threading
from typing import Any, Optional

_handle_ids = itertools.count(1)


class ModelHandle:
    """
    Resource guard around the native objects of one loaded model.

    Slots are released in the order sampler -> context -> model by the
    engine that created the handle. Engines store whatever native objects
    they need here; callers outside the engine treat the handle as opaque.
    """

    def __init__(self, model: Any, context: Any = None, sampler: Any = None, path: str = ""):
        self.handle_id = next(_handle_ids)
        self.path = path
        self.model = model
        self.context = context
        self.sampler = sampler
        self._lock = threading.Lock()
        self._valid = model is not None

    @property
    def is_valid(self) -> bool:
        return self._valid

    def invalidate(self) -> bool:
        """
        Mark the handle released.

        Returns True only for the call that actually flipped it, so the
        owning engine frees native objects at most once.
        """
        with self._lock:
            if not self._valid:
                return False
            self._valid = False
            return True

    def __bool__(self) -> bool:
        return self._valid

    def __repr__(self) -> str:
        state = "valid" if self._valid else "released"
        return f"ModelHandle(id={self.handle_id}, {state}, path={self.path!r})"


def is_live(handle: Optional[ModelHandle]) -> bool:
    """True when handle is a valid, unreleased ModelHandle."""
    return handle is not None and handle.is_valid
