import logging
from typing import Any, Callable, List, NamedTuple, Optional

logger = logging.getLogger(__name__)

class _Compensation(NamedTuple):
    func: Callable[..., Any]
    args: tuple
    description: str

class Saga:
    def __init__(self, name: str) -> None:
        self.name = name
        self._compensations: List[_Compensation] = []

    def on_rollback(self, func: Callable[..., Any], *args: Any, description: Optional[str] = None) -> None:
        self._compensations.append(_Compensation(func, args, description or getattr(func, "__name__", "undo")))

    def rollback(self) -> None:
        while self._compensations:
            step = self._compensations.pop()
            try:
                step.func(*step.args)
            except Exception:
                logger.exception("Saga %s: compensation %r failed", self.name, step.description)
            else:
                logger.debug("Saga %s: compensated %r", self.name, step.description)

    def __enter__(self) -> "Saga":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self._compensations.clear()
            return False
        logger.warning("Saga %s failed (%s), rolling back %d step(s)", self.name, exc_type.__name__, len(self._compensations))
        self.rollback()
        return False
