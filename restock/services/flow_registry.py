import time
import uuid
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from restock.core.reset_flow import PasswordResetFlow
from restock.logging import get_logger

logger = get_logger("restock.reset")


class FlowRegistry:
    """
    In-process home of open password reset flows, keyed by flow id.

    Flows idle for longer than ``idle_ttl`` seconds are evicted, and at most
    ``max_open`` flows are kept; the least recently used go first.
    """

    def __init__(
        self,
        flow_factory: Callable[[], PasswordResetFlow],
        idle_ttl: float = 1800,
        max_open: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.flow_factory = flow_factory
        self.idle_ttl = idle_ttl
        self.max_open = max_open
        self.clock = clock
        # flow id -> (flow, last seen), least recently used first
        self._flows: "OrderedDict[str, Tuple[PasswordResetFlow, float]]" = OrderedDict()

    def _evict(self, now: float) -> None:
        while self._flows:
            flow_id, (flow, last_seen) = next(iter(self._flows.items()))
            if now - last_seen < self.idle_ttl and len(self._flows) < self.max_open:
                break
            del self._flows[flow_id]
            flow.close()
            logger.info("Password reset flow evicted", flow_id=flow_id)

    def open(self) -> Tuple[str, PasswordResetFlow]:
        now = self.clock()
        self._evict(now)
        flow_id = str(uuid.uuid4())
        flow = self.flow_factory()
        self._flows[flow_id] = (flow, now)
        logger.info("Password reset flow opened", flow_id=flow_id)
        return flow_id, flow

    def get(self, flow_id: str) -> Optional[PasswordResetFlow]:
        now = self.clock()
        entry = self._flows.get(flow_id)
        if entry is None:
            return None
        flow, last_seen = entry
        if now - last_seen >= self.idle_ttl:
            self.discard(flow_id)
            return None
        self._flows[flow_id] = (flow, now)
        self._flows.move_to_end(flow_id)
        return flow

    def discard(self, flow_id: str) -> bool:
        entry = self._flows.pop(flow_id, None)
        if entry is None:
            return False
        entry[0].close()
        return True

    def __len__(self) -> int:
        return len(self._flows)
