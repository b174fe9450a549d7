"""Active session registry - owners currently connected to the app."""
import logging
from typing import Dict, Set

logger = logging.getLogger(__name__)


class ActiveSessionRegistry:
    """Counts open sessions per owner.

    The scheduler consults it only when RESTRICT_TO_ACTIVE_OWNERS is enabled.
    """

    def __init__(self):
        self._sessions: Dict[int, int] = {}

    def login(self, owner_id: int):
        self._sessions[owner_id] = self._sessions.get(owner_id, 0) + 1
        if self._sessions[owner_id] == 1:
            logger.info(f"User {owner_id} session started")

    def logout(self, owner_id: int):
        count = self._sessions.get(owner_id, 0)
        if count <= 1:
            if self._sessions.pop(owner_id, None) is not None:
                logger.info(f"User {owner_id} session ended")
            return
        self._sessions[owner_id] = count - 1

    def is_active(self, owner_id: int) -> bool:
        return owner_id in self._sessions

    def active_owner_ids(self) -> Set[int]:
        return set(self._sessions)
