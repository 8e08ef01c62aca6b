"""
Real-time presence tracking for chat users.

Tracks which users are online, supporting multiple
browser tabs/devices per user (multiple socket IDs).
"""
import logging
from typing import Dict, Set, List, Optional
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class PresenceManager:
    """
    In-memory presence tracking.

    Structure:
    - user_sockets[user_id] = set(socket_ids)
    - socket_user_map[socket_id] = user_id (for cleanup on disconnect)
    """
    user_sockets: Dict[str, Set[str]] = field(default_factory=dict)

    socket_user_map: Dict[str, str] = field(default_factory=dict)

    def user_connected(self, user_id: str, socket_id: str) -> bool:
        """
        Register a user connection.

        Returns True if this is the user's first socket (they came online).
        Returns False if user already had other sockets (additional tab).
        """
        self.socket_user_map[socket_id] = user_id

        sockets = self.user_sockets.setdefault(user_id, set())
        was_offline = len(sockets) == 0
        sockets.add(socket_id)

        if was_offline:
            logger.info(f"User {user_id} came online (socket: {socket_id})")
        else:
            logger.debug(f"User {user_id} added socket {socket_id} (now {len(sockets)} connections)")

        return was_offline

    def user_disconnected(self, socket_id: str) -> Optional[Dict]:
        """
        Handle socket disconnect.

        Returns dict with {user_id, went_offline: bool} if socket was tracked.
        Returns None if socket wasn't tracked.
        """
        user_id = self.socket_user_map.pop(socket_id, None)
        if user_id is None:
            return None

        sockets = self.user_sockets.get(user_id)
        if sockets is None:
            return None

        sockets.discard(socket_id)
        went_offline = len(sockets) == 0

        if went_offline:
            del self.user_sockets[user_id]
            logger.info(f"User {user_id} went offline")
        else:
            logger.debug(f"User {user_id} closed socket {socket_id} ({len(sockets)} remaining)")

        return {
            "user_id": user_id,
            "went_offline": went_offline,
        }

    def get_online_users(self) -> List[str]:
        return [uid for uid, sockets in self.user_sockets.items() if sockets]

    def is_user_online(self, user_id: str) -> bool:
        return bool(self.user_sockets.get(user_id))

    def get_socket_count(self, user_id: str) -> int:
        return len(self.user_sockets.get(user_id, set()))

    def clear(self):
        """Clear all presence data (for testing)."""
        self.user_sockets.clear()
        self.socket_user_map.clear()


# Singleton instance
presence_manager = PresenceManager()
