import logging
from typing import Dict, List

logger = logging.getLogger(__name__)

class UserRegistry:
    """Users opted into scheduled challenges. Keeps registration order."""

    def __init__(self):
        self._users: Dict[str, None] = {}

    def add_user(self, user_id: str):
        self._users[user_id] = None
        logger.info(f"Registered user {user_id} for scheduled challenges")

    def remove_user(self, user_id: str):
        self._users.pop(user_id, None)
        logger.info(f"Unregistered user {user_id} from scheduled challenges")

    def is_registered(self, user_id: str) -> bool:
        return user_id in self._users

    def get_all_users(self) -> List[str]:
        return list(self._users)

    def get_user_count(self) -> int:
        return len(self._users)
