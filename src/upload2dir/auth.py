"""
Token based authorization.

Every mutating request presents a credential token (read from a cookie). The
token is looked up in a user table built from configuration lines of the form::

    token:username:verb[/verb...]

and the requested action verb must be among the verbs granted to that user.
"""

import logging
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from upload2dir.errors import AccessDenied
from upload2dir.schemas import User

logger = logging.getLogger(__name__)

ANONYMOUS_USER_NAME = "anonymous"


class Action(str, Enum):
    """Unit of permission granted to a user."""
    CREATE_DIR = "create_dir"
    DELETE_FILE = "delete_file"
    PUT_FILE = "put_file"


KNOWN_ACTIONS = frozenset(action.value for action in Action)


def parse_user_lines(lines: Iterable[str]) -> Mapping[str, User]:
    """
    Build the token -> user table.

    Lines with fewer than three colon separated parts are skipped. A token that
    appears again replaces the earlier definition.
    """
    users = {}
    for line in lines:
        parts = line.strip().split(":")
        if len(parts) < 3 or not parts[0]:
            continue
        token, name, verbs = parts[0], parts[1], parts[2]

        actions = set()
        for verb in verbs.split("/"):
            verb = verb.strip()
            if not verb:
                continue
            if verb not in KNOWN_ACTIONS:
                logger.warning(f"Ignoring unknown action verb '{verb}' for user '{name}'")
                continue
            actions.add(verb)

        users[token] = User(name=name, permitted_actions=frozenset(actions))
    return MappingProxyType(users)


class Authorizer:
    """
    Answers whether a token may perform an action.

    The table is read-only once built; `reload` swaps in a complete new table
    so concurrent readers see either the old or the new one, never a mix.
    """

    def __init__(self, lines: Iterable[str] = (), enabled: Optional[bool] = None):
        self._users = parse_user_lines(lines)
        self._enabled = enabled

    @classmethod
    def from_settings(cls, settings) -> "Authorizer":
        return cls(settings.user_lines(), enabled=settings.authorization_enabled)

    @property
    def enabled(self) -> bool:
        if self._enabled is not None:
            return self._enabled
        return bool(self._users)

    @property
    def user_count(self) -> int:
        return len(self._users)

    def reload(self, lines: Iterable[str]) -> None:
        self._users = parse_user_lines(lines)
        logger.info(f"User table reloaded with {len(self._users)} users")

    def authorize(self, token: Optional[str], action: Action) -> User:
        """
        Return the user behind `token` if it may perform `action`.

        :raises AccessDenied: for a missing or unknown token, or a user lacking the
            verb. The three cases are indistinguishable to the caller.
        """
        if not self.enabled:
            return User(name=ANONYMOUS_USER_NAME, permitted_actions=KNOWN_ACTIONS)

        user = self._users.get(token) if token else None
        if user is None or not user.can(Action(action).value):
            raise AccessDenied()
        return user
