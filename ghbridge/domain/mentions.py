"""Mention directory — GitHub username to chat mention token.

Built once from configuration and never mutated, so workers may read it
concurrently without locking.
"""

from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional, Tuple, Union

from ghbridge.config import ConfigError, mention_entries_from_env


class MentionDirectory:
    """Read-only username -> mention lookup. Usernames are case-sensitive."""

    def __init__(self, entries: Union[Mapping[str, str], Iterable[Tuple[str, str]]] = ()):
        items = entries.items() if isinstance(entries, Mapping) else entries
        table = {}
        for username, token in items:
            if not username or not username.strip():
                raise ConfigError("mention entry with empty username")
            if not token or not token.strip():
                raise ConfigError(f"mention entry for {username!r} has an empty token")
            table[username] = token.strip()
        self._table = MappingProxyType(table)

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "MentionDirectory":
        return cls(mention_entries_from_env(env))

    def resolve(self, username: Optional[str]) -> Optional[str]:
        """Return the mention token for ``username``, or None when unknown."""
        if not username:
            return None
        return self._table.get(username)

    def __contains__(self, username: object) -> bool:
        return username in self._table

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)
