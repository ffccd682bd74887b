"""Static logical-name table with aliases and fallback getters."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from objstore.errors import DuplicateAliasError

logger = logging.getLogger(__name__)

__all__ = ["Names", "NameGetter"]

NameGetter = Callable[[str], Optional[str]]


class Names:
    """Rewrites logical names.

    Lookup order: exact entries, then aliases, then getters in
    registration order (first non-empty answer wins). A key nothing knows
    about comes back unchanged.

    Example:
        >>> names = Names()
        >>> names.alias("media", "images", "videos")
        >>> names.get("images")
        'media'
        >>> names.get("other")
        'other'
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._aliases: Dict[str, str] = {}
        self._getters: List[NameGetter] = []

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def alias(self, real: str, alias: str, *aliases: str) -> None:
        """Register one or more aliases for a real name.

        Nothing is inserted unless every alias is new.

        Raises:
            DuplicateAliasError: If any alias is already registered
        """
        names = (alias,) + aliases
        seen = set()
        for name in names:
            if name in self._aliases or name in seen:
                raise DuplicateAliasError(name, real=self._aliases.get(name, real))
            seen.add(name)
        for name in names:
            self._aliases[name] = real

    def getter(self, fn: NameGetter) -> NameGetter:
        """Append a fallback getter. Usable as a decorator."""
        self._getters.append(fn)
        return fn

    def lookup(self, key: str) -> Optional[str]:
        """Return the rewritten name, or None when nothing matched."""
        if key in self._data:
            return self._data[key]
        if key in self._aliases:
            return self._aliases[key]
        for fn in self._getters:
            value = fn(key)
            if value:
                return value
        return None

    def get(self, key: str) -> str:
        value = self.lookup(key)
        return key if value is None else value

    def get_or_default(self, key: str, *defaults: str) -> str:
        """Look up key, then each default in turn.

        When nothing matches, the last default is returned as is (or key
        when no defaults were given).

        Example:
            >>> names.get_or_default("unknown", "default")
            'default'
        """
        for candidate in (key,) + defaults:
            value = self.lookup(candidate)
            if value is not None:
                return value
        return defaults[-1] if defaults else key

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.lookup(key) is not None
