"""Templating context handed to backend factories."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from objstore.env import expand_options, expand_vars

__all__ = ["FactoryContext"]


@dataclass
class FactoryContext:
    """Variables and options available while constructing backends.

    Factories use it to template path, host and credential fields of their
    configuration. Names are looked up in ``variables`` first, then in the
    process environment.

    Example:
        >>> ctx = FactoryContext(variables={"DATA": "/srv/data"})
        >>> ctx.format("${DATA}/files")
        '/srv/data/files'
    """

    variables: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    strict: bool = False

    def format(self, text: str) -> str:
        """Substitute ${NAME}/$NAME references in a string."""
        return expand_vars(text, self.variables, strict=self.strict)

    def format_path(self, text: str) -> str:
        """Like format(), then expand a leading ``~``."""
        return os.path.expanduser(self.format(text))

    def format_options(self, options: Mapping[str, Any]) -> Dict[str, Any]:
        return expand_options(options, self.variables, strict=self.strict)

    def with_variables(self, **variables: Any) -> "FactoryContext":
        """Return a copy with extra variables layered on top."""
        merged = dict(self.variables)
        merged.update(variables)
        return FactoryContext(variables=merged, options=dict(self.options), strict=self.strict)
