"""Variable expansion helpers.

Expands ${NAME} and $NAME references in configuration values, looking
names up in an explicit mapping first and the process environment second.
Loading of .env files goes through python-dotenv.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import load_dotenv

__all__ = ["expand_vars", "expand_options", "load_env_file", "VAR_PATTERN"]

# ${NAME} or $NAME
VAR_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def load_env_file(
    path: Optional[Union[str, Path]] = None,
    *,
    override: bool = False,
) -> bool:
    """Load environment variables from a .env file.

    Args:
        path: Path to .env file. If None, python-dotenv searches the
              current directory and its parents.
        override: If True, override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    return load_dotenv(dotenv_path=path, override=override)


def expand_vars(
    value: str,
    variables: Optional[Mapping[str, Any]] = None,
    *,
    strict: bool = False,
) -> str:
    """Expand variable references in a string.

    Args:
        value: String potentially containing ${NAME} or $NAME references
        variables: Values consulted before the environment
        strict: If True, raise KeyError for names that resolve nowhere

    Example:
        >>> expand_vars("${ROOT}/files", {"ROOT": "/srv"})
        '/srv/files'
        >>> expand_vars("$MISSING/x")
        '$MISSING/x'
    """
    variables = variables or {}

    def replacer(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2)
        if name in variables:
            return str(variables[name])
        env_value = os.environ.get(name)
        if env_value is None:
            if strict:
                raise KeyError(f"Variable not set: {name}")
            return str(match.group(0))
        return env_value

    return VAR_PATTERN.sub(replacer, value)


def expand_options(
    options: Mapping[str, Any],
    variables: Optional[Mapping[str, Any]] = None,
    *,
    strict: bool = False,
) -> Dict[str, Any]:
    """Recursively expand variables in the string values of a mapping.

    Nested mappings and lists are walked; other values are copied as is.
    """
    result: Dict[str, Any] = {}

    for key, value in options.items():
        result[key] = _expand_value(value, variables, strict)

    return result


def _expand_value(value: Any, variables: Optional[Mapping[str, Any]], strict: bool) -> Any:
    if isinstance(value, str):
        return expand_vars(value, variables, strict=strict)
    if isinstance(value, Mapping):
        return expand_options(value, variables, strict=strict)
    if isinstance(value, list):
        return [_expand_value(item, variables, strict) for item in value]
    return value
