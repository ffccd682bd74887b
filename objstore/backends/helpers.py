"""Helper utilities shared across storage backends."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from objstore.base import Endpoint
from objstore.context import FactoryContext
from objstore.errors import ConstructionError

ModelT = TypeVar("ModelT", bound=BaseModel)

EndpointConfig = Union[str, Dict[str, str], None]


def parse_backend_config(model: Type[ModelT], config: Mapping[str, Any], type_name: str) -> ModelT:
    """Validate a configuration bag against a backend's model."""
    try:
        return model.model_validate(dict(config))
    except ValidationError as e:
        issues = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConstructionError(
            f"Invalid {type_name} storage configuration: {issues}",
            type_name=type_name,
            cause=e,
        ) from e


def build_endpoint(
    value: EndpointConfig,
    context: Optional[FactoryContext] = None,
) -> Optional[Endpoint]:
    """Turn a configured endpoint (URL string or mapping) into an Endpoint.

    Host and path are templated through the context when one is given.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return Endpoint.parse(context.format(value) if context else value)

    scheme = value.get("scheme", "")
    host = value.get("host", "")
    path = value.get("path", "")
    if context is not None:
        host = context.format(host)
        path = context.format(path)
    if path and not path.startswith("/"):
        path = "/" + path
    return Endpoint(scheme=scheme, host=host, path=path.rstrip("/"))


def normalize_prefix(prefix: Optional[str]) -> str:
    """Normalize storage prefix strings by stripping slashes/spaces."""
    if not prefix:
        return ""
    return str(prefix).strip("/ ")
