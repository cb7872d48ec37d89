"""The language-neutral API model and the passes that operate on it."""

from .model import (
    API,
    APIState,
    Enum,
    EnumValue,
    Field,
    Message,
    Method,
    OneOf,
    OperationInfo,
    PathInfo,
    PathSegment,
    Service,
    Typez,
)
from .overrides import apply_documentation_overrides
from .skip import SelectionPolicy, skip_model_elements
from .xref import cross_reference

__all__ = [
    "API",
    "APIState",
    "Enum",
    "EnumValue",
    "Field",
    "Message",
    "Method",
    "OneOf",
    "OperationInfo",
    "PathInfo",
    "PathSegment",
    "SelectionPolicy",
    "Service",
    "Typez",
    "apply_documentation_overrides",
    "cross_reference",
    "skip_model_elements",
]
