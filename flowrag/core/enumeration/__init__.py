"""Core enumeration module."""

from .callback_enum import CBEventType, EventPayload
from .error_kind import ErrorKind
from .node_enum import FilterCondition, FilterOperator, MetadataMode, NodeRelationship, NodeType, SimilarityMode
from .registry_enum import RegistryEnum
from .role import Role

__all__ = [
    "CBEventType",
    "EventPayload",
    "ErrorKind",
    "FilterCondition",
    "FilterOperator",
    "MetadataMode",
    "NodeRelationship",
    "NodeType",
    "SimilarityMode",
    "RegistryEnum",
    "Role",
]
