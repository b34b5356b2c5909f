"""
Jenkins pipeline stage tree library.

Turns the flat flow graph Jenkins reports for a pipeline build into an ordered,
nested stage tree with the structural noise removed.

Public API is re-exported from:
- `jenkins_stages.graph` for the I/O-free graph passes
- `jenkins_stages.client` for the REST client
- `jenkins_stages.stages` for the fetch + build entry point
"""

from .client import JenkinsAPIClient  # noqa: F401
from .graph import (  # noqa: F401
    GraphIndex,
    build_node_index,
    build_stage_tree,
    build_tree,
    filter_tree,
)
from .policy import DEFAULT_POLICY, NodeFilterPolicy, load_filter_policy  # noqa: F401
from .stages import get_jenkins_stages  # noqa: F401
from .stage_types import BuildCoordinates, NodeKind, RawNode, StageNode  # noqa: F401

__all__ = [
    "BuildCoordinates",
    "DEFAULT_POLICY",
    "GraphIndex",
    "JenkinsAPIClient",
    "NodeFilterPolicy",
    "NodeKind",
    "RawNode",
    "StageNode",
    "build_node_index",
    "build_stage_tree",
    "build_tree",
    "filter_tree",
    "get_jenkins_stages",
    "load_filter_policy",
]
