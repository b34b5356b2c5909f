#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Shared types for the Jenkins stage tree.

Two node shapes are used:
- `GraphNode`: working record owned by the graph passes (forward edges, tree links by id)
- `StageNode`: final display record built by the filter pass (no transient links)

This module MUST NOT import `graph.py` or `client.py` to avoid cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class NodeKind(str, Enum):
    """Structural classification of a flow graph node."""

    START_MARKER = "start_marker"
    END_MARKER = "end_marker"
    ATOMIC_STEP = "atomic_step"
    OTHER = "other"


_START_CLASSES = (
    "org.jenkinsci.plugins.workflow.cps.nodes.StepStartNode",
    "org.jenkinsci.plugins.workflow.graph.FlowStartNode",
)
_END_CLASSES = (
    "org.jenkinsci.plugins.workflow.graph.FlowEndNode",
    "org.jenkinsci.plugins.workflow.cps.nodes.StepEndNode",
)
ATOM_NODE_CLASS = "org.jenkinsci.plugins.workflow.cps.nodes.StepAtomNode"
FLOW_GRAPH_ACTION_CLASS = "org.jenkinsci.plugins.workflow.job.views.FlowGraphAction"


def node_kind_from_class(node_class: str) -> NodeKind:
    c = str(node_class or "")
    if c in _START_CLASSES:
        return NodeKind.START_MARKER
    if c in _END_CLASSES:
        return NodeKind.END_MARKER
    if c == ATOM_NODE_CLASS:
        return NodeKind.ATOMIC_STEP
    return NodeKind.OTHER


class StageStatus(str, Enum):
    """Normalized stage status (same values as the dashboards' CI status strings)."""

    SUCCESS = "success"
    FAILURE = "failure"
    IN_PROGRESS = "in_progress"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"
    UNKNOWN = "unknown"


_ICON_COLOR_STATUS = {
    "blue": StageStatus.SUCCESS,
    "red": StageStatus.FAILURE,
    "yellow": StageStatus.FAILURE,  # unstable
    "aborted": StageStatus.CANCELLED,
    "notbuilt": StageStatus.SKIPPED,
    "grey": StageStatus.SKIPPED,
    "disabled": StageStatus.SKIPPED,
}


def status_from_icon_color(icon_color: str, *, running: bool = False) -> StageStatus:
    if running:
        return StageStatus.IN_PROGRESS
    color = str(icon_color or "").replace("_anime", "")
    return _ICON_COLOR_STATUS.get(color, StageStatus.UNKNOWN)


@dataclass(frozen=True)
class BuildCoordinates:
    """Where a build lives: Jenkins base URL + job name + build number."""

    base_url: str
    job_name: str
    build_number: int

    def job_path(self) -> str:
        """URL path for the job; `folder/job` expands to `/job/folder/job/job`."""
        parts = [p for p in str(self.job_name or "").split("/") if p]
        return "".join(f"/job/{p}" for p in parts)

    def build_path(self) -> str:
        return f"{self.job_path()}/{int(self.build_number)}"

    def build_url(self) -> str:
        return f"{str(self.base_url).rstrip('/')}{self.build_path()}"

    def node_log_url(self, node_id: str) -> str:
        return f"{self.build_url()}/execution/node/{node_id}/log/"

    def node_log_url_full(self, node_id: str) -> str:
        return f"{self.node_log_url(node_id)}?consoleFull"


@dataclass(frozen=True)
class RawNode:
    """One element of the engine's flat `nodes` list."""

    id: str
    parents: Tuple[str, ...]
    display_name: str
    node_class: str = ""
    running: bool = False
    icon_color: str = ""

    @property
    def kind(self) -> NodeKind:
        return node_kind_from_class(self.node_class)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "RawNode":
        parents = data.get("parents") or []
        return cls(
            id=str(data.get("id", "")),
            parents=tuple(str(p) for p in parents),
            display_name=str(data.get("displayName", "") or ""),
            node_class=str(data.get("_class", "") or ""),
            running=bool(data.get("running", False)),
            icon_color=str(data.get("iconColor", "") or ""),
        )


@dataclass
class GraphNode:
    """Working node: references other nodes by id into the owning index."""

    id: str
    parents: Tuple[str, ...]
    display_name: str
    kind: NodeKind
    node_class: str = ""
    running: bool = False
    icon_color: str = ""
    # Name as the engine reported it (after placeholder relabel); the display
    # policy matches on this, not on the enriched `display_name`.
    engine_display_name: str = ""
    log_url: Optional[str] = None
    log_url_full: Optional[str] = None
    forward_edges: List[str] = field(default_factory=list)
    tree_parent: Optional[str] = None  # non-owning back-reference
    tree_children: List[str] = field(default_factory=list)
    # Filled by the optional enrichment step.
    duration_millis: Optional[int] = None
    parameter_description: Optional[str] = None
    log: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: RawNode) -> "GraphNode":
        return cls(
            id=raw.id,
            parents=tuple(raw.parents),
            display_name=raw.display_name,
            kind=raw.kind,
            node_class=raw.node_class,
            running=raw.running,
            icon_color=raw.icon_color,
            engine_display_name=raw.display_name,
        )


@dataclass
class StageNode:
    """Final display node. Owns its children; carries no graph bookkeeping."""

    id: str
    display_name: str
    kind: NodeKind
    node_class: str = ""
    running: bool = False
    icon_color: str = ""
    log_url: Optional[str] = None
    log_url_full: Optional[str] = None
    duration_millis: Optional[int] = None
    parameter_description: Optional[str] = None
    log: Optional[str] = None
    children: List["StageNode"] = field(default_factory=list)

    @classmethod
    def from_graph_node(cls, node: GraphNode) -> "StageNode":
        return cls(
            id=node.id,
            display_name=node.display_name,
            kind=node.kind,
            node_class=node.node_class,
            running=node.running,
            icon_color=node.icon_color,
            log_url=node.log_url,
            log_url_full=node.log_url_full,
            duration_millis=node.duration_millis,
            parameter_description=node.parameter_description,
            log=node.log,
        )

    @property
    def status(self) -> StageStatus:
        return status_from_icon_color(self.icon_color, running=self.running)

    def walk(self) -> Iterator[Tuple[int, "StageNode"]]:
        """Yield (depth, node) in depth-first order, starting with self at depth 0."""
        stack: List[Tuple[int, StageNode]] = [(0, self)]
        while stack:
            depth, node = stack.pop()
            yield depth, node
            for child in reversed(node.children):
                stack.append((depth + 1, child))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "displayName": self.display_name,
            "_class": self.node_class,
            "running": self.running,
            "iconColor": self.icon_color,
            "status": self.status.value,
        }
        if self.log_url:
            out["logUrl"] = self.log_url
            out["logUrlFull"] = self.log_url_full
        if self.duration_millis is not None:
            out["durationMillis"] = self.duration_millis
        if self.parameter_description:
            out["parameterDescription"] = self.parameter_description
        if self.log:
            out["log"] = self.log
        out["children"] = [c.to_dict() for c in self.children]
        return out
