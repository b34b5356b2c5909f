# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Plain-text rendering of a stage tree (one line per node)."""

from __future__ import annotations

from typing import List

from .stage_types import StageNode, StageStatus

_STATUS_MARK = {
    StageStatus.SUCCESS: "✓",
    StageStatus.FAILURE: "❌",
    StageStatus.CANCELLED: "⊘",
    StageStatus.SKIPPED: "-",
    StageStatus.UNKNOWN: "?",
}


def format_duration(duration_millis: int) -> str:
    return f"{duration_millis / 60000:.1f}m"


def format_stage_line(depth: int, node: StageNode) -> str:
    status = node.status
    marker = "[RUNNING]" if status == StageStatus.IN_PROGRESS else f"[{_STATUS_MARK.get(status, '?')}]"
    parts = ["-" * depth, marker] if depth else [marker]
    if node.duration_millis is not None:
        parts.append(f"[{format_duration(node.duration_millis)}]")
    parts.append(node.display_name)
    logs = node.log or node.log_url
    if logs:
        parts.append(f"(logs: {logs})")
    return " ".join(parts)


def render_stage_tree(root: StageNode) -> List[str]:
    return [format_stage_line(depth, node) for depth, node in root.walk()]
