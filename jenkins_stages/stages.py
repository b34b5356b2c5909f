# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Fetch a build's flow graph and turn it into a stage tree."""

from __future__ import annotations

import logging
from typing import Optional

from .client import JenkinsAPIClient
from .enrich import DEFAULT_MAX_WORKERS, NodeDetailEnricher
from .graph import build_stage_tree
from .policy import NodeFilterPolicy
from .stage_types import BuildCoordinates, RawNode, StageNode

logger = logging.getLogger(__name__)


def get_jenkins_stages(
    api: JenkinsAPIClient,
    coords: BuildCoordinates,
    *,
    policy: Optional[NodeFilterPolicy] = None,
    supplement: bool = False,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> Optional[StageNode]:
    """Return the stage tree for a build, or None if Jenkins has no flow graph for it yet."""
    nodes = api.get_raw_stage_nodes(coords)
    if not nodes:
        logger.info(f"No flow graph available yet for {coords.job_name} #{coords.build_number}")
        return None

    raw_nodes = [RawNode.from_json(n) for n in nodes if isinstance(n, dict)]
    enricher = NodeDetailEnricher(api, coords, max_workers=max_workers) if supplement else None
    return build_stage_tree(raw_nodes, coords, policy=policy, enricher=enricher)
