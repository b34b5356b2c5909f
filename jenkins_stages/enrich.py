# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Per-node detail enrichment for atomic steps.

Fetches `execution/node/<id>/wfapi/` for every atomic step with a bounded thread pool
and merges description, duration and log link into the working graph. A failed fetch
leaves that node as it was.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from .exceptions import EnrichmentFetchFailure, JenkinsAPIError
from .graph import GraphIndex
from .stage_types import BuildCoordinates, GraphNode, NodeKind

if TYPE_CHECKING:  # pragma: no cover
    from .client import JenkinsAPIClient

logger = logging.getLogger(__name__)

DESCRIPTION_PREFIX_RE = re.compile(r"#!/usr/local/bin/runbld\s+")
DEFAULT_MAX_WORKERS = 5


def merge_node_detail(node: GraphNode, detail: Dict[str, Any], *, base_url: str) -> None:
    """Overwrite display fields of `node` from a wfapi node detail payload."""
    description = DESCRIPTION_PREFIX_RE.sub("", str(detail.get("parameterDescription") or ""), count=1)
    node.parameter_description = description
    if description:
        node.display_name = description
    duration = detail.get("durationMillis")
    if isinstance(duration, (int, float)):
        node.duration_millis = int(duration)
    links = detail.get("_links") if isinstance(detail.get("_links"), dict) else {}
    log_link = links.get("log") if isinstance(links.get("log"), dict) else {}
    href = log_link.get("href")
    if href:
        node.log = f"{str(base_url).rstrip('/')}{href}"


class NodeDetailEnricher:
    """Callable enricher for `build_stage_tree(..., enricher=...)`."""

    def __init__(self, api: "JenkinsAPIClient", coords: BuildCoordinates, *, max_workers: int = DEFAULT_MAX_WORKERS):
        self.api = api
        self.coords = coords
        self.max_workers = max(1, int(max_workers))
        self.failures: List[EnrichmentFetchFailure] = []

    def _fetch_one(self, node_id: str) -> Tuple[str, Optional[Dict[str, Any]]]:
        try:
            return node_id, self.api.get_node_detail(self.coords, node_id)
        except JenkinsAPIError as e:
            failure = EnrichmentFetchFailure(node_id=node_id, message=f"node {node_id} detail fetch failed: {e}")
            self.failures.append(failure)
            logger.warning(str(failure))
            return node_id, None

    def __call__(self, index: GraphIndex) -> None:
        self.failures = []
        step_ids = [n.id for n in index.in_order() if n.kind == NodeKind.ATOMIC_STEP]
        if not step_ids:
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as ex:
            results = list(ex.map(self._fetch_one, step_ids))

        merged = 0
        for node_id, detail in results:
            if not detail:
                continue
            # The payload's own id wins when present.
            node = index.nodes.get(str(detail.get("id", node_id)))
            if node is None:
                continue
            merge_node_detail(node, detail, base_url=self.coords.base_url)
            merged += 1
        logger.debug(f"Enriched {merged}/{len(step_ids)} atomic steps ({len(self.failures)} failed)")
