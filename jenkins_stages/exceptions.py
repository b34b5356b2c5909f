# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Jenkins API and stage graph error types.

These are intentionally lightweight so the graph passes, the client and the
enricher can catch specific error classes without creating import cycles.
"""

from __future__ import annotations


class JenkinsAPIError(Exception):
    def __init__(self, *, status_code: int, endpoint: str, message: str):
        super().__init__(message)
        self.status_code = int(status_code)
        self.endpoint = str(endpoint or "")


class JenkinsAuthError(JenkinsAPIError):
    pass


class JenkinsForbiddenError(JenkinsAPIError):
    pass


class JenkinsNotFoundError(JenkinsAPIError):
    pass


class JenkinsRequestError(JenkinsAPIError):
    pass


class StageGraphError(Exception):
    """Malformed flow graph; not recoverable for the given input."""


class MissingRootError(StageGraphError):
    pass


class DanglingParentError(StageGraphError):
    def __init__(self, *, node_id: str, parent_id: str):
        super().__init__(f"node {node_id!r} references unknown parent {parent_id!r}")
        self.node_id = str(node_id)
        self.parent_id = str(parent_id)


class UnbalancedStructuralMarkerError(StageGraphError):
    def __init__(self, *, node_id: str):
        super().__init__(f"end marker {node_id!r} has no open start marker to close")
        self.node_id = str(node_id)


class EnrichmentFetchFailure(Exception):
    def __init__(self, *, node_id: str, message: str):
        super().__init__(message)
        self.node_id = str(node_id)


class PolicyConfigError(ValueError):
    pass
