# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Jenkins REST API client for stage tree lookups.

Resources:
  GET <job>/<build>/api/json?tree=actions[nodes[...]]      (flow graph, flat)
  GET <job>/<build>/execution/node/<id>/wfapi/            (per-node detail)

No retries; callers decide what to do with a raised `JenkinsAPIError`.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import requests

from .exceptions import (
    JenkinsAuthError,
    JenkinsForbiddenError,
    JenkinsNotFoundError,
    JenkinsRequestError,
)
from .stage_types import FLOW_GRAPH_ACTION_CLASS, BuildCoordinates

logger = logging.getLogger(__name__)

FLOW_NODES_TREE = "actions[nodes[iconColor,running,displayName,id,parents]]"


class JenkinsAPIClient:
    """Jenkins REST API client (lightweight; graph logic lives in `graph.py`)."""

    @staticmethod
    def get_jenkins_credentials_from_file() -> Optional[Tuple[str, str]]:
        """Get `user:token` from `~/.config/jenkins-token` (best-effort)."""
        try:
            token_file = Path.home() / ".config" / "jenkins-token"
            if token_file.exists():
                user, sep, token = token_file.read_text().strip().partition(":")
                if sep and user and token:
                    return user, token
        except OSError:
            pass
        return None

    def __init__(self, base_url: str, user: Optional[str] = None, token: Optional[str] = None):
        # Credential priority: 1) arguments, 2) environment variables, 3) config file
        self.user = user or os.environ.get("JENKINS_USER")
        self.token = token or os.environ.get("JENKINS_TOKEN")
        if not (self.user and self.token):
            from_file = self.get_jenkins_credentials_from_file()
            if from_file is not None:
                self.user, self.token = from_file
        self.base_url = str(base_url or "").rstrip("/")

        self._rest_calls_total: int = 0
        self._rest_calls_by_label: Dict[str, int] = {}
        self._rest_success_total: int = 0
        self._rest_errors_total: int = 0
        self._rest_time_total_s: float = 0.0
        self._rest_errors_by_status: Dict[int, int] = {}

    def has_credentials(self) -> bool:
        return bool(self.user and self.token)

    def _auth(self) -> Optional[Tuple[str, str]]:
        return (str(self.user), str(self.token)) if self.has_credentials() else None

    def _rest_record(self, *, label: str, status_code: Optional[int], dt_s: float) -> None:
        lbl = str(label or "").strip() or "unknown"
        self._rest_calls_total += 1
        self._rest_calls_by_label[lbl] = int(self._rest_calls_by_label.get(lbl, 0)) + 1
        self._rest_time_total_s += max(0.0, float(dt_s))
        if status_code is None:
            return
        if 200 <= status_code < 300:
            self._rest_success_total += 1
        elif status_code >= 400:
            self._rest_errors_total += 1
            self._rest_errors_by_status[status_code] = int(self._rest_errors_by_status.get(status_code, 0)) + 1

    def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: int = 10,
        *,
        label: Optional[str] = None,
    ) -> Any:
        """Make a GET request to the Jenkins API and return decoded JSON or raise."""
        ep = str(endpoint or "")
        t0 = time.monotonic()
        status_code: Optional[int] = None
        url = f"{self.base_url}{ep}" if ep.startswith("/") else f"{self.base_url}/{ep}"

        try:
            response = requests.get(url, params=params, auth=self._auth(), timeout=timeout)
            status_code = int(response.status_code)

            if response.status_code == 401:
                raise JenkinsAuthError(status_code=401, endpoint=ep, message="Jenkins API returned 401 Unauthorized. Check your token.")
            if response.status_code == 403:
                raise JenkinsForbiddenError(status_code=403, endpoint=ep, message="Jenkins API returned 403 Forbidden. User may lack permissions.")
            if response.status_code == 404:
                raise JenkinsNotFoundError(status_code=404, endpoint=ep, message=f"Jenkins API returned 404 Not Found for {endpoint}")

            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise JenkinsRequestError(
                status_code=int(status_code or 0), endpoint=ep, message=f"Jenkins API request failed for {endpoint}: {e}"
            ) from e
        finally:
            self._rest_record(label=str(label or ""), status_code=status_code, dt_s=time.monotonic() - t0)

    def get_rest_call_stats(self) -> Dict[str, Any]:
        """Return REST call stats for the current process/run."""
        return {
            "total": int(self._rest_calls_total),
            "success_total": int(self._rest_success_total),
            "error_total": int(self._rest_errors_total),
            "time_total_s": float(self._rest_time_total_s),
            "by_label": dict(sorted(self._rest_calls_by_label.items(), key=lambda kv: (-kv[1], kv[0]))),
            "errors_by_status": dict(sorted(self._rest_errors_by_status.items())),
        }

    # -----------------------------------------------------------------------------
    # Resources
    # -----------------------------------------------------------------------------

    def get_raw_stage_nodes(self, coords: BuildCoordinates) -> Optional[List[Dict[str, Any]]]:
        """Return the flat flow graph node list, or None if the build has none (yet)."""
        data = self.get(
            f"{coords.build_path()}/api/json",
            params={"tree": FLOW_NODES_TREE},
            label="flow_graph",
        )
        actions = data.get("actions") if isinstance(data, dict) else None
        for action in actions or []:
            if isinstance(action, dict) and action.get("_class") == FLOW_GRAPH_ACTION_CLASS:
                nodes = action.get("nodes")
                return list(nodes) if isinstance(nodes, list) else None
        logger.debug(f"No flow graph action for {coords.job_name} #{coords.build_number}")
        return None

    def get_node_detail(self, coords: BuildCoordinates, node_id: str) -> Dict[str, Any]:
        data = self.get(f"{coords.build_path()}/execution/node/{node_id}/wfapi/", label="node_detail")
        return data if isinstance(data, dict) else {}
