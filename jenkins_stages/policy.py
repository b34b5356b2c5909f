# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Display allow/block policy for stage tree nodes.

Matching is literal and case-sensitive (`substring in display_name`). The block
list always wins over the allow list.

Policy file format (YAML):

    allowed:
      - "Start of Pipeline"
      - "Stage:"
    blocked:
      - "Print Message"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence, Tuple

import yaml

from .exceptions import PolicyConfigError
from .stage_types import NodeKind

DEFAULT_ALLOWED: Tuple[str, ...] = ("Start of Pipeline", "Branch:", "Stage : Start", "Stage:")
DEFAULT_BLOCKED: Tuple[str, ...] = ("Determine current directory", "Print Message")


@dataclass(frozen=True)
class NodeFilterPolicy:
    allowed: Tuple[str, ...] = DEFAULT_ALLOWED
    blocked: Tuple[str, ...] = DEFAULT_BLOCKED

    def allows(self, display_name: str, kind: NodeKind) -> bool:
        name = str(display_name or "")
        if any(s in name for s in self.blocked):
            return False
        return kind == NodeKind.ATOMIC_STEP or any(s in name for s in self.allowed)


DEFAULT_POLICY = NodeFilterPolicy()


def _string_tuple(value: Any, *, key: str, default: Sequence[str]) -> Tuple[str, ...]:
    if value is None:
        return tuple(default)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise PolicyConfigError(f"policy key {key!r} must be a list of strings")
    return tuple(value)


def policy_from_mapping(data: Any) -> NodeFilterPolicy:
    if data is None:
        return DEFAULT_POLICY
    if not isinstance(data, dict):
        raise PolicyConfigError("policy must be a mapping with 'allowed' and/or 'blocked' lists")
    return NodeFilterPolicy(
        allowed=_string_tuple(data.get("allowed"), key="allowed", default=DEFAULT_ALLOWED),
        blocked=_string_tuple(data.get("blocked"), key="blocked", default=DEFAULT_BLOCKED),
    )


def load_filter_policy(path: Path) -> NodeFilterPolicy:
    """Load a policy from a YAML file; missing keys keep the defaults."""
    try:
        text = Path(path).expanduser().read_text(encoding="utf-8")
    except OSError as e:
        raise PolicyConfigError(f"cannot read policy file {path}: {e}") from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise PolicyConfigError(f"invalid YAML in policy file {path}: {e}") from e
    return policy_from_mapping(data)
