# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Environment-driven settings for the stage tree CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .policy import DEFAULT_POLICY, NodeFilterPolicy, load_filter_policy

_TRUTHY = {"1", "true", "yes", "on"}


def env_flag(value: Optional[str]) -> bool:
    return str(value or "").strip().lower() in _TRUTHY


@dataclass(frozen=True)
class StagesSettings:
    base_url: str = ""
    user: Optional[str] = None
    token: Optional[str] = None
    supplement: bool = False
    policy_path: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StagesSettings":
        env = os.environ if environ is None else environ
        policy = env.get("JENKINS_STAGES_POLICY")
        return cls(
            base_url=str(env.get("JENKINS_URL", "") or "").rstrip("/"),
            user=env.get("JENKINS_USER") or None,
            token=env.get("JENKINS_TOKEN") or None,
            supplement=env_flag(env.get("SUPPLEMENT_NODE_DATA")),
            policy_path=Path(policy).expanduser() if policy else None,
        )

    def load_policy(self) -> NodeFilterPolicy:
        if self.policy_path is None:
            return DEFAULT_POLICY
        return load_filter_policy(self.policy_path)
