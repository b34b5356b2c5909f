#!/usr/bin/env python3
"""Module entrypoint for `jenkins_stages`.

Usage:
  - `python3 -m jenkins_stages my-pipeline 123 --base-url https://jenkins.example.com`
"""

from __future__ import annotations

from .cli import _cli


if __name__ == "__main__":
    raise SystemExit(_cli())
