"""
CLI wrapper for jenkins_stages.

We keep CLI glue in its own module so the graph passes (`graph.py`) and the client
stay easy to reuse from dashboards.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

import argparse
import json
import logging
import sys

from .client import JenkinsAPIClient
from .config import StagesSettings
from .enrich import DEFAULT_MAX_WORKERS
from .exceptions import JenkinsAPIError, PolicyConfigError, StageGraphError
from .render import render_stage_tree
from .stages import get_jenkins_stages
from .stage_types import BuildCoordinates

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_READY = 1
EXIT_ERROR = 2


def _cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Show the stage tree of a Jenkins pipeline build.",
        epilog="Examples:\n"
               "  %(prog)s my-pipeline 123 --base-url https://jenkins.example.com\n"
               "  %(prog)s folder/my-pipeline 123 --supplement --json",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("job_name", help="Job name; use 'folder/job' for foldered jobs.")
    parser.add_argument("build_number", type=int, help="Build number.")
    parser.add_argument("--base-url", default="", help="Jenkins base URL (default: $JENKINS_URL).")
    parser.add_argument(
        "--supplement",
        action="store_true",
        help="Fetch per-step details (description, duration, log link). Also enabled by $SUPPLEMENT_NODE_DATA.",
    )
    parser.add_argument("--policy", default="", help="YAML file with 'allowed'/'blocked' substring lists (default: $JENKINS_STAGES_POLICY).")
    parser.add_argument("--max-workers", type=int, default=DEFAULT_MAX_WORKERS, help=f"Concurrent detail fetches (default: {DEFAULT_MAX_WORKERS})")
    parser.add_argument("--json", action="store_true", help="Print the tree as JSON.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")

    settings = StagesSettings.from_env()
    if args.base_url:
        settings = replace(settings, base_url=str(args.base_url).rstrip("/"))
    if args.supplement:
        settings = replace(settings, supplement=True)
    if args.policy:
        settings = replace(settings, policy_path=Path(args.policy).expanduser())

    if not settings.base_url:
        logger.error("ERROR: no Jenkins base URL (use --base-url or set JENKINS_URL)")
        return EXIT_ERROR

    try:
        policy = settings.load_policy()
    except PolicyConfigError as e:
        logger.error(f"ERROR: {e}")
        return EXIT_ERROR

    api = JenkinsAPIClient(settings.base_url, user=settings.user, token=settings.token)
    coords = BuildCoordinates(base_url=settings.base_url, job_name=args.job_name, build_number=args.build_number)

    try:
        root = get_jenkins_stages(
            api, coords, policy=policy, supplement=settings.supplement, max_workers=int(args.max_workers)
        )
    except JenkinsAPIError as e:
        logger.error(f"ERROR: {e}")
        return EXIT_ERROR
    except StageGraphError as e:
        logger.error(f"ERROR: malformed flow graph: {e}")
        return EXIT_ERROR
    finally:
        logger.debug(f"REST stats: {api.get_rest_call_stats()}")

    if root is None:
        logger.info(f"(no flow graph yet for {args.job_name} #{args.build_number})")
        return EXIT_NOT_READY

    if args.json:
        sys.stdout.write(json.dumps(root.to_dict(), indent=2) + "\n")
    else:
        sys.stdout.write("\n".join(render_stage_tree(root)) + "\n")
    return EXIT_OK
