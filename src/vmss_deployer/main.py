"""
VM Scale Set Deployer - CLI Entry Point.

Usage:
    vmss-deployer deploy <project_path> [--yes] [--max-parallel N]

The project directory holds config.json (scale set parameters) and
config_credentials_azure.json (subscription, service principal and VM
administrator credential).
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import constants as CONSTANTS
from .core.exceptions import DeploymentCancelledError, DeploymentError
from .deployer import DeploymentResult, run_deployment
from .logger import logger, print_stack_trace


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vmss-deployer",
        description="Create or update an Azure VM scale set with its network and load balancer"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", help="Converge the scale set described by a project directory")
    deploy.add_argument("project_path", type=Path, help="Directory containing config.json")
    deploy.add_argument("--yes", "-y", action="store_true", help="Apply every change without asking")
    deploy.add_argument(
        "--max-parallel",
        type=int,
        default=CONSTANTS.MAX_PARALLEL_OPERATIONS,
        help=f"Maximum concurrent create/update operations (default: {CONSTANTS.MAX_PARALLEL_OPERATIONS})"
    )
    return parser


def print_report(result: DeploymentResult) -> None:
    """Print the per-resource outcome and how to reach the instances."""
    print("\nResources:")
    for node in result.convergence.nodes.values():
        outcome = node.outcome.value if node.outcome else node.status.value
        line = f"  {outcome:<18} {node.identity}"
        if node.error is not None:
            line += f"  ({node.error})"
        print(line)

    if result.scale_set is None:
        print("\nScale set was not created.")
        return

    print(f"\nFully qualified domain name: {result.fqdn}")
    print(f"Connect with: {result.connection_string}")
    print(f"<port> is in range {result.port_range}")


def handle_deploy(args: argparse.Namespace) -> int:
    if args.max_parallel < 1:
        logger.error("--max-parallel must be at least 1")
        return 2

    result = run_deployment(args.project_path, auto_approve=args.yes, max_parallel=args.max_parallel)
    print_report(result)

    if result.convergence.cancelled:
        logger.warning("Deployment cancelled before all resources were applied")
        return 130
    if not result.succeeded:
        logger.error(f"✗ Deployment incomplete: {result.convergence.summary()}")
        return 1
    logger.info("✓ Deployment complete")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.command == "deploy":
            return handle_deploy(args)
    except DeploymentCancelledError as e:
        logger.warning(f"✗ {e}")
        return 130
    except DeploymentError as e:
        logger.error(f"✗ {e}")
        print_stack_trace()
        return 1
    return 2


if __name__ == "__main__":
    sys.exit(main())
