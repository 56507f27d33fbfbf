"""
Scale set deployment pipeline.

Stages:
    1. Resolve the image alias and build the resource graph (no remote calls)
    2. Fetch the current state of every node
    3. Resolve the target state (location, DNS label, resource ids)
    4. Converge: create/update in dependency order behind the confirmation gate
    5. Report: FQDN, connection hint and the first inbound NAT port range

deploy_scale_set() is the async pipeline with every collaborator passed in;
run_deployment() wires it to a project directory and the Azure SDK.
"""

import asyncio
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from . import constants as CONSTANTS
from .core.config_loader import load_credentials, load_mode, load_scale_set_parameters
from .core.context import ScaleSetParameters
from .core.executor import ConvergenceExecutor, ConvergenceResult
from .core.fetcher import fetch_current
from .core.gate import AutoApproveGate, ConsoleConfirmationGate
from .core.protocols import ConfirmationGate, ControlPlaneClient, NameGenerator
from .core.resolver import resolve_target
from .core.state import ResourceState, StateSnapshot
from .core.topology import allocate_nat_port_ranges, build_graph, scale_set_identity
from .logger import configure_logger, logger
from .providers.azure import AzureControlPlaneClient, AzureDnsLabelGenerator, AzureProvider
from .providers.azure.images import resolve_image
from .providers.azure.naming import AzureNaming


@dataclass
class DeploymentResult:
    """
    Outcome of one deployment run.

    Attributes:
        parameters: Parameters after defaulting and target resolution
        convergence: Per-node results and the final view
        scale_set: Final representation of the scale set (pre-run state if it failed)
        fqdn: Fully qualified domain name of the public IP
        connection_string: How to connect to an instance, with "<port>" as placeholder
        port_range: Frontend port range of the first NAT pool, e.g. "50000..50004"
    """

    parameters: ScaleSetParameters
    convergence: ConvergenceResult
    scale_set: Optional[ResourceState]
    fqdn: str
    connection_string: str
    port_range: str

    @property
    def snapshot(self) -> StateSnapshot:
        return self.convergence.snapshot

    @property
    def succeeded(self) -> bool:
        return self.convergence.succeeded


async def deploy_scale_set(
    params: ScaleSetParameters,
    client: ControlPlaneClient,
    label_generator: NameGenerator,
    gate: Optional[ConfirmationGate] = None,
    cancel_event: Optional[asyncio.Event] = None,
    max_parallel: int = CONSTANTS.MAX_PARALLEL_OPERATIONS
) -> DeploymentResult:
    """
    Converge a scale set and everything it needs.

    Args:
        params: Desired parameters
        client: Control-plane client
        label_generator: DNS label generator
        gate: Confirmation gate (auto-approve when None)
        cancel_event: Optional cancellation signal
        max_parallel: Upper bound on concurrent mutations

    Returns:
        DeploymentResult

    Raises:
        ConfigurationError: Invalid parameters (nothing applied)
        RemoteReadError: Current state could not be read (nothing applied)
        GenerationExhaustedError: No free DNS label found (nothing applied)
        DeploymentCancelledError: Cancelled before convergence started
    """
    image = resolve_image(params.image_name)
    params = params.with_defaults()
    graph = build_graph(params, image)

    current = await fetch_current(graph, client, cancel_event)
    resolved, target = await resolve_target(params, graph, current, client, label_generator, cancel_event)
    logger.info(f"Target location: {resolved.location}, DNS label: {resolved.domain_name_label}")

    executor = ConvergenceExecutor(graph, client, gate, cancel_event, max_parallel)
    convergence = await executor.run(current, target)

    # The view starts from the current snapshot, so a failed scale set
    # still reports its pre-run representation.
    scale_set = convergence.snapshot.get(scale_set_identity(resolved))

    fqdn = AzureNaming.fqdn(resolved.domain_name_label, resolved.location)
    nat_ports = image.update_ports(resolved.nat_backend_ports)
    first_range = allocate_nat_port_ranges(nat_ports, resolved.instance_count)[0]

    return DeploymentResult(
        parameters=resolved,
        convergence=convergence,
        scale_set=scale_set,
        fqdn=fqdn,
        connection_string=image.connection_string(fqdn, resolved.admin_username),
        port_range=str(first_range),
    )


async def _deploy_until_interrupted(
    params: ScaleSetParameters,
    client: ControlPlaneClient,
    label_generator: NameGenerator,
    gate: ConfirmationGate,
    max_parallel: int
) -> DeploymentResult:
    """Run deploy_scale_set with Ctrl+C mapped to graceful cancellation."""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    handler_installed = True
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        handler_installed = False
        logger.debug("Signal handlers not supported; Ctrl+C will abort immediately")

    try:
        return await deploy_scale_set(params, client, label_generator, gate, cancel_event, max_parallel)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def run_deployment(
    project_path: Path,
    auto_approve: bool = False,
    max_parallel: int = CONSTANTS.MAX_PARALLEL_OPERATIONS,
    input_func: Callable[[str], str] = input
) -> DeploymentResult:
    """
    Deploy the scale set described by a project directory.

    Args:
        project_path: Directory holding config.json and config_credentials_azure.json
        auto_approve: Skip the confirmation prompts
        max_parallel: Upper bound on concurrent mutations
        input_func: Prompt function for the interactive gate

    Returns:
        DeploymentResult
    """
    configure_logger(load_mode(project_path))

    params = load_scale_set_parameters(project_path)
    credentials = load_credentials(project_path)
    params = params.with_credentials(
        credentials.get("admin_username", ""),
        credentials.get("admin_password", ""),
    )

    provider = AzureProvider()
    provider.initialize_clients(credentials)

    gate = AutoApproveGate() if auto_approve else ConsoleConfirmationGate(input_func)
    return asyncio.run(_deploy_until_interrupted(
        params,
        AzureControlPlaneClient(provider),
        AzureDnsLabelGenerator(provider),
        gate,
        max_parallel,
    ))
