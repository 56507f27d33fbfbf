"""
Unit tests for the convergence executor.

Tests cover:
- Dependency-ordered creation and parallel start of independent nodes
- Idempotent second run (no mutations)
- Updates of drifted fields only
- Partial failure containment
- Confirmation gate decline
- Cancellation
"""

import asyncio
from dataclasses import replace

import pytest

from conftest import RecordingGate
from vmss_deployer.core.exceptions import (
    ConfigurationError,
    DeploymentCancelledError,
    RemoteMutationError,
)
from vmss_deployer.core.executor import ConvergenceExecutor, NodeOutcome, NodeStatus
from vmss_deployer.core.fetcher import fetch_current
from vmss_deployer.core.protocols import ProgressPhase
from vmss_deployer.core.resolver import resolve_target
from vmss_deployer.core.resource import PlannedAction, ResourceType
from vmss_deployer.core.state import StateSnapshot
from vmss_deployer.core.topology import build_graph


@pytest.fixture
def params(linux_params):
    return linux_params.with_defaults()


@pytest.fixture
def graph(params, ubuntu_image):
    return build_graph(params, ubuntu_image)


def _identity(graph, resource_type):
    return next(node.identity for node in graph if node.identity.resource_type == resource_type)


def _converge(params, graph, client, label_generator, gate=None, cancel_event_factory=None, max_parallel=8):
    async def run():
        cancel_event = cancel_event_factory() if cancel_event_factory else None
        current = await fetch_current(graph, client)
        _, target = await resolve_target(params, graph, current, client, label_generator)
        executor = ConvergenceExecutor(graph, client, gate, cancel_event, max_parallel)
        return await executor.run(current, target)

    return asyncio.run(run())


class TestConvergence:

    def test_first_run_creates_everything_in_dependency_order(self, params, graph, fake_client, label_generator):
        result = _converge(params, graph, fake_client, label_generator)

        assert result.succeeded
        assert len(result.with_outcome(NodeOutcome.CREATED)) == len(graph)

        created = fake_client.calls_of("create")
        for node in graph:
            for dependency in node.dependencies:
                assert created.index(dependency) < created.index(node.identity)

    def test_final_view_holds_every_created_resource(self, params, graph, fake_client, label_generator):
        result = _converge(params, graph, fake_client, label_generator)

        for node in graph:
            assert result.snapshot.exists(node.identity)
        vmss = _identity(graph, ResourceType.VIRTUAL_MACHINE_SCALE_SET)
        assert "admin_password" not in result.snapshot[vmss].properties

    def test_password_only_sent_on_create(self, params, graph, fake_client, label_generator):
        _converge(params, graph, fake_client, label_generator)

        vmss = _identity(graph, ResourceType.VIRTUAL_MACHINE_SCALE_SET)
        assert fake_client.specs[vmss]["admin_password"] == "S3cret!Passw0rd"

    def test_second_run_is_a_no_op(self, params, graph, fake_client, label_generator):
        _converge(params, graph, fake_client, label_generator)
        fake_client.calls.clear()

        result = _converge(params, graph, fake_client, label_generator)

        assert result.succeeded
        assert fake_client.calls_of("create") == []
        assert fake_client.calls_of("update") == []
        assert len(result.with_outcome(NodeOutcome.SATISFIED)) == len(graph)
        assert all(r.action == PlannedAction.SKIP for r in result.nodes.values())

    def test_drifted_node_is_updated_alone(self, params, ubuntu_image, fake_client, label_generator):
        graph = build_graph(params, ubuntu_image)
        _converge(params, graph, fake_client, label_generator)
        fake_client.calls.clear()

        scaled = replace(params, instance_count=3)
        scaled_graph = build_graph(scaled, ubuntu_image)
        result = _converge(scaled, scaled_graph, fake_client, label_generator)

        vmss = _identity(scaled_graph, ResourceType.VIRTUAL_MACHINE_SCALE_SET)
        nat_pool = _identity(scaled_graph, ResourceType.INBOUND_NAT_POOL)
        assert set(fake_client.calls_of("update")) == {vmss, nat_pool}
        assert result.nodes[vmss].changes["capacity"] == (2, 3)
        assert "admin_password" not in fake_client.specs[vmss]
        assert "admin_username" not in fake_client.specs[vmss]

    def test_independent_nodes_run_concurrently(self, params, graph, fake_client, label_generator):
        _converge(params, graph, fake_client, label_generator)
        assert fake_client.max_active > 1

    def test_max_parallel_is_respected(self, params, graph, fake_client, label_generator):
        result = _converge(params, graph, fake_client, label_generator, max_parallel=1)

        assert result.succeeded
        assert fake_client.max_active == 1

    def test_missing_target_state_rejected(self, graph, fake_client):
        executor = ConvergenceExecutor(graph, fake_client)

        with pytest.raises(ConfigurationError, match="No target state"):
            asyncio.run(executor.run(StateSnapshot(), StateSnapshot()))

    def test_max_parallel_must_be_positive(self, graph, fake_client):
        with pytest.raises(ValueError):
            ConvergenceExecutor(graph, fake_client, max_parallel=0)


class TestPartialFailure:

    def test_failure_short_circuits_dependents_only(self, params, graph, fake_client, label_generator):
        pip = _identity(graph, ResourceType.PUBLIC_IP_ADDRESS)
        fake_client.fail_writes[pip] = "quota exceeded"

        result = _converge(params, graph, fake_client, label_generator)

        assert not result.succeeded
        assert isinstance(result.nodes[pip].error, RemoteMutationError)
        assert "quota exceeded" in str(result.nodes[pip].error)

        failed = {r.identity for r in result.failed}
        assert failed == {pip} | graph.dependents(pip)

        created = set(fake_client.calls_of("create"))
        assert created.isdisjoint(graph.dependents(pip))
        assert _identity(graph, ResourceType.SUBNET) in created
        assert _identity(graph, ResourceType.BACKEND_ADDRESS_POOL) in created
        assert result.nodes[_identity(graph, ResourceType.SUBNET)].status == NodeStatus.DONE
        assert all(node_result.is_terminal for node_result in result.nodes.values())

    def test_unexpected_client_error_is_contained(self, params, graph, fake_client, label_generator):
        pip = _identity(graph, ResourceType.PUBLIC_IP_ADDRESS)

        def on_write(identity):
            if identity == pip:
                raise RuntimeError("unexpected SDK failure")

        fake_client.on_write = on_write

        result = _converge(params, graph, fake_client, label_generator)

        assert result.nodes[pip].status == NodeStatus.FAILED
        assert isinstance(result.nodes[pip].error, RemoteMutationError)
        assert isinstance(result.nodes[pip].error.original_error, RuntimeError)
        assert result.nodes[_identity(graph, ResourceType.SUBNET)].status == NodeStatus.DONE
        assert {r.identity for r in result.failed} == {pip} | graph.dependents(pip)

    def test_failed_node_keeps_pre_run_state_in_view(self, params, graph, fake_client, label_generator):
        vmss = _identity(graph, ResourceType.VIRTUAL_MACHINE_SCALE_SET)
        fake_client.fail_writes[vmss] = "SkuNotAvailable"

        result = _converge(params, graph, fake_client, label_generator)

        assert result.nodes[vmss].outcome == NodeOutcome.FAILED
        assert result.snapshot.get(vmss) is None
        assert len(result.with_outcome(NodeOutcome.CREATED)) == len(graph) - 1

    def test_progress_reports_failure(self, params, graph, fake_client, label_generator, recording_gate):
        pip = _identity(graph, ResourceType.PUBLIC_IP_ADDRESS)
        fake_client.fail_writes[pip] = "boom"

        _converge(params, graph, fake_client, label_generator, gate=recording_gate)

        assert (pip, ProgressPhase.STARTED) in recording_gate.progress
        assert (pip, ProgressPhase.FAILED) in recording_gate.progress


class TestConfirmationGate:

    def test_gate_asked_once_per_mutation(self, params, graph, fake_client, label_generator, recording_gate):
        _converge(params, graph, fake_client, label_generator, gate=recording_gate)

        assert len(recording_gate.asked) == len(graph)
        assert "Create Virtual Machine Scale Set 'web'" in recording_gate.asked

    def test_declined_node_is_skipped_with_dependents(self, params, graph, fake_client, label_generator):
        gate = RecordingGate(lambda description: not description.startswith("Create Load Balancer"))

        result = _converge(params, graph, fake_client, label_generator, gate=gate)

        lb = _identity(graph, ResourceType.LOAD_BALANCER)
        assert result.nodes[lb].status == NodeStatus.SKIPPED
        assert result.nodes[lb].outcome == NodeOutcome.SKIPPED_BY_USER
        assert (lb, ProgressPhase.SKIPPED) in gate.progress
        for dependent in graph.dependents(lb):
            assert result.nodes[dependent].status == NodeStatus.FAILED
        assert lb not in fake_client.calls_of("create")
        assert result.nodes[_identity(graph, ResourceType.SUBNET)].outcome == NodeOutcome.CREATED

    def test_no_questions_when_nothing_to_do(self, params, graph, fake_client, label_generator, recording_gate):
        _converge(params, graph, fake_client, label_generator)

        _converge(params, graph, fake_client, label_generator, gate=recording_gate)

        assert recording_gate.asked == []


class TestCancellation:

    def test_cancel_during_run_lets_in_flight_finish(self, params, graph, fake_client, label_generator):
        holder = {}

        def factory():
            holder["event"] = asyncio.Event()
            return holder["event"]

        rg = _identity(graph, ResourceType.RESOURCE_GROUP)

        def on_write(identity):
            if identity == rg:
                holder["event"].set()

        fake_client.on_write = on_write

        result = _converge(params, graph, fake_client, label_generator, cancel_event_factory=factory)

        assert result.cancelled
        assert result.nodes[rg].outcome == NodeOutcome.CREATED
        assert fake_client.calls_of("create") == [rg]
        for identity, node_result in result.nodes.items():
            if identity != rg:
                assert node_result.outcome == NodeOutcome.CANCELLED
                assert isinstance(node_result.error, DeploymentCancelledError)

    def test_cancel_before_start_applies_nothing(self, params, graph, fake_client, label_generator):
        def factory():
            event = asyncio.Event()
            event.set()
            return event

        result = _converge(params, graph, fake_client, label_generator, cancel_event_factory=factory)

        assert result.cancelled
        assert fake_client.calls_of("create") == []
        assert len(result.with_outcome(NodeOutcome.CANCELLED)) == len(graph)

    def test_cancel_marks_unrelated_unstarted_node_cancelled(self, params, graph, fake_client, label_generator):
        holder = {}

        def factory():
            holder["event"] = asyncio.Event()
            return holder["event"]

        vnet = _identity(graph, ResourceType.VIRTUAL_NETWORK)
        pip = _identity(graph, ResourceType.PUBLIC_IP_ADDRESS)

        def on_write(identity):
            if identity == vnet:
                holder["event"].set()

        fake_client.on_write = on_write

        result = _converge(
            params, graph, fake_client, label_generator, cancel_event_factory=factory, max_parallel=1
        )

        assert result.cancelled
        assert result.nodes[vnet].outcome == NodeOutcome.CREATED
        assert result.nodes[pip].outcome == NodeOutcome.CANCELLED
        assert result.nodes[pip].status == NodeStatus.FAILED
        assert pip not in fake_client.calls_of("create")
