"""
Unit tests for the confirmation gates.
"""

from unittest.mock import MagicMock

from vmss_deployer.core.gate import AutoApproveGate, ConsoleConfirmationGate
from vmss_deployer.core.protocols import ConfirmationGate, ProgressPhase
from vmss_deployer.core.resource import ResourceIdentity, ResourceType

RG = ResourceIdentity(ResourceType.RESOURCE_GROUP, "rg")


class TestAutoApproveGate:

    def test_always_proceeds(self):
        assert AutoApproveGate().should_proceed("Create Resource Group 'rg'") is True

    def test_satisfies_protocol(self):
        assert isinstance(AutoApproveGate(), ConfirmationGate)
        assert isinstance(ConsoleConfirmationGate(), ConfirmationGate)

    def test_report_progress_accepts_every_phase(self):
        gate = AutoApproveGate()
        for phase in ProgressPhase:
            gate.report_progress(RG, phase)


class TestConsoleConfirmationGate:

    def test_yes_and_no_ask_every_time(self):
        prompt = MagicMock(side_effect=["y", "n", "yes"])
        gate = ConsoleConfirmationGate(prompt)

        assert [gate.should_proceed(f"Change {i}") for i in range(3)] == [True, False, True]
        assert prompt.call_count == 3

    def test_all_stops_asking(self):
        prompt = MagicMock(side_effect=["a"])
        gate = ConsoleConfirmationGate(prompt)

        assert gate.should_proceed("first") is True
        assert gate.should_proceed("second") is True
        assert prompt.call_count == 1

    def test_none_declines_the_rest(self):
        prompt = MagicMock(side_effect=["none"])
        gate = ConsoleConfirmationGate(prompt)

        assert gate.should_proceed("first") is False
        assert gate.should_proceed("second") is False
        assert prompt.call_count == 1

    def test_invalid_answer_asks_again(self):
        prompt = MagicMock(side_effect=["maybe", " Y "])
        gate = ConsoleConfirmationGate(prompt)

        assert gate.should_proceed("Create Subnet 'default'") is True
        assert prompt.call_count == 2
        assert "Create Subnet 'default'" in prompt.call_args[0][0]

    def test_end_of_input_declines(self):
        gate = ConsoleConfirmationGate(MagicMock(side_effect=EOFError))

        assert gate.should_proceed("first") is False
        assert gate.should_proceed("second") is False
