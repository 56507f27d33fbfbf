import asyncio
import copy
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from vmss_deployer.core.context import ScaleSetParameters
from vmss_deployer.core.exceptions import TransportError
from vmss_deployer.core.protocols import ProgressPhase
from vmss_deployer.core.resource import ResourceIdentity
from vmss_deployer.core.state import ResourceState
from vmss_deployer.providers.azure.images import resolve_image

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"


class FakeControlPlane:
    """
    In-memory control plane.

    Stores every written spec as the resource representation (minus the
    location and the administrator password, like the real API), records
    each call and can be told to fail reads or writes for given identities.
    """

    def __init__(self, subscription_id: str = SUBSCRIPTION_ID):
        self._subscription_id = subscription_id
        self.resources: Dict[ResourceIdentity, ResourceState] = {}
        self.calls: List[Tuple[str, ResourceIdentity]] = []
        self.specs: Dict[ResourceIdentity, Dict[str, Any]] = {}
        self.fail_writes: Dict[ResourceIdentity, str] = {}
        self.fail_reads: Dict[ResourceIdentity, str] = {}
        self.on_write: Optional[Callable[[ResourceIdentity], None]] = None
        self.active = 0
        self.max_active = 0

    @property
    def subscription_id(self) -> str:
        return self._subscription_id

    def seed(self, identity: ResourceIdentity, properties: Optional[Dict[str, Any]] = None,
             location: Optional[str] = None) -> ResourceState:
        state = ResourceState(
            identity=identity,
            properties=dict(properties or {}),
            location=location,
            resource_id=identity.resource_id(self._subscription_id),
        )
        self.resources[identity] = state
        return state

    def calls_of(self, action: str) -> List[ResourceIdentity]:
        return [identity for name, identity in self.calls if name == action]

    async def read(self, identity: ResourceIdentity) -> Optional[ResourceState]:
        self.calls.append(("read", identity))
        await asyncio.sleep(0)
        if identity in self.fail_reads:
            raise TransportError(self.fail_reads[identity])
        return copy.deepcopy(self.resources.get(identity))

    async def _write(self, action: str, identity: ResourceIdentity, spec: Dict[str, Any]) -> ResourceState:
        self.calls.append((action, identity))
        self.specs[identity] = dict(spec)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.01)
            if self.on_write is not None:
                self.on_write(identity)
            if identity in self.fail_writes:
                raise TransportError(self.fail_writes[identity])
            properties = {
                key: value for key, value in spec.items()
                if key not in ("location", "admin_password")
            }
            existing = self.resources.get(identity)
            state = ResourceState(
                identity=identity,
                properties=properties,
                location=spec.get("location") or (existing.location if existing else None),
                resource_id=identity.resource_id(self._subscription_id),
            )
            self.resources[identity] = state
            return copy.deepcopy(state)
        finally:
            self.active -= 1

    async def create(self, identity: ResourceIdentity, spec: Dict[str, Any]) -> ResourceState:
        return await self._write("create", identity, spec)

    async def update(self, identity: ResourceIdentity, spec: Dict[str, Any]) -> ResourceState:
        return await self._write("update", identity, spec)


class FakeLabelGenerator:
    """Candidates "{seed}-{attempt}"; labels in `taken` are reported unavailable."""

    def __init__(self, taken=()):
        self.taken = set(taken)
        self.checked: List[Tuple[str, str]] = []
        self.error: Optional[str] = None

    def generate_candidate(self, seed: str, attempt: int) -> str:
        return f"{seed}-{attempt}"

    async def check_available(self, candidate: str, location: str) -> bool:
        self.checked.append((candidate, location))
        if self.error:
            raise TransportError(self.error)
        return candidate not in self.taken


class RecordingGate:
    """Gate answering from a function of the description, recording everything."""

    def __init__(self, decide: Callable[[str], bool] = lambda description: True):
        self.decide = decide
        self.asked: List[str] = []
        self.progress: List[Tuple[ResourceIdentity, ProgressPhase]] = []

    def should_proceed(self, description: str) -> bool:
        self.asked.append(description)
        return self.decide(description)

    def report_progress(self, identity: ResourceIdentity, phase: ProgressPhase) -> None:
        self.progress.append((identity, phase))


@pytest.fixture
def fake_client():
    return FakeControlPlane()


@pytest.fixture
def label_generator():
    return FakeLabelGenerator()


@pytest.fixture
def recording_gate():
    return RecordingGate()


@pytest.fixture
def linux_params():
    """Ubuntu scale set "web" with two backend ports; names not yet defaulted."""
    return ScaleSetParameters(
        vm_scale_set_name="web",
        admin_username="azureuser",
        admin_password="S3cret!Passw0rd",
        image_name="UbuntuLTS",
        backend_ports=(80, 8080),
    )


@pytest.fixture
def ubuntu_image():
    return resolve_image("UbuntuLTS")
