"""LXCMachine resource types: spec, status, devices and condition names."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

API_VERSION = "infrastructure.cluster.x-k8s.io/v1alpha2"

MACHINE_FINALIZER = "lxcmachine.infrastructure.cluster.x-k8s.io"

# Conditions and reasons for the LXCCluster object.
LOAD_BALANCER_AVAILABLE_CONDITION = "LoadBalancerAvailable"
LOAD_BALANCER_PROVISIONING_FAILED_REASON = "LoadBalancerProvisioningFailed"
LOAD_BALANCER_PROVISIONING_ABORTED_REASON = "LoadBalancerProvisioningAbortedReason"

# Conditions and reasons for the LXCMachine object.
INSTANCE_PROVISIONED_CONDITION = "InstanceProvisioned"
WAITING_FOR_CLUSTER_INFRASTRUCTURE_REASON = "WaitingForClusterInfrastructure"
WAITING_FOR_BOOTSTRAP_DATA_REASON = "WaitingForBootstrapData"
CREATING_INSTANCE_REASON = "CreatingInstance"
INSTANCE_PROVISIONING_FAILED_REASON = "InstanceProvisioningFailed"
INSTANCE_PROVISIONING_ABORTED_REASON = "InstanceProvisioningAborted"
INSTANCE_DELETED_REASON = "InstanceDeleted"

INSTANCE_TYPES = frozenset({"container", "virtual-machine", "kind", ""})


def _omit_empty(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value not in ("", None, [], {}, False)}


@dataclass
class Condition:
    """An observation of the state of a resource."""

    type: str
    status: str
    severity: str = ""
    reason: str = ""
    message: str = ""
    last_transition_time: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = {"type": self.type, "status": self.status}
        data.update(
            _omit_empty(
                {
                    "severity": self.severity,
                    "lastTransitionTime": self.last_transition_time,
                    "reason": self.reason,
                    "message": self.message,
                }
            )
        )
        return data


@dataclass
class MachineAddress:
    """An address of a machine, with its kind (e.g. InternalIP)."""

    type: str
    address: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "address": self.address}


@dataclass
class ObjectMeta:
    """The subset of object metadata the provider uses."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty(
            {
                "name": self.name,
                "namespace": self.namespace,
                "labels": dict(self.labels),
                "annotations": dict(self.annotations),
            }
        )


@dataclass
class LXCMachineImageSource:
    """Where the image for an instance comes from."""

    name: str = ""
    fingerprint: str = ""
    server: str = ""
    protocol: str = ""

    def is_zero(self) -> bool:
        return not (self.name or self.fingerprint or self.server or self.protocol)

    def to_dict(self) -> dict[str, str]:
        data = {"name": self.name, "fingerprint": self.fingerprint}
        data.update(_omit_empty({"server": self.server, "protocol": self.protocol}))
        return data


class DeviceSpecError(ValueError):
    """A device override does not follow the "<device>,<key>=<value>" format."""


class Devices(list):
    """Device overrides written as "<device>,<key>=<value>,<key2>=<value2>"."""

    def to_map(self) -> dict[str, dict[str, str]]:
        """Parse the overrides into a mapping of device name to device config."""
        result: dict[str, dict[str, str]] = {}
        for spec in self:
            name, separator, args = spec.partition(",")
            if not separator:
                raise DeviceSpecError(
                    f'device spec "{spec}" is not using the expected '
                    '"<device>,<key>=<value>,<key2>=<value2>" format'
                )
            device = result.setdefault(name, {})
            for arg in args.split(","):
                key, equal, value = arg.partition("=")
                if not equal:
                    raise DeviceSpecError(
                        f'device argument "{arg}" of device spec "{spec}" is not using '
                        'the expected "<key>=<value>" format'
                    )
                device[key] = value
        return result


@dataclass
class LXCMachineSpec:
    """Desired state of an LXCMachine."""

    provider_id: str | None = None
    instance_type: str = ""
    flavor: str = ""
    profiles: list[str] = field(default_factory=list)
    devices: Devices = field(default_factory=Devices)
    config: dict[str, str] = field(default_factory=dict)
    image: LXCMachineImageSource = field(default_factory=LXCMachineImageSource)
    target: str = ""

    def __post_init__(self) -> None:
        if self.instance_type not in INSTANCE_TYPES:
            raise ValueError(
                f"instance type {self.instance_type!r} must be one of "
                "container, virtual-machine, kind or empty"
            )
        if not isinstance(self.devices, Devices):
            self.devices = Devices(self.devices)

    def to_dict(self) -> dict[str, Any]:
        data = _omit_empty(
            {
                "providerID": self.provider_id,
                "instanceType": self.instance_type,
                "flavor": self.flavor,
                "profiles": list(self.profiles),
                "devices": list(self.devices),
                "config": dict(self.config),
            }
        )
        data["image"] = self.image.to_dict()
        data["target"] = self.target
        return data


@dataclass
class LXCMachineStatus:
    """Observed state of an LXCMachine."""

    ready: bool = False
    load_balancer_configured: bool = False
    addresses: list[MachineAddress] = field(default_factory=list)
    conditions: list[Condition] = field(default_factory=list)
    v1beta2_conditions: list[Condition] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = _omit_empty(
            {"ready": self.ready, "loadBalancerConfigured": self.load_balancer_configured}
        )
        data["addresses"] = [address.to_dict() for address in self.addresses]
        if self.conditions:
            data["conditions"] = [condition.to_dict() for condition in self.conditions]
        if self.v1beta2_conditions is not None:
            data["v1beta2"] = _omit_empty(
                {"conditions": [condition.to_dict() for condition in self.v1beta2_conditions]}
            )
        return data


@dataclass
class LXCMachine:
    """A machine backed by an LXC instance."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: LXCMachineSpec = field(default_factory=LXCMachineSpec)
    status: LXCMachineStatus = field(default_factory=LXCMachineStatus)

    KIND = "LXCMachine"

    @property
    def instance_name(self) -> str:
        return self.metadata.name

    def expected_provider_id(self) -> str:
        """The provider ID that the Kubernetes node is expected to carry."""
        return f"lxc:///{self.instance_name}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": self.KIND,
            "metadata": self.metadata.to_dict(),
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }


@dataclass
class LXCMachineList:
    """A list of LXCMachine objects."""

    items: list[LXCMachine] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": "LXCMachineList",
            "metadata": {},
            "items": [item.to_dict() for item in self.items],
        }