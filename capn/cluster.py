"""LXCCluster resource types: spec, load balancer modes and status."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any

from capn.machine import API_VERSION, Condition, LXCMachineImageSource, ObjectMeta

CLUSTER_FINALIZER = "lxccluster.infrastructure.cluster.x-k8s.io"


@dataclass(frozen=True)
class GroupVersion:
    """An API group together with its version."""

    group: str
    version: str

    def __str__(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


GROUP_VERSION = GroupVersion(group="infrastructure.cluster.x-k8s.io", version="v1alpha2")


@dataclass(frozen=True)
class NamespacedName:
    """The namespace and name that identify an object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class APIEndpoint:
    """The endpoint of the control plane."""

    host: str = ""
    port: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"host": self.host, "port": self.port}


@dataclass
class SecretRef:
    """A reference to a secret in the same namespace as its parent."""

    name: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name}


@dataclass
class LXCLoadBalancerMachineSpec:
    """Configuration of the instance that hosts an "lxc" or "oci" load balancer."""

    flavor: str = ""
    profiles: list[str] = field(default_factory=list)
    image: LXCMachineImageSource = field(default_factory=LXCMachineImageSource)
    target: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.flavor:
            data["flavor"] = self.flavor
        if self.profiles:
            data["profiles"] = list(self.profiles)
        data["image"] = self.image.to_dict()
        if self.target:
            data["target"] = self.target
        return data


@dataclass
class LXCLoadBalancerInstance:
    """A load balancer running on a dedicated instance with haproxy."""

    instance_spec: LXCLoadBalancerMachineSpec = field(default_factory=LXCLoadBalancerMachineSpec)
    custom_haproxy_config_template: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"instanceSpec": self.instance_spec.to_dict()}
        if self.custom_haproxy_config_template:
            data["customHAProxyConfigTemplate"] = self.custom_haproxy_config_template
        return data


@dataclass
class LXCLoadBalancerOVN:
    """A network load balancer on an OVN network."""

    network_name: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"networkName": self.network_name} if self.network_name else {}


@dataclass
class LXCLoadBalancerKubeVIP:
    """kube-vip configured on the control plane instances."""

    image: str = ""
    interface: str = ""
    kubeconfig_path: str = ""
    manifest_path: str = ""

    def to_dict(self) -> dict[str, str]:
        fields = {
            "image": self.image,
            "interface": self.interface,
            "kubeconfigPath": self.kubeconfig_path,
            "manifestPath": self.manifest_path,
        }
        return {key: value for key, value in fields.items() if value}


@dataclass
class LXCLoadBalancerExternal:
    """No load balancer is created; one is provided from outside."""

    def to_dict(self) -> dict[str, str]:
        return {}


class LoadBalancerConfigError(ValueError):
    """The load balancer configuration does not set exactly one mode."""


@dataclass
class LXCClusterLoadBalancer:
    """Load balancer configuration; exactly one mode must be set."""

    lxc: LXCLoadBalancerInstance | None = None
    oci: LXCLoadBalancerInstance | None = None
    ovn: LXCLoadBalancerOVN | None = None
    kube_vip: LXCLoadBalancerKubeVIP | None = None
    external: LXCLoadBalancerExternal | None = None

    def _modes(self) -> dict[str, Any]:
        return {
            "lxc": self.lxc,
            "oci": self.oci,
            "ovn": self.ovn,
            "kubeVIP": self.kube_vip,
            "external": self.external,
        }

    def validate(self) -> str:
        """Check that exactly one mode is set and return its name."""
        chosen = [name for name, value in self._modes().items() if value is not None]
        if not chosen:
            raise LoadBalancerConfigError("load balancer must set one of " + ", ".join(self._modes()))
        if len(chosen) > 1:
            raise LoadBalancerConfigError(
                "load balancer must set only one mode, got " + ", ".join(chosen)
            )
        return chosen[0]

    def to_dict(self) -> dict[str, Any]:
        return {name: value.to_dict() for name, value in self._modes().items() if value is not None}


@dataclass
class LXCClusterSpec:
    """Desired state of an LXCCluster."""

    control_plane_endpoint: APIEndpoint = field(default_factory=APIEndpoint)
    secret_ref: SecretRef = field(default_factory=SecretRef)
    load_balancer: LXCClusterLoadBalancer = field(default_factory=LXCClusterLoadBalancer)
    unprivileged: bool = False
    skip_default_kubeadm_profile: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "controlPlaneEndpoint": self.control_plane_endpoint.to_dict(),
            "secretRef": self.secret_ref.to_dict(),
            "loadBalancer": self.load_balancer.to_dict(),
            "unprivileged": self.unprivileged,
            "skipDefaultKubeadmProfile": self.skip_default_kubeadm_profile,
        }


@dataclass
class LXCClusterStatus:
    """Observed state of an LXCCluster."""

    ready: bool = False
    conditions: list[Condition] = field(default_factory=list)
    v1beta2_conditions: list[Condition] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"ready": self.ready}
        if self.conditions:
            data["conditions"] = [condition.to_dict() for condition in self.conditions]
        if self.v1beta2_conditions is not None:
            v1beta2: dict[str, Any] = {}
            if self.v1beta2_conditions:
                v1beta2["conditions"] = [c.to_dict() for c in self.v1beta2_conditions]
            data["v1beta2"] = v1beta2
        return data


@dataclass
class LXCCluster:
    """Cluster infrastructure backed by an LXC server."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: LXCClusterSpec = field(default_factory=LXCClusterSpec)
    status: LXCClusterStatus = field(default_factory=LXCClusterStatus)

    KIND = "LXCCluster"

    def secret_key(self) -> NamespacedName:
        """The key of the secret holding the LXC server credentials."""
        return NamespacedName(namespace=self.metadata.namespace, name=self.spec.secret_ref.name)

    def load_balancer_instance_name(self) -> str:
        """The instance name of the cluster load balancer.

        A short digest of the namespace keeps names unique across namespaces
        while staying within the 63 character limit of instance names.
        """
        digest = hashlib.sha256(self.metadata.namespace.encode()).digest()[:3].hex()[:5]
        return f"{self.metadata.name}-{digest}-lb"

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": self.KIND,
            "metadata": self.metadata.to_dict(),
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }


@dataclass
class LXCClusterList:
    """A list of LXCCluster objects."""

    items: list[LXCCluster] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": "LXCClusterList",
            "metadata": {},
            "items": [item.to_dict() for item in self.items],
        }