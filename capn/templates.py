"""LXCClusterTemplate and LXCMachineTemplate resources."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from capn.cluster import LXCCluster, LXCClusterSpec
from capn.machine import API_VERSION, LXCMachine, LXCMachineSpec, ObjectMeta


@dataclass
class TemplateMeta:
    """Labels and annotations given to objects created from a template."""

    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.labels:
            data["labels"] = dict(self.labels)
        if self.annotations:
            data["annotations"] = dict(self.annotations)
        return data

    def object_meta(self, name: str, namespace: str) -> ObjectMeta:
        return ObjectMeta(
            name=name,
            namespace=namespace,
            labels=dict(self.labels),
            annotations=dict(self.annotations),
        )


@dataclass
class LXCClusterTemplateResource:
    """The data needed to create an LXCCluster from a template."""

    metadata: TemplateMeta = field(default_factory=TemplateMeta)
    spec: LXCClusterSpec = field(default_factory=LXCClusterSpec)

    def build(self, name: str, namespace: str) -> LXCCluster:
        """Create a new LXCCluster from this template."""
        return LXCCluster(
            metadata=self.metadata.object_meta(name, namespace),
            spec=copy.deepcopy(self.spec),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"metadata": self.metadata.to_dict(), "spec": self.spec.to_dict()}


@dataclass
class LXCClusterTemplate:
    """A template for LXCCluster objects."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    template: LXCClusterTemplateResource = field(default_factory=LXCClusterTemplateResource)

    KIND = "LXCClusterTemplate"

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": self.KIND,
            "metadata": self.metadata.to_dict(),
            "spec": {"template": self.template.to_dict()},
        }


@dataclass
class LXCClusterTemplateList:
    """A list of LXCClusterTemplate objects."""

    items: list[LXCClusterTemplate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": "LXCClusterTemplateList",
            "metadata": {},
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class LXCMachineTemplateResource:
    """The data needed to create an LXCMachine from a template."""

    metadata: TemplateMeta = field(default_factory=TemplateMeta)
    spec: LXCMachineSpec = field(default_factory=LXCMachineSpec)

    def build(self, name: str, namespace: str) -> LXCMachine:
        """Create a new LXCMachine from this template."""
        return LXCMachine(
            metadata=self.metadata.object_meta(name, namespace),
            spec=copy.deepcopy(self.spec),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"metadata": self.metadata.to_dict(), "spec": self.spec.to_dict()}


@dataclass
class LXCMachineTemplate:
    """A template for LXCMachine objects."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    template: LXCMachineTemplateResource = field(default_factory=LXCMachineTemplateResource)

    KIND = "LXCMachineTemplate"

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": self.KIND,
            "metadata": self.metadata.to_dict(),
            "spec": {"template": self.template.to_dict()},
        }


@dataclass
class LXCMachineTemplateList:
    """A list of LXCMachineTemplate objects."""

    items: list[LXCMachineTemplate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": "LXCMachineTemplateList",
            "metadata": {},
            "items": [item.to_dict() for item in self.items],
        }