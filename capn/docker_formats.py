"""Output of the read-only docker shim commands: info, network ls, inspect and ps."""

from __future__ import annotations

import ipaddress
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import yaml

KIND_CLUSTER_KEY = "user.io.x-k8s.kind.cluster"
KIND_ROLE_KEY = "user.io.x-k8s.kind.role"

INFO_JSON_FORMAT = "{{json .}}"
INFO_SECURITY_OPTIONS_FORMAT = "'{{json .SecurityOptions}}'"

_INFO_OUTPUT: dict[str, dict[bool, str]] = {
    INFO_JSON_FORMAT: {
        True: '{"CgroupDriver":"systemd","CGroupVersion":"2","MemoryLimit":true,'
        '"CPUShares":true,"PidsLimit":true,"SecurityOptions":[]}',
        False: '{"CgroupDriver":"systemd","CGroupVersion":"2","MemoryLimit":true,'
        '"CPUShares":true,"PidsLimit":true,"SecurityOptions":["name=userns","name=rootless"]}',
    },
    INFO_SECURITY_OPTIONS_FORMAT: {
        True: "[]",
        False: '["name=userns","name=rootless"]',
    },
}

NETWORK_LS_FILTER = "name=^kind$"
NETWORK_LS_FORMAT = "{{.ID}}"

INSPECT_ROLE_FORMAT = '{{ index .Config.Labels "io.x-k8s.kind.role"}}'
INSPECT_DESKTOP_PORTS_FORMAT = '{{ index .Config.Labels "desktop.docker.io/ports/6443/tcp" }}'
INSPECT_PORTS_FORMATS = (
    '{{ with (index (index .NetworkSettings.Ports "6443/tcp") 0) }}'
    '{{ printf "%s\t%s" .HostIp .HostPort }}{{ end }}',
    "test",
)
INSPECT_ADDRESSES_FORMATS = (
    "{{range .NetworkSettings.Networks}}{{.IPAddress}},{{.GlobalIPv6Address}}{{end}}",
    "t2",
)

PS_NAMES_FORMAT = "{{.Names}}"
PS_CLUSTER_LABEL_FORMAT = '{{.Label "io.x-k8s.kind.cluster"}}'

_PS_CLUSTER_FILTER = "label=io.x-k8s.kind.cluster"


class UnsupportedFormatError(ValueError):
    """A format string or filter rule that the shim does not understand."""


def info_output(fmt: str, privileged: bool) -> str:
    """Output of `docker info --format FMT` for the known formats."""
    outputs = _INFO_OUTPUT.get(fmt)
    if outputs is None:
        raise UnsupportedFormatError(f'unknown format "{fmt}"')
    return outputs[bool(privileged)] + "\n"


def network_ls_output(filter_rule: str, fmt: str) -> str:
    """Output of `docker network ls`; only the kind network exists."""
    if filter_rule != NETWORK_LS_FILTER:
        raise UnsupportedFormatError(f'invalid filter "{filter_rule}"')
    if fmt != NETWORK_LS_FORMAT:
        raise UnsupportedFormatError(f'invalid format "{fmt}"')
    return "kind\n"


def _published_apiserver(devices: Mapping[str, Mapping[str, str]]) -> str:
    for device in devices.values():
        if device.get("type") != "proxy":
            continue
        if device.get("bind") != "host":
            continue
        if device.get("connect") != "tcp::6443":
            continue
        parts = device.get("listen", "").split(":")
        if parts[0] != "tcp" or len(parts) != 3:
            continue
        return f"{parts[1]}\t{parts[2]}\n"
    return ""


def _host_addresses(addresses: Iterable[str]) -> str:
    ipv4 = ipv6 = ""
    for address in addresses:
        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            continue
        if ip.version == 4:
            ipv4 = address
        else:
            ipv6 = address
    return f"{ipv4},{ipv6}\n"


def inspect_output(instance: Mapping[str, Any], fmt: str) -> str:
    """Output of `docker inspect --format FMT` for an instance.

    The instance is a mapping with "config" and "devices" entries, and an
    "addresses" list of its host addresses.
    """
    if fmt == "":
        return yaml.safe_dump(dict(instance)) + "\n"
    if fmt == INSPECT_ROLE_FORMAT:
        return instance.get("config", {}).get(KIND_ROLE_KEY, "") + "\n"
    if fmt == INSPECT_DESKTOP_PORTS_FORMAT:
        return ""
    if fmt in INSPECT_PORTS_FORMATS:
        return _published_apiserver(instance.get("devices", {}))
    if fmt in INSPECT_ADDRESSES_FORMATS:
        return _host_addresses(instance.get("addresses", []))
    raise UnsupportedFormatError(f'unknown format "{fmt}"')


def ps_filter(filter_rule: str) -> Callable[[Mapping[str, Any]], bool]:
    """A predicate selecting the instances that a `docker ps --filter` rule matches."""
    prefix = _PS_CLUSTER_FILTER + "="
    if filter_rule.startswith(prefix):
        cluster_name = filter_rule[len(prefix):]

        def by_cluster(instance: Mapping[str, Any]) -> bool:
            return instance.get("config", {}).get(KIND_CLUSTER_KEY) == cluster_name

        return by_cluster
    if filter_rule == _PS_CLUSTER_FILTER:

        def has_cluster(instance: Mapping[str, Any]) -> bool:
            return KIND_CLUSTER_KEY in instance.get("config", {})

        return has_cluster
    raise UnsupportedFormatError(f'unknown filter "{filter_rule}"')


def ps_output(instances: Iterable[Mapping[str, Any]], fmt: str) -> str:
    """Output of `docker ps --format FMT` for the listed instances."""
    if fmt == PS_NAMES_FORMAT:
        return "".join(f"{instance['name']}\n" for instance in instances)
    if fmt == PS_CLUSTER_LABEL_FORMAT:
        names = dict.fromkeys(
            value
            for instance in instances
            if (value := instance.get("config", {}).get(KIND_CLUSTER_KEY, ""))
        )
        return "\n".join(names) + "\n"
    raise UnsupportedFormatError(f'unknown format "{fmt}"')