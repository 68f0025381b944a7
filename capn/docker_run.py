"""Command line and device configuration for the `docker run` shim."""

from __future__ import annotations

import csv
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from capn.kini_env import parse_bool


class RunArgumentError(ValueError):
    """The `docker run` command line or one of its values is not valid."""


@dataclass
class RunFlags:
    """Flags accepted by `docker run`.

    Several of them are accepted only so that callers do not fail; they have
    no effect on the instance that is launched.
    """

    init: bool = False
    tty: bool = True
    privileged: bool = True
    detach: bool = True
    cgroupns: str = "private"
    userns: str = ""
    network: str = "kind"
    restart: str = "on-failure:1"
    security_opts: dict[str, str] = field(default_factory=dict)
    platform: str = ""
    entrypoint: str = ""

    name: str = ""
    hostname: str = ""
    environment: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    publish_ports: list[str] = field(default_factory=list)
    volumes: list[str] = field(default_factory=list)
    devices: list[str] = field(default_factory=list)
    tmpfs: list[str] = field(default_factory=list)
    sysctl: dict[str, str] = field(default_factory=dict)

    args: list[str] = field(default_factory=list)

    @property
    def image(self) -> str:
        """The image to launch, the first positional argument."""
        return self.args[0]

    @property
    def command(self) -> list[str]:
        """Positional arguments after the image."""
        return self.args[1:]


_BOOL, _STRING, _ARRAY, _MAP = "bool", "string", "array", "map"

_FLAGS: dict[str, tuple[str, str]] = {
    "init": (_BOOL, "init"),
    "tty": (_BOOL, "tty"),
    "privileged": (_BOOL, "privileged"),
    "detach": (_BOOL, "detach"),
    "cgroupns": (_STRING, "cgroupns"),
    "userns": (_STRING, "userns"),
    "net": (_STRING, "network"),
    "restart": (_STRING, "restart"),
    "security-opt": (_MAP, "security_opts"),
    "platform": (_STRING, "platform"),
    "entrypoint": (_STRING, "entrypoint"),
    "name": (_STRING, "name"),
    "hostname": (_STRING, "hostname"),
    "environment": (_ARRAY, "environment"),
    "label": (_MAP, "labels"),
    "publish": (_ARRAY, "publish_ports"),
    "volume": (_ARRAY, "volumes"),
    "device": (_ARRAY, "devices"),
    "sysctl": (_MAP, "sysctl"),
    "tmpfs": (_ARRAY, "tmpfs"),
}

_SHORTHANDS = {"d": "detach", "e": "environment"}


def _parse_pairs(value: str, flag: str) -> dict[str, str]:
    equals = value.count("=")
    if equals == 0:
        raise RunArgumentError(f'invalid argument "{value}" for "--{flag}": must be formatted as key=value')
    if equals == 1:
        pairs = [value.strip('"')]
    else:
        pairs = next(csv.reader([value]), [])
    result: dict[str, str] = {}
    for pair in pairs:
        key, equal, item = pair.partition("=")
        if not equal:
            raise RunArgumentError(f'invalid argument "{value}" for "--{flag}": {pair} must be formatted as key=value')
        result[key] = item
    return result


def parse_run_args(argv: Sequence[str]) -> RunFlags:
    """Parse a `docker run` command line; flags may appear before or after the image."""
    flags = RunFlags()
    changed_maps: set[str] = set()
    positional: list[str] = []
    tokens = iter(list(argv))

    for token in tokens:
        if token == "--":
            positional.extend(tokens)
            break

        inline: str | None
        if token.startswith("--"):
            name, equal, value = token[2:].partition("=")
            inline = value if equal else None
        elif token.startswith("-") and len(token) > 1:
            letter = token[1]
            name = _SHORTHANDS.get(letter, "")
            if not name:
                raise RunArgumentError(f"unknown shorthand flag: '{letter}' in {token}")
            rest = token[2:]
            if rest.startswith("="):
                inline = rest[1:]
            elif rest:
                if _FLAGS[name][0] == _BOOL:
                    raise RunArgumentError(f"unknown shorthand flag: '{rest[0]}' in {token}")
                inline = rest
            else:
                inline = None
        else:
            positional.append(token)
            continue

        spec = _FLAGS.get(name)
        if spec is None:
            raise RunArgumentError(f"unknown flag: --{name}")
        kind, dest = spec

        if kind == _BOOL:
            if inline is None:
                setattr(flags, dest, True)
            else:
                try:
                    setattr(flags, dest, parse_bool(inline))
                except ValueError as exc:
                    raise RunArgumentError(f'invalid argument "{inline}" for "--{name}" flag') from exc
            continue

        value = inline if inline is not None else next(tokens, None)
        if value is None:
            raise RunArgumentError(f"flag needs an argument: --{name}")

        if kind == _STRING:
            setattr(flags, dest, value)
        elif kind == _ARRAY:
            getattr(flags, dest).append(value)
        else:
            pairs = _parse_pairs(value, name)
            if dest in changed_maps:
                getattr(flags, dest).update(pairs)
            else:
                setattr(flags, dest, pairs)
                changed_maps.add(dest)

    if not positional:
        raise RunArgumentError("requires at least 1 arg(s), only received 0")
    flags.args = positional
    return flags


def environment_block(environment: Iterable[str], getenv: Callable[[str], str]) -> str:
    """Lines for /etc/environment; bare names take their value from ``getenv``."""
    lines = []
    for entry in environment:
        if "=" not in entry:
            entry = f"{entry}={getenv(entry)}"
        lines.append(entry + "\n")
    return "".join(lines)


def label_config(labels: Mapping[str, str]) -> dict[str, str]:
    """Instance configuration keys holding the container labels."""
    return {f"user.{key}": value for key, value in labels.items()}


def proxy_devices(publish_ports: Iterable[str]) -> dict[str, dict[str, str]]:
    """Proxy devices for published ports such as "127.0.0.1:16443:6443/tcp"."""
    devices: dict[str, dict[str, str]] = {}
    for index, publish_port in enumerate(publish_ports):
        lowered = publish_port.lower()
        port, slash, protocol = lowered.partition("/")
        if not slash:
            raise RunArgumentError(f'publish port "{lowered}" does not specify protocol')

        parts = port.split(":")
        if len(parts) == 2:
            listen = f"{protocol}::{parts[0]}"
            connect = f"{protocol}::{parts[1]}"
        elif len(parts) == 3:
            listen = f"{protocol}:{parts[0]}:{parts[1]}"
            connect = f"{protocol}::{parts[2]}"
        else:
            raise RunArgumentError(f'publish port "{port}" does not specify listen and connect')

        devices[f"docker-proxy-{index}"] = {
            "type": "proxy",
            "bind": "host",
            "listen": listen,
            "connect": connect,
        }
    return devices


def tmpfs_devices(paths: Iterable[str]) -> dict[str, dict[str, str]]:
    """Disk devices mounting tmpfs at each path.

    Only meaningful on servers that support tmpfs disks in containers.
    """
    return {
        f"docker-tmpfs-{index}": {"type": "disk", "path": path, "source": "tmpfs:"}
        for index, path in enumerate(paths)
    }


def unix_devices(devices: Iterable[str]) -> dict[str, dict[str, str]]:
    """Character devices passed through at the same path."""
    return {
        f"docker-device-{index}": {"type": "unix-char", "source": device, "path": device}
        for index, device in enumerate(devices)
    }


_HANDLED_VOLUMES = frozenset({"/var", "/lib/modules:/lib/modules:ro"})


def volume_devices(volumes: Iterable[str]) -> dict[str, dict[str, str]]:
    """Disk devices for volumes written as "host[:container[:options]]"."""
    devices: dict[str, dict[str, str]] = {}
    for index, volume in enumerate(volumes):
        if volume in _HANDLED_VOLUMES:
            continue

        host_path = container_path = propagation = ""
        read_only = False
        parts = volume.split(":")
        if len(parts) == 1:
            host_path = container_path = volume
        elif len(parts) == 2:
            host_path, container_path = parts
        elif len(parts) == 3:
            host_path, container_path, options = parts
            read_only = "ro" in options
            if "rslave" in options:
                propagation = "rslave"
            elif "rshared" in options:
                propagation = "rshared"

        devices[f"docker-volume-{index}"] = {
            "type": "disk",
            "source": host_path,
            "path": container_path,
            "readonly": "true" if read_only else "false",
            "propagation": propagation,
        }
    return devices


def sysctl_config(sysctl: Mapping[str, str]) -> dict[str, str]:
    """Instance configuration keys for kernel parameters."""
    return {f"linux.sysctl.{key}": value for key, value in sysctl.items()}