"""Parse the limited subset of cloud-config that instances support."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

_JINJA_HEADER = "## template: jinja\n"
_CLOUD_CONFIG_HEADER = "#cloud-config\n"


class CloudInitError(ValueError):
    """The cloud-config document is missing its header or is not valid."""


@dataclass
class File:
    """An entry of write_files."""

    path: str = ""
    owner: str = ""
    permissions: str = ""
    content: str = ""


@dataclass
class CloudConfig:
    """The supported keys of a cloud-config document."""

    write_files: list[File] = field(default_factory=list)
    run_commands: list[str] = field(default_factory=list)


class _StrictLoader(yaml.SafeLoader):
    """Safe loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: _StrictLoader, node: yaml.MappingNode) -> dict:
    loader.flatten_mapping(node)
    result: dict = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=True)
        try:
            duplicate = key in result
        except TypeError as exc:
            raise yaml.constructor.ConstructorError(
                None, None, f"unhashable key {key!r}", key_node.start_mark
            ) from exc
        if duplicate:
            raise yaml.constructor.ConstructorError(
                None, None, f"duplicate key {key!r}", key_node.start_mark
            )
        result[key] = loader.construct_object(value_node, deep=True)
    return result


_StrictLoader.add_constructor(yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_mapping)


def _replace(raw: str, replacements: Mapping[str, str]) -> str:
    if not replacements:
        return raw
    pattern = re.compile("|".join(re.escape(old) for old in replacements))
    return pattern.sub(lambda match: replacements[match.group(0)], raw)


def _as_string(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise CloudInitError(f"failed parsing cloud-config YAML: {where} must be a string")


def _as_list(value: Any, where: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise CloudInitError(f"failed parsing cloud-config YAML: {where} must be a list")
    return value


def _as_mapping(value: Any, allowed: set[str], where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise CloudInitError(f"failed parsing cloud-config YAML: {where} must be a mapping")
    unknown = [key for key in value if key not in allowed]
    if unknown:
        raise CloudInitError(
            f'failed parsing cloud-config YAML: unknown field "{unknown[0]}" in {where}'
        )
    return value


def _parse_file(entry: Any, index: int) -> File:
    where = f"write_files[{index}]"
    data = _as_mapping(entry, {"path", "owner", "permissions", "content"}, where)
    return File(**{key: _as_string(value, f"{where}.{key}") for key, value in data.items()})


def parse(raw: str, replacements: Mapping[str, str] | None = None) -> CloudConfig:
    """Parse a cloud-config document.

    When the document starts with "## template: jinja", the optional
    replacements are applied before parsing.
    """
    if raw.startswith(_JINJA_HEADER):
        raw = raw[len(_JINJA_HEADER):]
        if replacements is not None:
            raw = _replace(raw, replacements)

    if not raw.startswith(_CLOUD_CONFIG_HEADER):
        raise CloudInitError("missing required header #cloud-config")
    raw = raw[len(_CLOUD_CONFIG_HEADER):]

    try:
        document = yaml.load(raw, Loader=_StrictLoader)
    except yaml.YAMLError as exc:
        raise CloudInitError(f"failed parsing cloud-config YAML: {exc}") from exc

    data = _as_mapping(document, {"write_files", "runcmd"}, "cloud-config")
    files = [
        _parse_file(entry, index)
        for index, entry in enumerate(_as_list(data.get("write_files"), "write_files"))
    ]
    commands = [
        _as_string(command, f"runcmd[{index}]")
        for index, command in enumerate(_as_list(data.get("runcmd"), "runcmd"))
    ]
    return CloudConfig(write_files=files, run_commands=commands)