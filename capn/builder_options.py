"""Options for building kubeadm and haproxy images, and their command line."""

from __future__ import annotations

import argparse
import csv
import re
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import timedelta

from capn.kini_env import parse_bool

CONTAINER = "container"
VIRTUAL_MACHINE = "virtual-machine"


@dataclass(frozen=True)
class BaseImageInfo:
    """Descriptive names of a well-known base image."""

    full_name: str
    release_name: str
    variant_name: str


WELL_KNOWN_BASE_IMAGES: dict[str, BaseImageInfo] = {
    "ubuntu:20.04": BaseImageInfo("ubuntu focal", "focal", "ubuntu"),
    "ubuntu:22.04": BaseImageInfo("ubuntu jammy", "jammy", "ubuntu"),
    "ubuntu:24.04": BaseImageInfo("ubuntu noble", "noble", "ubuntu"),
    "debian:12": BaseImageInfo("debian bookworm", "bookworm", "debian"),
    "debian:13": BaseImageInfo("debian trixie", "trixie", "debian"),
}

DEFAULT_BASE_IMAGE = "ubuntu:24.04"
DEFAULT_INSTANCE_NAME = "capn-builder"
DEFAULT_INSTANCE_TYPE = CONTAINER
DEFAULT_INSTANCE_PROFILES = ("default",)
DEFAULT_VALIDATION_INSTANCE_NAME = "capn-validator"
DEFAULT_INSTANCE_STOP_GRACE_PERIOD = timedelta(minutes=2)
# Images for the default flannel CNI.
DEFAULT_PULL_EXTRA_IMAGES = (
    "ghcr.io/flannel-io/flannel-cni-plugin:v1.7.1-flannel1",
    "ghcr.io/flannel-io/flannel:v0.27.3",
)

_BASE_IMAGE_ALIASES = {"debian": "debian:13", "ubuntu": "ubuntu:24.04"}
_SUPPORTED_BASE_IMAGES = ("debian:12", "debian:13", "ubuntu:22.04", "ubuntu:24.04")

HAPROXY_STAGES = (
    "create-instance",
    "install-haproxy",
    "prepare-instance",
    "stop-instance",
    "publish-image",
    "export-image",
    "delete-instance",
)

KUBEADM_STAGES = (
    "create-instance",
    "install-kubeadm",
    "pull-extra-images",
    "generate-manifest",
    "export-manifest",
    "prepare-instance",
    "stop-grace-period",
    "stop-instance",
    "publish-image",
    "export-image",
    "delete-instance",
    "validate-image",
)

_SEMVER_TOLERANT = re.compile(
    r"(\d+)(?:\.(\d+))?(?:\.(\d+)(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?)?"
)


class BuildOptionsError(ValueError):
    """The options for an image build are not valid."""


@dataclass(frozen=True)
class PublishImageInfo:
    """Properties recorded on a published image."""

    name: str
    operating_system: str
    release: str
    variant: str
    lxc_require_cgroupv2: bool = False


def resolve_base_image(base_image: str) -> str:
    """Expand a base image shorthand and check that it is supported."""
    resolved = _BASE_IMAGE_ALIASES.get(base_image, base_image)
    if resolved not in _SUPPORTED_BASE_IMAGES:
        raise BuildOptionsError(
            f'invalid value for --base-image argument "{base_image}", must be one of '
            "[ubuntu:22.04, ubuntu:24.04, debian:12, debian:13]"
        )
    return resolved


def _check_semver(version: str) -> None:
    text = version.strip()
    if text.startswith("v"):
        text = text[1:]
    if not _SEMVER_TOLERANT.fullmatch(text):
        raise BuildOptionsError(f'--kubernetes-version "{version}" is not valid semver')


@dataclass
class HaproxyBuildOptions:
    """Options for building a haproxy image."""

    config_file: str = ""
    config_remote_name: str = ""
    base_image: str = DEFAULT_BASE_IMAGE
    instance_name: str = DEFAULT_INSTANCE_NAME
    instance_profiles: list[str] = field(default_factory=lambda: list(DEFAULT_INSTANCE_PROFILES))
    image_alias: str = ""
    skip_stages: list[str] = field(default_factory=list)
    only_stages: list[str] = field(default_factory=list)
    dry_run: bool = False
    output_file: str = "image.tar.gz"

    def resolve(self) -> HaproxyBuildOptions:
        """Validate the options and fill in defaults that depend on others."""
        self.base_image = resolve_base_image(self.base_image)
        if not self.image_alias:
            variant = WELL_KNOWN_BASE_IMAGES[self.base_image].variant_name
            self.image_alias = f"haproxy-{variant}"
        return self

    def publish_info(self, arch: str) -> PublishImageInfo:
        info = WELL_KNOWN_BASE_IMAGES[resolve_base_image(self.base_image)]
        return PublishImageInfo(
            name=f"haproxy {info.full_name} {arch}",
            operating_system="haproxy",
            release=info.release_name,
            variant=info.variant_name,
        )

    def stage_names(self) -> list[str]:
        """Names of the build stages, in the order they run."""
        return list(HAPROXY_STAGES)


@dataclass
class KubeadmBuildOptions:
    """Options for building a kubeadm image."""

    kubernetes_version: str = ""
    config_file: str = ""
    config_remote_name: str = ""
    base_image: str = DEFAULT_BASE_IMAGE
    instance_name: str = DEFAULT_INSTANCE_NAME
    instance_profiles: list[str] = field(default_factory=lambda: list(DEFAULT_INSTANCE_PROFILES))
    instance_type: str = DEFAULT_INSTANCE_TYPE
    validation_instance_name: str = DEFAULT_VALIDATION_INSTANCE_NAME
    image_alias: str = ""
    skip_stages: list[str] = field(default_factory=list)
    only_stages: list[str] = field(default_factory=list)
    dry_run: bool = False
    instance_stop_grace_period: timedelta = DEFAULT_INSTANCE_STOP_GRACE_PERIOD
    output_file: str = "image.tar.gz"
    output_manifest_file: str = "image.txt"
    pull_extra_images: list[str] = field(default_factory=lambda: list(DEFAULT_PULL_EXTRA_IMAGES))

    def resolve(self) -> KubeadmBuildOptions:
        """Validate the options and fill in defaults that depend on others."""
        if not self.kubernetes_version:
            raise BuildOptionsError('required flag(s) "kubernetes-version" not set')
        if self.instance_type not in (CONTAINER, VIRTUAL_MACHINE):
            raise BuildOptionsError(
                f'invalid value for --instance-type argument "{self.instance_type}", '
                "must be one of [container, virtual-machine]"
            )
        self.base_image = resolve_base_image(self.base_image)
        if not self.image_alias:
            self.image_alias = f"kubeadm-{self.kubernetes_version}-{self.instance_type}"
        _check_semver(self.kubernetes_version)
        return self

    def publish_info(self, arch: str) -> PublishImageInfo:
        info = WELL_KNOWN_BASE_IMAGES[resolve_base_image(self.base_image)]
        return PublishImageInfo(
            name=f"kubeadm {self.kubernetes_version} {info.full_name} {arch}",
            operating_system="kubeadm",
            release=self.kubernetes_version,
            variant=info.variant_name,
            lxc_require_cgroupv2=True,
        )

    def stage_names(self) -> list[str]:
        """Names of the build stages, in the order they run."""
        return list(KUBEADM_STAGES)


_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def _parse_duration(text: str) -> timedelta:
    body = text
    sign = 1
    if body[:1] in "+-" and body:
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise ValueError(f"invalid duration {text!r}")
    total = 0.0
    position = 0
    while position < len(body):
        match = _DURATION_PART.match(body, position)
        if not match:
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    return timedelta(seconds=sign * total)


def _split_slice(value: str) -> list[str]:
    if value == "":
        return []
    return next(csv.reader([value]))


class _SliceAction(argparse.Action):
    """A comma separated list flag: the first use replaces the default, later uses append."""

    def __call__(self, parser, namespace, values, option_string=None):
        explicit = vars(namespace).setdefault("_explicit_slices", set())
        items = _split_slice(values)
        if self.dest in explicit:
            getattr(namespace, self.dest).extend(items)
        else:
            setattr(namespace, self.dest, items)
            explicit.add(self.dest)


def _normalize(argv: Sequence[str]) -> list[str]:
    normalized = []
    for arg in argv:
        if arg != "--" and arg.startswith("--"):
            name, equal, value = arg.partition("=")
            arg = name.replace("_", "-") + equal + value
        normalized.append(arg)
    return normalized


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config-file", default="", help="Read client configuration from file")
    parser.add_argument(
        "--config-remote-name", default="", help="Override remote to use from configuration file"
    )
    parser.add_argument(
        "--base-image",
        default=DEFAULT_BASE_IMAGE,
        help="Base image for launching builder instance "
        "(one of ubuntu:22.04|ubuntu:24.04|debian:12|debian:13)",
    )
    parser.add_argument("--instance-name", default=DEFAULT_INSTANCE_NAME, help="Name for the builder instance")
    parser.add_argument(
        "--instance-profile",
        dest="instance_profiles",
        action=_SliceAction,
        default=list(DEFAULT_INSTANCE_PROFILES),
        help="Profiles to use to launch the builder instance",
    )
    parser.add_argument(
        "--image-alias",
        default="",
        help="Create image with alias. If not specified, a default is used based on config",
    )
    parser.add_argument(
        "--skip", dest="skip_stages", action=_SliceAction, default=[], help="Skip stages while building the image"
    )
    parser.add_argument(
        "--only",
        dest="only_stages",
        action=_SliceAction,
        default=[],
        help="Run specific stages while building the image",
    )
    parser.add_argument(
        "--dry-run", nargs="?", const=True, default=False, type=parse_bool, help="Dry run stages"
    )
    parser.add_argument(
        "--output", dest="output_file", default="image.tar.gz", help="Output file for exported image"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="image-builder")
    commands = parser.add_subparsers(dest="command", required=True, title="Available Image Types")

    kubeadm = commands.add_parser("kubeadm", help="Build kubeadm images for cluster-api-provider-incus")
    _add_common_flags(kubeadm)
    kubeadm.add_argument(
        "--instance-type",
        default=DEFAULT_INSTANCE_TYPE,
        help="Type of image to build (one of container|virtual-machine)",
    )
    kubeadm.add_argument(
        "--validation-instance-name",
        default=DEFAULT_VALIDATION_INSTANCE_NAME,
        help="Name for the validation instance",
    )
    kubeadm.add_argument(
        "--instance-stop-grace-period",
        type=_parse_duration,
        default=DEFAULT_INSTANCE_STOP_GRACE_PERIOD,
        help="[advanced] Grace period before stopping instance, such that all disk writes complete",
    )
    kubeadm.add_argument(
        "--manifest",
        dest="output_manifest_file",
        default="image.txt",
        help="Output file for exported image manifest",
    )
    kubeadm.add_argument("--kubernetes-version", default="", help="Kubernetes version to create image for")
    kubeadm.add_argument(
        "--pull-extra-images",
        action=_SliceAction,
        default=list(DEFAULT_PULL_EXTRA_IMAGES),
        help="Extra OCI images to pull in the image",
    )

    haproxy = commands.add_parser("haproxy", help="Build haproxy images for cluster-api-provider-incus")
    _add_common_flags(haproxy)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> HaproxyBuildOptions | KubeadmBuildOptions:
    """Parse an image-builder command line into validated build options."""
    args = _build_parser().parse_args(_normalize(sys.argv[1:] if argv is None else argv))
    common = dict(
        config_file=args.config_file,
        config_remote_name=args.config_remote_name,
        base_image=args.base_image,
        instance_name=args.instance_name,
        instance_profiles=list(args.instance_profiles),
        image_alias=args.image_alias,
        skip_stages=list(args.skip_stages),
        only_stages=list(args.only_stages),
        dry_run=args.dry_run,
        output_file=args.output_file,
    )
    if args.command == "haproxy":
        return HaproxyBuildOptions(**common).resolve()
    return KubeadmBuildOptions(
        kubernetes_version=args.kubernetes_version,
        instance_type=args.instance_type,
        validation_instance_name=args.validation_instance_name,
        instance_stop_grace_period=args.instance_stop_grace_period,
        output_manifest_file=args.output_manifest_file,
        pull_extra_images=list(args.pull_extra_images),
        **common,
    ).resolve()