import pytest

from capn.docker_run import (
    RunArgumentError,
    environment_block,
    label_config,
    parse_run_args,
    proxy_devices,
    sysctl_config,
    tmpfs_devices,
    unix_devices,
    volume_devices,
)

NODE_RUN = (
    "--name c1-control-plane --hostname c1-control-plane "
    "--label io.x-k8s.kind.role=control-plane --privileged "
    "--security-opt seccomp=unconfined --security-opt apparmor=unconfined "
    "--tmpfs /tmp --tmpfs /run --volume /var --volume /lib/modules:/lib/modules:ro "
    "-e KIND_EXPERIMENTAL_CONTAINERD_SNAPSHOTTER --detach --tty "
    "--label io.x-k8s.kind.cluster=c1 --net kind --restart=on-failure:1 --init=false "
    "--cgroupns=private --publish=127.0.0.1:41435:6443/TCP "
    "-e KUBECONFIG=/etc/kubernetes/admin.conf kindest/node:v1.31.2"
).split()


def test_parse_node_run():
    flags = parse_run_args(NODE_RUN)
    assert flags.name == "c1-control-plane"
    assert flags.hostname == "c1-control-plane"
    assert flags.labels == {
        "io.x-k8s.kind.role": "control-plane",
        "io.x-k8s.kind.cluster": "c1",
    }
    assert flags.security_opts == {"seccomp": "unconfined", "apparmor": "unconfined"}
    assert flags.tmpfs == ["/tmp", "/run"]
    assert flags.volumes == ["/var", "/lib/modules:/lib/modules:ro"]
    assert flags.environment == [
        "KIND_EXPERIMENTAL_CONTAINERD_SNAPSHOTTER",
        "KUBECONFIG=/etc/kubernetes/admin.conf",
    ]
    assert flags.publish_ports == ["127.0.0.1:41435:6443/TCP"]
    assert flags.init is False
    assert flags.image == "kindest/node:v1.31.2"
    assert flags.command == []


def test_parse_base_run_with_command():
    argv = [
        "-d",
        "--entrypoint=sleep",
        "--name=kind-build-1",
        "--platform=linux/amd64",
        "--security-opt",
        "seccomp=unconfined",
        "docker.io/kindest/base:v20250214-acbabc1a",
        "infinity",
    ]
    flags = parse_run_args(argv)
    assert flags.detach is True
    assert flags.entrypoint == "sleep"
    assert flags.platform == "linux/amd64"
    assert flags.image == "docker.io/kindest/base:v20250214-acbabc1a"
    assert flags.command == ["infinity"]


def test_defaults_kept_when_not_given():
    flags = parse_run_args(["img"])
    assert (flags.tty, flags.privileged, flags.network, flags.restart) == (
        True,
        True,
        "kind",
        "on-failure:1",
    )


def test_map_flag_with_several_pairs():
    flags = parse_run_args(["--sysctl", "a=1,b=2", "img"])
    assert flags.sysctl == {"a": "1", "b": "2"}


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["--bogus", "img"],
        ["-x", "img"],
        ["--name"],
        ["--label", "novalue", "img"],
        ["--tty=maybe", "img"],
    ],
)
def test_invalid_command_lines(argv):
    with pytest.raises(RunArgumentError):
        parse_run_args(argv)


def test_environment_block_fills_bare_names():
    block = environment_block(["A=1", "HOME"], {"HOME": "/root"}.get)
    assert block == "A=1\nHOME=/root\n"


def test_label_and_sysctl_config():
    assert label_config({"io.x-k8s.kind.role": "control-plane"}) == {
        "user.io.x-k8s.kind.role": "control-plane"
    }
    assert sysctl_config({"net.ipv4.ip_forward": "1"}) == {"linux.sysctl.net.ipv4.ip_forward": "1"}


def test_proxy_devices_two_and_three_parts():
    devices = proxy_devices(["16443:6443/tcp", "127.0.0.1:16443:6443/TCP"])
    assert devices["docker-proxy-0"] == {
        "type": "proxy",
        "bind": "host",
        "listen": "tcp::16443",
        "connect": "tcp::6443",
    }
    assert devices["docker-proxy-1"]["listen"] == "tcp:127.0.0.1:16443"
    assert devices["docker-proxy-1"]["connect"] == "tcp::6443"


@pytest.mark.parametrize("port", ["16443:6443", "6443/tcp", "1:2:3:4/tcp"])
def test_proxy_devices_errors(port):
    with pytest.raises(RunArgumentError):
        proxy_devices([port])


def test_tmpfs_and_unix_devices():
    assert tmpfs_devices(["/tmp", "/run"])["docker-tmpfs-1"] == {
        "type": "disk",
        "path": "/run",
        "source": "tmpfs:",
    }
    assert unix_devices(["/dev/fuse"]) == {
        "docker-device-0": {"type": "unix-char", "source": "/dev/fuse", "path": "/dev/fuse"}
    }


def test_volume_devices_skip_handled_and_keep_indices():
    devices = volume_devices(["/var", "/lib/modules:/lib/modules:ro", "/data", "/h:/c", "/h:/c:ro,rshared"])
    assert sorted(devices) == ["docker-volume-2", "docker-volume-3", "docker-volume-4"]
    assert devices["docker-volume-2"]["source"] == devices["docker-volume-2"]["path"] == "/data"
    assert devices["docker-volume-3"]["readonly"] == "false"
    assert devices["docker-volume-3"]["path"] == "/c"
    assert devices["docker-volume-4"]["readonly"] == "true"
    assert devices["docker-volume-4"]["propagation"] == "rshared"


def test_volume_rslave_propagation():
    device = volume_devices(["/h:/c:rslave"])["docker-volume-0"]
    assert device["propagation"] == "rslave"
    assert device["readonly"] == "false"