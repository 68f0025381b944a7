import pytest
import yaml

from capn.docker_formats import (
    INFO_JSON_FORMAT,
    INFO_SECURITY_OPTIONS_FORMAT,
    INSPECT_ADDRESSES_FORMATS,
    INSPECT_DESKTOP_PORTS_FORMAT,
    INSPECT_PORTS_FORMATS,
    INSPECT_ROLE_FORMAT,
    PS_CLUSTER_LABEL_FORMAT,
    PS_NAMES_FORMAT,
    UnsupportedFormatError,
    info_output,
    inspect_output,
    network_ls_output,
    ps_filter,
    ps_output,
)


def test_info_security_options_privileged():
    assert info_output(INFO_SECURITY_OPTIONS_FORMAT, True) == "[]\n"


def test_info_security_options_unprivileged():
    assert info_output(INFO_SECURITY_OPTIONS_FORMAT, False) == '["name=userns","name=rootless"]\n'


def test_info_json_mentions_rootless_only_when_unprivileged():
    assert "name=rootless" in info_output(INFO_JSON_FORMAT, False)
    assert "name=rootless" not in info_output(INFO_JSON_FORMAT, True)


def test_info_unknown_format():
    with pytest.raises(UnsupportedFormatError):
        info_output("{{.Name}}", True)


def test_network_ls():
    assert network_ls_output("name=^kind$", "{{.ID}}") == "kind\n"


@pytest.mark.parametrize(
    "filter_rule, fmt",
    [("name=^other$", "{{.ID}}"), ("name=^kind$", "{{.Name}}")],
)
def test_network_ls_rejects(filter_rule, fmt):
    with pytest.raises(UnsupportedFormatError):
        network_ls_output(filter_rule, fmt)


INSTANCE = {
    "name": "c1-control-plane",
    "config": {"user.io.x-k8s.kind.role": "control-plane"},
    "devices": {
        "eth0": {"type": "nic", "network": "incusbr0"},
        "other-proxy": {
            "type": "proxy",
            "bind": "host",
            "listen": "tcp:127.0.0.1:1234",
            "connect": "tcp::80",
        },
        "docker-proxy-0": {
            "type": "proxy",
            "bind": "host",
            "listen": "tcp:127.0.0.1:41435",
            "connect": "tcp::6443",
        },
    },
    "addresses": ["10.0.1.7", "fd42::7", "not-an-address"],
}


def test_inspect_role():
    assert inspect_output(INSTANCE, INSPECT_ROLE_FORMAT) == "control-plane\n"


def test_inspect_desktop_ports_is_empty():
    assert inspect_output(INSTANCE, INSPECT_DESKTOP_PORTS_FORMAT) == ""


@pytest.mark.parametrize("fmt", INSPECT_PORTS_FORMATS)
def test_inspect_ports(fmt):
    assert inspect_output(INSTANCE, fmt) == "127.0.0.1\t41435\n"


def test_inspect_ports_without_published_apiserver():
    instance = {"devices": {"eth0": {"type": "nic"}}}
    assert inspect_output(instance, "test") == ""


@pytest.mark.parametrize("fmt", INSPECT_ADDRESSES_FORMATS)
def test_inspect_addresses(fmt):
    assert inspect_output(INSTANCE, fmt) == "10.0.1.7,fd42::7\n"


def test_inspect_default_is_yaml_round_trip():
    assert yaml.safe_load(inspect_output(INSTANCE, "")) == INSTANCE


def test_inspect_unknown_format():
    with pytest.raises(UnsupportedFormatError):
        inspect_output(INSTANCE, "{{.State}}")


INSTANCES = [
    {"name": "a-control-plane", "config": {"user.io.x-k8s.kind.cluster": "a"}},
    {"name": "a-worker", "config": {"user.io.x-k8s.kind.cluster": "a"}},
    {"name": "b-control-plane", "config": {"user.io.x-k8s.kind.cluster": "b"}},
    {"name": "plain", "config": {}},
]


def test_ps_filter_by_cluster_name():
    predicate = ps_filter("label=io.x-k8s.kind.cluster=a")
    assert [i["name"] for i in INSTANCES if predicate(i)] == ["a-control-plane", "a-worker"]


def test_ps_filter_by_label_presence():
    predicate = ps_filter("label=io.x-k8s.kind.cluster")
    assert [i["name"] for i in INSTANCES if predicate(i)] == [
        "a-control-plane",
        "a-worker",
        "b-control-plane",
    ]


def test_ps_filter_unknown():
    with pytest.raises(UnsupportedFormatError):
        ps_filter("status=running")


def test_ps_names():
    assert ps_output(INSTANCES[:2], PS_NAMES_FORMAT) == "a-control-plane\na-worker\n"


def test_ps_cluster_labels_are_unique():
    lines = ps_output(INSTANCES, PS_CLUSTER_LABEL_FORMAT).splitlines()
    assert sorted(lines) == ["a", "b"]


def test_ps_unknown_format():
    with pytest.raises(UnsupportedFormatError):
        ps_output(INSTANCES, "{{.ID}}")