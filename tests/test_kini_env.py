import io

import pytest

from capn.kini_env import Environment, parse_bool


class _Client:
    def __init__(self, oci):
        self.oci = oci

    def supports_instance_oci(self):
        if not self.oci:
            raise RuntimeError("server is missing extension instance_oci")


def _env(values, client=None):
    def fail():
        raise RuntimeError("cannot connect")

    return Environment(
        stdin=io.BytesIO(b""),
        client=client or fail,
        getenv=lambda name: values.get(name, ""),
    )


@pytest.mark.parametrize("value", ["1", "t", "T", "TRUE", "true", "True"])
def test_parse_bool_true(value):
    assert parse_bool(value) is True


@pytest.mark.parametrize("value", ["0", "f", "F", "FALSE", "false", "False"])
def test_parse_bool_false(value):
    assert parse_bool(value) is False


@pytest.mark.parametrize("value", ["", "yes", "no", "tRUE"])
def test_parse_bool_invalid(value):
    with pytest.raises(ValueError):
        parse_bool(value)


@pytest.mark.parametrize(
    "value, expected", [("", True), ("true", False), ("0", True), ("junk", True)]
)
def test_privileged(value, expected):
    assert _env({"KINI_UNPRIVILEGED": value}).privileged() is expected


def test_kind_instances_forced_modes():
    assert _env({"KINI_MODE": "lxc"}, lambda: _Client(True)).kind_instances() is False
    assert _env({"KINI_MODE": "oci"}).kind_instances() is True


def test_kind_instances_detected_from_server():
    assert _env({}, lambda: _Client(True)).kind_instances() is True
    assert _env({}, lambda: _Client(False)).kind_instances() is False


def test_kind_instances_client_failure():
    assert _env({}).kind_instances() is False


@pytest.mark.parametrize(
    "value, expected", [("", False), ("true", True), ("1", True), ("false", False), ("x", False)]
)
def test_with_unix_socket(value, expected):
    assert _env({"KINI_MOUNT_UNIX_SOCKET": value}).with_unix_socket() is expected


def test_cache_dir_explicit(tmp_path):
    target = tmp_path / "cache" / "nested"
    result = _env({"KINI_CACHE": str(target)}).cache_dir()
    assert result == target
    assert target.is_dir()


@pytest.mark.parametrize("value", ["no", "false", "0"])
def test_cache_dir_disabled(value):
    assert _env({"KINI_CACHE": value}).cache_dir() is None


def test_cache_dir_default_under_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    result = _env({}).cache_dir()
    assert result == tmp_path / ".cache" / "kini"
    assert result.is_dir()


def test_cache_dir_unusable(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    assert _env({"KINI_CACHE": str(blocker / "sub")}).cache_dir() is None