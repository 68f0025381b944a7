# capn

Building blocks for provisioning Kubernetes clusters on LXC and Incus servers
in the Cluster API model: resource types, cloud-init parsing, image build
options and the logic behind a docker-compatible shim that launches LXC
instances.

## Modules

- `capn.machine` – `LXCMachine`, `LXCMachineSpec`, `LXCMachineStatus`,
  `LXCMachineImageSource`, `Devices` and `LXCMachineList`, plus the condition
  and reason names used on clusters and machines. Objects serialise with
  `to_dict()`.
- `capn.cluster` – `LXCCluster`, `LXCClusterSpec`, `LXCClusterStatus`,
  `LXCClusterList` and the load balancer modes (`LXCLoadBalancerInstance` for
  `lxc`/`oci`, `LXCLoadBalancerOVN`, `LXCLoadBalancerKubeVIP`,
  `LXCLoadBalancerExternal`) grouped in `LXCClusterLoadBalancer`.
- `capn.templates` – `LXCClusterTemplate` and `LXCMachineTemplate` with their
  resources; `build(name, namespace)` creates a new cluster or machine from a
  template.
- `capn.cloudinit` – `parse()` reads the supported subset of `#cloud-config`
  documents (`write_files` and `runcmd`).
- `capn.builder_options` – `HaproxyBuildOptions`, `KubeadmBuildOptions`,
  `resolve_base_image()` and `parse_args()` for image build settings.
- `capn.kini_env` – `Environment`, reading `KINI_*` settings, and `parse_bool()`.
- `capn.docker_run` – `parse_run_args()` and helpers turning `docker run`
  flags into instance config and devices.
- `capn.image_load` – reading and caching image tarballs.
- `capn.docker_formats` – output of `docker info`, `network ls`, `inspect` and
  `ps` for the formats the shim supports.

## Examples

Device overrides of a machine:

```python
from capn.machine import Devices

devices = Devices(["eth0,type=nic,network=my-network"])
print(devices.to_map())
# {'eth0': {'type': 'nic', 'network': 'my-network'}}
```

A malformed entry raises `capn.machine.DeviceSpecError`.

A cloud-config document:

```python
from capn.cloudinit import parse

config = parse("#cloud-config\nruncmd:\n- echo hello\n")
print(config.run_commands)  # ['echo hello']
```

When the document starts with `## template: jinja`, the mapping given as
`replacements` is substituted before parsing. A missing `#cloud-config`
header, unknown keys or duplicate keys raise `capn.cloudinit.CloudInitError`.

The load balancer of a cluster:

```python
from capn.cluster import LXCCluster, LXCClusterLoadBalancer, LXCLoadBalancerOVN
from capn.machine import ObjectMeta

cluster = LXCCluster(metadata=ObjectMeta(name="c1", namespace="default"))
cluster.spec.load_balancer = LXCClusterLoadBalancer(ovn=LXCLoadBalancerOVN("ovn0"))
print(cluster.spec.load_balancer.validate())  # 'ovn'
print(cluster.load_balancer_instance_name())
```

`validate()` raises `LoadBalancerConfigError` unless exactly one mode is set.
The instance name is the cluster name, the first five hex digits of the
SHA-256 of the namespace, and `-lb`.

Image build options:

```python
from capn.builder_options import parse_args

options = parse_args(["kubeadm", "--kubernetes-version", "v1.33.0"])
print(options.image_alias)     # 'kubeadm-v1.33.0-container'
print(options.stage_names())
```

Invalid base images, instance types or versions raise `BuildOptionsError`.

`docker run` flags:

```python
from capn.docker_run import parse_run_args, proxy_devices

flags = parse_run_args(["--name", "c1", "--publish=127.0.0.1:16443:6443/TCP", "kindest/node:v1.31.2"])
print(proxy_devices(flags.publish_ports))
# {'docker-proxy-0': {'type': 'proxy', 'bind': 'host',
#                     'listen': 'tcp:127.0.0.1:16443', 'connect': 'tcp::6443'}}
```

## What the package does not do

The package holds data types, parsing and formatting only. It has no
controller manager, does not connect to an LXC or Incus server, and does not
launch, stop or delete instances. It does not run image builds: the build
options only validate settings and list stage names. It provides no `docker`,
`kind` or `kini` command; `capn.docker_formats` works on instance data passed in
as mappings, and it does not pull images from registries.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.