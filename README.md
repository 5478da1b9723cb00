# periscope

This package provides building blocks for gathering diagnostics from a
Kubernetes node and cluster. It defines the shared interfaces, the run
settings and the OS identifiers. It also includes a client that reads
resources from the Kubernetes API server and prints them the way
`kubectl get` does.

## Modules

### `periscope.interfaces`

Abstract base classes that collectors, diagnosers and exporters implement:

- `DataValue`: has a `length` property (bytes) and an `open()` method. Each
  call to `open()` returns a fresh binary stream, which the caller closes.
- `DataProducer`: has a `name` property and a `data` mapping of names to
  `DataValue`s.
- `Collector`: a `DataProducer` with `check_supported()` and `collect()`.
- `Diagnoser`: a `DataProducer` with `diagnose()`.
- `Exporter`: has `export(producer)`.
- `FileSystemAccessor`: has `open_file`, `file_exists`, `file_size` and
  `list_files`.

### `periscope.runtime_info`

- `RuntimeInfo` is a dataclass that holds the settings of a run:
  - the run id and the host node name
  - the collector, Kubernetes object, node log and container log namespace
    lists
  - the storage account details
  - a `features` dict
- `RuntimeInfo.has_feature(feature)` tells whether a `Feature` is present in
  that dict.
- `Feature.WINDOWS_HPC` has the value `"WINHPC"`.

### `periscope.os_identifier`

`parse_os_identifier("linux")` returns `OSIdentifier.LINUX`, and
`parse_os_identifier("windows")` returns `OSIdentifier.WINDOWS`. Any other
string raises `ValueError`.

### `periscope.kube`

`KubeCommandRunner` sends GET requests to the API server described by a
`KubeConnection`. The connection holds the following fields:

- `host`
- an optional `bearer_token`
- `verify`
- `cert`
- `timeout`

The runner has these methods:

- `get_table_output(gvr, namespace, list_options, print_options)`: returns
  the server-generated table rendered as aligned text. Use `PrintOptions` to
  control it, with the fields `no_headers`, `wide`, `with_namespace` and
  `show_labels`.
- `get_json_list_output` and `get_yaml_list_output`: return the list
  response as JSON or YAML.
- `get_json_object_output` and `get_yaml_object_output`: return one named
  resource as JSON or YAML.
- `get_unstructured_list`, `get_unstructured_table` and
  `get_unstructured_item`: return the raw response as a dict.
- `print_as_json`, `print_as_yaml` and `print_as_table`: format data that
  you already have.
  - JSON output is indented by four spaces and its keys are sorted.
  - Lists are given the generic `List` kind with `apiVersion: v1`.
  - `metadata.managedFields` is left out.
- `get_crd_unstructured_list()`: lists CRDs. It tries `apiextensions.k8s.io`
  `v1` first and then `v1beta1`.
- `get_gvr_for_crd(crd_name)` and `get_gvr_from_crd(crd)`: return the
  `GroupVersionResource` a CRD defines, using its storage version.

Other details:

- `list_options` is a mapping of query parameters. Entries that are `None`,
  `False`, empty or zero are dropped. `True` is sent as `"true"`.
- `parse_group_resource("resource.group")` splits a CRD name into group and
  resource.
- Failures raise `KubeError`. A 404 from the server raises the subclass
  `NotFoundError`.

```python
from periscope.kube import GroupVersionResource, KubeCommandRunner, KubeConnection, PrintOptions

runner = KubeCommandRunner(KubeConnection(host="https://localhost:6443", bearer_token="token"))
pods = GroupVersionResource("", "v1", "pods")
print(runner.get_table_output(pods, "kube-system", {"limit": 50}, PrintOptions(wide=True)))
print(runner.get_yaml_object_output(pods, "kube-system", "coredns-0"))
```

## What this package does not do

The package has no concrete collectors or diagnosers, and it runs no
collection. It also lacks several other pieces:

- No file system implementation: `FileSystemAccessor` is an interface only.
- Nothing fills a `RuntimeInfo` from configuration files or the environment.
  You construct it yourself.
- No file watching.
- No zip or blob-storage export: `Exporter` is an interface only.
- No command-line program.

## Running the tests

```
pip install -e .[test]
pytest
```