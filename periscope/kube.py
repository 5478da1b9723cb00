"""Reading resources from the Kubernetes API and printing them the way kubectl does."""

from __future__ import annotations

import copy
import dataclasses
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import requests
import yaml

_TABLE_ACCEPT = "application/json;as=Table;v=v1;g=meta.k8s.io"
_JSON_ACCEPT = "application/json"

_TAB_MIN_WIDTH = 6
_TAB_PADDING = 3

_JSON_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


class KubeError(Exception):
    """Raised when a request to the API server or its processing fails."""


class NotFoundError(KubeError):
    """Raised when the API server reports that a resource does not exist."""


@dataclass(frozen=True)
class GroupVersionResource:
    """Identifies a kind of resource by API group, version and plural name."""

    group: str
    version: str
    resource: str

    def __str__(self) -> str:
        return f"{self.group}/{self.version}, Resource={self.resource}"


# Both the current and the older CRD API versions are tried, newest first.
CRD_GVRS = (
    GroupVersionResource("apiextensions.k8s.io", "v1", "customresourcedefinitions"),
    GroupVersionResource("apiextensions.k8s.io", "v1beta1", "customresourcedefinitions"),
)


@dataclass
class KubeConnection:
    """Where and how to reach the API server."""

    host: str
    bearer_token: str | None = None
    verify: bool | str = True
    cert: str | tuple[str, str] | None = None
    timeout: float | None = None


@dataclass
class PrintOptions:
    """Options for human-readable table output."""

    no_headers: bool = False
    wide: bool = False
    with_namespace: bool = False
    show_labels: bool = False


def parse_group_resource(name: str) -> GroupVersionResource:
    """Split "resource.group" into a GroupVersionResource with an empty version."""
    resource, dot, group = name.partition(".")
    if not dot:
        return GroupVersionResource("", "", name)
    return GroupVersionResource(group, "", resource)


def _rewrap(err: KubeError, context: str) -> KubeError:
    return type(err)(f"{context}: {err}")


def _is_list(obj: Mapping[str, Any]) -> bool:
    return "items" in obj


def _query_params(options: Mapping[str, Any] | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for key, value in (options or {}).items():
        if value is None or value is False or value == "" or value == 0:
            continue
        if value is True:
            params[key] = "true"
        else:
            params[key] = str(value)
    return params


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return response.text or response.reason or ""


def _omit_managed_fields(obj: dict[str, Any]) -> None:
    metadata = obj.get("metadata")
    if isinstance(metadata, dict):
        metadata.pop("managedFields", None)


def _format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        for index, char in enumerate(value):
            if char in "\f\n\r":
                return value[:index] + "..."
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return "[" + " ".join(_format_cell(item) for item in value) + "]"
    if isinstance(value, dict):
        inner = " ".join(f"{key}:{_format_cell(value[key])}" for key in sorted(value))
        return f"map[{inner}]"
    return str(value)


def _format_labels(labels: Any) -> str:
    if not isinstance(labels, dict) or not labels:
        return "<none>"
    return ",".join(f"{key}={labels[key]}" for key in sorted(labels))


def _row_metadata(row: Mapping[str, Any]) -> Mapping[str, Any]:
    obj = row.get("object")
    if isinstance(obj, dict) and isinstance(obj.get("metadata"), dict):
        return obj["metadata"]
    return {}


def _align(lines: list[list[str]]) -> str:
    """Align cells in columns, leaving the last cell of each line unpadded."""
    if not lines:
        return ""
    column_count = max(len(line) for line in lines)
    widths = []
    for column in range(column_count - 1):
        cells = [line[column] for line in lines if column < len(line) - 1]
        widths.append(max([_TAB_MIN_WIDTH, *(len(cell) + _TAB_PADDING for cell in cells)]))
    out = []
    for line in lines:
        padded = [cell.ljust(width) for cell, width in zip(line[:-1], widths)]
        out.append("".join(padded) + line[-1] + "\n")
    return "".join(out)


def _to_table(obj: Any) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    if not isinstance(obj, Mapping):
        raise KubeError("error converting unstructured data to table: not an object")
    columns = obj.get("columnDefinitions") or []
    rows = obj.get("rows") or []
    if not isinstance(columns, list) or not all(isinstance(c, dict) for c in columns):
        raise KubeError("error converting unstructured data to table: invalid columnDefinitions")
    if not isinstance(rows, list) or not all(
        isinstance(r, dict) and isinstance(r.get("cells", []), list) for r in rows
    ):
        raise KubeError("error converting unstructured data to table: invalid rows")
    for column in columns:
        if not isinstance(column.get("priority", 0), int) or not isinstance(
            column.get("name", ""), str
        ):
            raise KubeError(
                "error converting unstructured data to table: invalid column definition"
            )
    return columns, rows


class KubeCommandRunner:
    """Reproduces parts of `kubectl get` using untyped resource data."""

    def __init__(self, connection: KubeConnection, session: requests.Session | None = None) -> None:
        self._connection = connection
        self._session = session or requests.Session()

    # Output in kubectl formats

    def get_table_output(
        self,
        gvr: GroupVersionResource,
        namespace: str,
        list_options: Mapping[str, Any] | None,
        print_options: PrintOptions,
    ) -> str:
        """Like `kubectl get <kind> -o table|wide`."""
        try:
            table = self.get_unstructured_table(gvr, namespace, list_options)
        except KubeError as err:
            raise _rewrap(err, f"error requesting table for {gvr} in {namespace}") from err
        try:
            return self.print_as_table(table, print_options)
        except KubeError as err:
            raise _rewrap(err, f"error printing {gvr} in {namespace} as table") from err

    def get_json_list_output(
        self, gvr: GroupVersionResource, namespace: str, list_options: Mapping[str, Any] | None
    ) -> str:
        """Like `kubectl get <kind> -o json`."""
        try:
            items = self.get_unstructured_list(gvr, namespace, list_options)
        except KubeError as err:
            raise _rewrap(err, f"error requesting all {gvr} in {namespace}") from err
        try:
            return self.print_as_json(items)
        except KubeError as err:
            raise _rewrap(err, f"error printing {gvr} in {namespace} as JSON") from err

    def get_yaml_list_output(
        self, gvr: GroupVersionResource, namespace: str, list_options: Mapping[str, Any] | None
    ) -> str:
        """Like `kubectl get <kind> -o yaml`."""
        try:
            items = self.get_unstructured_list(gvr, namespace, list_options)
        except KubeError as err:
            raise _rewrap(err, f"error requesting all {gvr} in {namespace}") from err
        try:
            return self.print_as_yaml(items)
        except KubeError as err:
            raise _rewrap(err, f"error printing {gvr} in {namespace} as YAML") from err

    def get_json_object_output(self, gvr: GroupVersionResource, namespace: str, name: str) -> str:
        """Like `kubectl get <kind> <name> -o json`."""
        try:
            obj = self.get_unstructured_item(gvr, namespace, name)
        except KubeError as err:
            raise _rewrap(err, f"error requesting {gvr} {name} in {namespace}") from err
        try:
            return self.print_as_json(obj)
        except KubeError as err:
            raise _rewrap(err, f"error printing {gvr} {name} in {namespace} as JSON") from err

    def get_yaml_object_output(self, gvr: GroupVersionResource, namespace: str, name: str) -> str:
        """Like `kubectl get <kind> <name> -o yaml`."""
        try:
            obj = self.get_unstructured_item(gvr, namespace, name)
        except KubeError as err:
            raise _rewrap(err, f"error requesting {gvr} {name} in {namespace}") from err
        try:
            return self.print_as_yaml(obj)
        except KubeError as err:
            raise _rewrap(err, f"error printing {gvr} {name} in {namespace} as YAML") from err

    # Raw API access

    def get_unstructured_list(
        self, gvr: GroupVersionResource, namespace: str, options: Mapping[str, Any] | None
    ) -> dict[str, Any]:
        """Return the response to a list request."""
        obj = self._get(gvr, namespace, None, _query_params(options), as_table=False)
        if not _is_list(obj):
            raise KubeError("error executing request: response is not a list")
        return obj

    def get_unstructured_table(
        self, gvr: GroupVersionResource, namespace: str, options: Mapping[str, Any] | None
    ) -> dict[str, Any]:
        """Return the server-generated table for a list request."""
        return self._get(gvr, namespace, None, _query_params(options), as_table=True)

    def get_unstructured_item(
        self, gvr: GroupVersionResource, namespace: str, name: str
    ) -> dict[str, Any]:
        """Return a single named resource."""
        if not name:
            raise KubeError("resource name may not be empty")
        return self._get(gvr, namespace, name, {}, as_table=False)

    def _url(self, gvr: GroupVersionResource, namespace: str, name: str | None) -> str:
        path = f"/apis/{gvr.group}" if gvr.group else "/api"
        path += f"/{gvr.version}"
        if namespace:
            path += f"/namespaces/{quote(namespace, safe='')}"
        path += f"/{gvr.resource}"
        if name is not None:
            path += f"/{quote(name, safe='')}"
        return self._connection.host.rstrip("/") + path

    def _get(
        self,
        gvr: GroupVersionResource,
        namespace: str,
        name: str | None,
        params: dict[str, str],
        *,
        as_table: bool,
    ) -> dict[str, Any]:
        headers = {"Accept": _TABLE_ACCEPT if as_table else _JSON_ACCEPT}
        if self._connection.bearer_token:
            headers["Authorization"] = f"Bearer {self._connection.bearer_token}"
        try:
            response = self._session.get(
                self._url(gvr, namespace, name),
                params=params,
                headers=headers,
                verify=self._connection.verify,
                cert=self._connection.cert,
                timeout=self._connection.timeout,
            )
        except requests.RequestException as err:
            raise KubeError(f"error executing request: {err}") from err
        with response:
            if response.status_code == 404:
                raise NotFoundError(f"error executing request: {_error_message(response)}")
            if response.status_code >= 400:
                raise KubeError(
                    f"error executing request: status {response.status_code}: "
                    f"{_error_message(response)}"
                )
            try:
                body = response.json()
            except ValueError as err:
                raise KubeError(f"error executing request: invalid JSON: {err}") from err
        if not isinstance(body, dict):
            raise KubeError("error executing request: response is not an object")
        return body

    # Printing

    def print_as_json(self, obj: Mapping[str, Any]) -> str:
        """Serialize as indented JSON; lists get the generic List kind, managed fields go."""
        prepared = self._prepare(obj)
        try:
            text = json.dumps(prepared, indent=4, sort_keys=True, ensure_ascii=False)
        except (TypeError, ValueError) as err:
            raise KubeError(f"error serializing resource: {err}") from err
        for char, escaped in _JSON_ESCAPES:
            text = text.replace(char, escaped)
        return text + "\n"

    def print_as_yaml(self, obj: Mapping[str, Any]) -> str:
        """Serialize as YAML; lists get the generic List kind, managed fields go."""
        prepared = self._prepare(obj)
        try:
            return yaml.safe_dump(
                prepared, default_flow_style=False, sort_keys=True, allow_unicode=True
            )
        except yaml.YAMLError as err:
            raise KubeError(f"error serializing resource: {err}") from err

    def _prepare(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        prepared = copy.deepcopy(dict(obj))
        if _is_list(prepared):
            prepared["kind"] = "List"
            prepared["apiVersion"] = "v1"
            metadata = prepared.get("metadata")
            if not isinstance(metadata, dict):
                metadata = prepared["metadata"] = {}
            metadata["resourceVersion"] = ""
            metadata["selfLink"] = ""
            for item in prepared.get("items") or []:
                if isinstance(item, dict):
                    _omit_managed_fields(item)
        else:
            _omit_managed_fields(prepared)
        return prepared

    def print_as_table(self, obj: Mapping[str, Any], print_options: PrintOptions) -> str:
        """Render a server-generated table as aligned, human-readable text."""
        columns, rows = _to_table(obj)
        if not rows:
            return ""
        shown = [
            index
            for index, column in enumerate(columns)
            if print_options.wide or column.get("priority", 0) == 0
        ]
        lines: list[list[str]] = []
        if not print_options.no_headers:
            header = [str(columns[index].get("name", "")).upper() for index in shown]
            if print_options.with_namespace:
                header.insert(0, "NAMESPACE")
            if print_options.show_labels:
                header.append("LABELS")
            lines.append(header)
        for row in rows:
            cells = row.get("cells") or []
            line = [_format_cell(cells[index]) if index < len(cells) else "" for index in shown]
            metadata = _row_metadata(row)
            if print_options.with_namespace:
                line.insert(0, str(metadata.get("namespace", "")))
            if print_options.show_labels:
                line.append(_format_labels(metadata.get("labels")))
            lines.append(line)
        return _align(lines)

    # Custom resource definitions

    def get_crd_unstructured_list(self) -> dict[str, Any]:
        """List all CRDs, trying each supported CRD API version in turn."""
        for gvr in CRD_GVRS:
            try:
                return self.get_unstructured_list(gvr, "", {})
            except NotFoundError:
                continue
        raise KubeError("no CRD resource type found")

    def get_gvr_for_crd(self, crd_name: str) -> GroupVersionResource:
        """Fetch the named CRD and return the resource type it defines."""
        for gvr in CRD_GVRS:
            try:
                crd = self.get_unstructured_item(gvr, "", crd_name)
            except NotFoundError:
                continue
            return self.get_gvr_from_crd(crd)
        raise KubeError(f"crd {crd_name} not found")

    def get_gvr_from_crd(self, crd: Mapping[str, Any]) -> GroupVersionResource:
        """Return the resource type a CRD defines, using its storage version."""
        metadata = crd.get("metadata")
        name = metadata.get("name", "") if isinstance(metadata, Mapping) else ""
        group_resource = parse_group_resource(name if isinstance(name, str) else "")

        spec = crd.get("spec")
        versions = spec.get("versions") if isinstance(spec, Mapping) else None
        if not isinstance(versions, list):
            raise KubeError("spec.versions not found")

        version = ""
        for item in versions:
            if not isinstance(item, Mapping):
                raise KubeError("spec.versions[] is not an object")
            is_storage = item.get("storage")
            if not isinstance(is_storage, bool):
                raise KubeError("spec.versions[].storage not found")
            if is_storage:
                version = item.get("name")
                if not isinstance(version, str):
                    raise KubeError("spec.versions[].name not found")
                break
        if not version:
            raise KubeError("no storage version found")
        return dataclasses.replace(group_resource, version=version)