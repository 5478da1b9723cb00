import json
from urllib.parse import parse_qs, urlparse

import pytest
import responses
import yaml

from periscope.kube import (
    CRD_GVRS,
    GroupVersionResource,
    KubeCommandRunner,
    KubeConnection,
    KubeError,
    NotFoundError,
    PrintOptions,
    parse_group_resource,
)

HOST = "https://kube.example.com"
PODS = GroupVersionResource("", "v1", "pods")
DEPLOYMENTS = GroupVersionResource("apps", "v1", "deployments")


@pytest.fixture
def runner():
    return KubeCommandRunner(KubeConnection(HOST, bearer_token="token"))


def _table():
    return {
        "kind": "Table",
        "apiVersion": "meta.k8s.io/v1",
        "columnDefinitions": [
            {"name": "Name", "type": "string", "priority": 0},
            {"name": "Age", "type": "string", "priority": 0},
            {"name": "IP", "type": "string", "priority": 1},
        ],
        "rows": [
            {
                "cells": ["web-abcdef", "5m", "10.0.0.1"],
                "object": {"metadata": {"namespace": "shop", "labels": {"app": "web"}}},
            },
            {
                "cells": ["db", "12h", "10.0.0.2"],
                "object": {"metadata": {"namespace": "shop", "labels": {}}},
            },
        ],
    }


def _crd(versions):
    return {
        "kind": "CustomResourceDefinition",
        "metadata": {"name": "widgets.example.com"},
        "spec": {"versions": versions},
    }


def test_gvr_string_form():
    assert str(DEPLOYMENTS) == "apps/v1, Resource=deployments"


def test_parse_group_resource_with_and_without_group():
    assert parse_group_resource("widgets.example.com") == GroupVersionResource(
        "example.com", "", "widgets"
    )
    assert parse_group_resource("pods") == GroupVersionResource("", "", "pods")


def test_get_unstructured_list_builds_core_namespaced_request(runner):
    body = {"kind": "PodList", "apiVersion": "v1", "items": [{"metadata": {"name": "a"}}]}
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{HOST}/api/v1/namespaces/default/pods", json=body)
        result = runner.get_unstructured_list(
            PODS, "default", {"labelSelector": "app=web", "limit": 5, "watch": False}
        )
        request = rsps.calls[0].request
    assert result == body
    assert request.headers["Authorization"] == "Bearer token"
    assert request.headers["Accept"] == "application/json"
    assert parse_qs(urlparse(request.url).query) == {
        "labelSelector": ["app=web"],
        "limit": ["5"],
    }


def test_get_unstructured_table_uses_table_accept_header(runner):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{HOST}/apis/apps/v1/deployments", json=_table())
        result = runner.get_unstructured_table(DEPLOYMENTS, "", None)
        request = rsps.calls[0].request
    assert result == _table()
    assert request.headers["Accept"] == "application/json;as=Table;v=v1;g=meta.k8s.io"


def test_get_unstructured_item_not_found(runner):
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{HOST}/api/v1/namespaces/default/pods/missing",
            json={"kind": "Status", "message": "pods \"missing\" not found"},
            status=404,
        )
        with pytest.raises(NotFoundError, match="missing"):
            runner.get_unstructured_item(PODS, "default", "missing")


def test_server_error_is_kube_error_not_not_found(runner):
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{HOST}/api/v1/pods",
            json={"kind": "Status", "message": "forbidden here"},
            status=403,
        )
        with pytest.raises(KubeError, match="forbidden here") as info:
            runner.get_unstructured_list(PODS, "", None)
    assert not isinstance(info.value, NotFoundError)


def test_empty_name_is_rejected(runner):
    with pytest.raises(KubeError):
        runner.get_unstructured_item(PODS, "default", "")


def test_json_object_output_wraps_not_found(runner):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{HOST}/api/v1/namespaces/ns/pods/p", status=404)
        with pytest.raises(NotFoundError, match="error requesting"):
            runner.get_json_object_output(PODS, "ns", "p")


def test_crd_list_falls_back_to_older_version(runner):
    body = {"kind": "CustomResourceDefinitionList", "items": []}
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{HOST}/apis/apiextensions.k8s.io/v1/customresourcedefinitions", status=404)
        rsps.add(
            responses.GET,
            f"{HOST}/apis/apiextensions.k8s.io/v1beta1/customresourcedefinitions",
            json=body,
        )
        assert runner.get_crd_unstructured_list() == body
        assert len(rsps.calls) == len(CRD_GVRS)


def test_crd_list_fails_when_no_version_found(runner):
    with responses.RequestsMock() as rsps:
        for gvr in CRD_GVRS:
            rsps.add(responses.GET, f"{HOST}/apis/{gvr.group}/{gvr.version}/{gvr.resource}", status=404)
        with pytest.raises(KubeError, match="no CRD resource type found"):
            runner.get_crd_unstructured_list()


def test_gvr_for_crd_uses_storage_version(runner):
    crd = _crd([{"name": "v1alpha1", "storage": False}, {"name": "v1", "storage": True}])
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{HOST}/apis/apiextensions.k8s.io/v1/customresourcedefinitions/widgets.example.com",
            json=crd,
        )
        gvr = runner.get_gvr_for_crd("widgets.example.com")
    assert gvr == GroupVersionResource("example.com", "v1", "widgets")


def test_gvr_for_missing_crd(runner):
    with responses.RequestsMock() as rsps:
        for gvr in CRD_GVRS:
            rsps.add(responses.GET, f"{HOST}/apis/{gvr.group}/{gvr.version}/{gvr.resource}/nope", status=404)
        with pytest.raises(KubeError, match="crd nope not found"):
            runner.get_gvr_for_crd("nope")


@pytest.mark.parametrize(
    ("crd", "message"),
    [
        ({"metadata": {"name": "a.b"}, "spec": {}}, "spec.versions not found"),
        (_crd([{"name": "v1"}]), r"spec.versions\[\].storage not found"),
        (_crd([{"storage": True}]), r"spec.versions\[\].name not found"),
        (_crd([{"name": "v1", "storage": False}]), "no storage version found"),
    ],
)
def test_gvr_from_crd_errors(runner, crd, message):
    with pytest.raises(KubeError, match=message):
        runner.get_gvr_from_crd(crd)


def test_print_as_json_list_gets_generic_kind_and_drops_managed_fields(runner):
    original = {
        "kind": "PodList",
        "apiVersion": "v1",
        "metadata": {"resourceVersion": "42"},
        "items": [{"metadata": {"name": "a", "managedFields": [{"manager": "x"}]}}],
    }
    text = runner.print_as_json(original)
    parsed = json.loads(text)
    assert text.endswith("}\n")
    assert parsed["kind"] == "List"
    assert parsed["apiVersion"] == "v1"
    assert parsed["metadata"] == {"resourceVersion": "", "selfLink": ""}
    assert parsed["items"] == [{"metadata": {"name": "a"}}]
    assert original["kind"] == "PodList"
    assert original["items"][0]["metadata"]["managedFields"] == [{"manager": "x"}]


def test_print_as_json_escapes_html_characters(runner):
    obj = {"kind": "ConfigMap", "data": {"k": "a<b>&c"}}
    text = runner.print_as_json(obj)
    assert "<" not in text and ">" not in text and "&" not in text
    assert json.loads(text) == obj


def test_print_as_yaml_object_round_trip(runner):
    obj = {
        "kind": "Pod",
        "apiVersion": "v1",
        "metadata": {"name": "a", "managedFields": [{"manager": "x"}]},
        "spec": {"containers": [{"name": "c", "image": "nginx"}]},
    }
    parsed = yaml.safe_load(runner.print_as_yaml(obj))
    expected = {**obj, "metadata": {"name": "a"}}
    assert parsed == expected


def test_yaml_list_output(runner):
    body = {"kind": "PodList", "apiVersion": "v1", "items": [{"metadata": {"name": "a"}}]}
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{HOST}/api/v1/pods", json=body)
        parsed = yaml.safe_load(runner.get_yaml_list_output(PODS, "", None))
    assert parsed["kind"] == "List"
    assert parsed["items"] == body["items"]


def test_print_as_table_hides_wide_columns_and_aligns(runner):
    text = runner.print_as_table(_table(), PrintOptions())
    lines = text.splitlines()
    assert text.endswith("\n")
    assert lines[0].split() == ["NAME", "AGE"]
    assert [line.split() for line in lines[1:]] == [["web-abcdef", "5m"], ["db", "12h"]]
    starts = {line.index(line.split()[1]) for line in lines}
    assert len(starts) == 1


def test_print_as_table_wide_shows_all_columns(runner):
    lines = runner.print_as_table(_table(), PrintOptions(wide=True)).splitlines()
    assert lines[0].split() == ["NAME", "AGE", "IP"]
    assert lines[1].split()[-1] == "10.0.0.1"


def test_print_as_table_namespace_labels_and_no_headers(runner):
    options = PrintOptions(no_headers=True, with_namespace=True, show_labels=True)
    lines = runner.print_as_table(_table(), options).splitlines()
    assert len(lines) == 2
    assert lines[0].split() == ["shop", "web-abcdef", "5m", "app=web"]
    assert lines[1].split()[-1] == "<none>"


def test_print_as_table_empty_and_invalid(runner):
    empty = {**_table(), "rows": []}
    assert runner.print_as_table(empty, PrintOptions()) == ""
    with pytest.raises(KubeError, match="error converting"):
        runner.print_as_table({"rows": "not a list"}, PrintOptions())


def test_get_table_output_end_to_end(runner):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{HOST}/api/v1/namespaces/shop/pods", json=_table())
        text = runner.get_table_output(PODS, "shop", None, PrintOptions())
    assert text == runner.print_as_table(_table(), PrintOptions())
    assert text.splitlines()[0].split() == ["NAME", "AGE"]