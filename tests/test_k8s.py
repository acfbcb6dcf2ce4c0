from decimal import Decimal

import pytest

from lwskit.k8s import (
    Container,
    EnvVar,
    ObjectMeta,
    Pod,
    PodSpec,
    PodStatus,
    parse_quantity,
)


@pytest.mark.parametrize(
    "text, want",
    [
        ("4", Decimal(4)),
        ("500m", Decimal("0.5")),
        ("1Ki", Decimal(1024)),
    ],
)
def test_parse_quantity_pinned(text, want):
    assert parse_quantity(text) == want


def test_parse_quantity_decimal_and_exponent_agree():
    assert parse_quantity("2k") == parse_quantity("2e3")


def test_parse_quantity_binary_is_larger_than_decimal():
    assert parse_quantity("1Mi") > parse_quantity("1M")


def test_parse_quantity_suffix_scales_by_thousand():
    assert parse_quantity("3G") == parse_quantity("3M") * parse_quantity("1k")


def test_parse_quantity_accepts_numbers():
    assert parse_quantity(4) == parse_quantity("4")
    assert parse_quantity(Decimal("0.5")) == parse_quantity("500m")


def test_parse_quantity_zero():
    assert parse_quantity("0").is_zero()


@pytest.mark.parametrize("text", ["", "abc", "4X", "1.2.3", "Gi"])
def test_parse_quantity_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_quantity(text)


def test_parse_quantity_rejects_bool():
    with pytest.raises(ValueError):
        parse_quantity(True)


def test_pod_properties_delegate_to_metadata():
    meta = ObjectMeta(name="p", namespace="ns", labels={"a": "b"}, annotations={"c": "d"})
    pod = Pod(metadata=meta)
    assert pod.name == "p"
    assert pod.namespace == "ns"
    assert pod.labels is meta.labels
    assert pod.annotations is meta.annotations


def test_defaults_are_independent():
    first = Pod()
    second = Pod()
    first.labels["x"] = "y"
    first.spec.containers.append(Container(name="c"))
    assert second.labels == {}
    assert second.spec.containers == []


def test_status_conditions_default_to_none():
    assert PodStatus().conditions is None


def test_container_equality_includes_env():
    left = Container(name="c", env=[EnvVar("A", "1")])
    right = Container(name="c", env=[EnvVar("A", "2")])
    assert left != right
    assert left == Container(name="c", env=[EnvVar("A", "1")])


def test_pod_spec_holds_subdomain():
    spec = PodSpec(subdomain="sub")
    assert Pod(spec=spec).spec.subdomain == "sub"