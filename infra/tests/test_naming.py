"""Tests for deterministic names and the resource index."""
import pytest

from stacks.errors import NameCollisionError
from stacks.naming import ResourceIndex, resource_id

from conftest import make_config


def test_resource_id_with_and_without_role():
    config = make_config(stage_name="dev")
    assert resource_id(config, "cluster") == "dev-redash-cluster"
    assert resource_id(config, "server", "task-definition") == "dev-redash-server-task-definition"


def test_resource_id_is_namespaced_by_stage():
    assert resource_id(make_config(stage_name="a"), "rds") != resource_id(
        make_config(stage_name="b"), "rds"
    )


def test_index_add_and_get():
    index = ResourceIndex()
    marker = object()

    assert index.add("network", marker) is marker
    assert index.get("network") is marker
    assert "network" in index
    assert len(index) == 1
    assert index.names() == ["network"]


def test_index_rejects_duplicate_names():
    index = ResourceIndex()
    index.add("database", object())

    with pytest.raises(NameCollisionError):
        index.add("database", object())


def test_index_get_unknown():
    with pytest.raises(KeyError):
        ResourceIndex().get("missing")
