"""Tests for loading mapping files."""

import json
from pathlib import Path
from typing import Any

import pytest

from rest_bridge.exceptions import MappingConfigError
from rest_bridge.mapping import ManagedObjectModel, UniquingType, load_mapping
from rest_bridge.models import UniquingKind
from rest_bridge.utils.transformers import UUIDTransformer
from tests.sample_models import SampleBase

MAPPING_FILE: dict[str, Any] = {
    "entities": {
        "Base": {"attributes": ["remote_id"]},
        "Sub1": {"superentity": "Base", "attributes": ["name"]},
        "Sub2": {
            "superentity": "Base",
            "relationships": {"owner": {"destination": "Sub1"}},
        },
    },
    "mapping": {
        "Base": {
            "rest_path": "things",
            "uniquing": {"kind": "on_property", "properties": ["remote_id"]},
            "properties": {"remote_id": {"rest_name": "id", "transformer": "uuid"}},
        },
        "Sub1": {"properties": {"name": {"rest_name": "title", "read_only": True}}},
    },
    "forced_parameters_on_fetch": {"v": "2"},
    "forced_values_on_save": {"source": "app"},
}


def write_mapping(tmp_path: Path, content: Any) -> Path:
    path = tmp_path / "mapping.json"
    path.write_text(content if isinstance(content, str) else json.dumps(content))
    return path


class TestLoadMapping:
    def test_builds_model_and_mapping(self, tmp_path: Path) -> None:
        model, mapping = load_mapping(write_mapping(tmp_path, MAPPING_FILE))

        assert [e.name for e in model["Base"].subentities] == ["Sub1", "Sub2"]
        assert model["Sub2"].relationships["owner"].destination == "Sub1"
        assert mapping.rest_path(model["Sub2"]) == "things"
        assert mapping.entity_uniquing_type(model["Sub1"]) == UniquingType.on_property(
            "remote_id"
        )
        assert mapping.forced_parameters_on_fetch == {"v": "2"}
        assert mapping.forced_values_on_save == {"source": "app"}

    def test_property_mappings(self, tmp_path: Path) -> None:
        model, mapping = load_mapping(write_mapping(tmp_path, MAPPING_FILE))

        remote_id = mapping.property_mapping("remote_id", model["Sub1"])
        name = mapping.property_mapping("name", model["Base"])
        assert remote_id is not None
        assert isinstance(remote_id.transformer, UUIDTransformer)
        assert name is not None
        assert name.rest_name == "title"
        assert name.read_only is True
        assert mapping.property_mapping("name", model["Sub2"]) is None

    def test_against_sqlalchemy_model(self, tmp_path: Path) -> None:
        content = {
            "mapping": {
                "Person": {
                    "rest_path": "people",
                    "uniquing": {"kind": "singleton", "id": "me"},
                    "properties": {"name": {"rest_name": "full_name"}},
                }
            }
        }
        object_model = ManagedObjectModel.from_declarative_base(SampleBase)

        model, mapping = load_mapping(write_mapping(tmp_path, content), object_model)

        assert model is object_model
        assert mapping.rest_path(model["Customer"]) == "people"
        assert mapping.entity_uniquing_type(model["Employee"]).kind is UniquingKind.SINGLETON

    def test_on_properties_uniquing(self, tmp_path: Path) -> None:
        content = {
            "entities": {"Slot": {"attributes": ["owner", "slug"]}},
            "mapping": {
                "Slot": {
                    "uniquing": {
                        "kind": "on_properties",
                        "properties": ["owner", "slug"],
                        "prefix": "slot:",
                        "separator": "/",
                    }
                }
            },
        }
        model, mapping = load_mapping(write_mapping(tmp_path, content))

        uniquing = mapping.entity_uniquing_type(model["Slot"])
        assert uniquing.uniquing_id({"owner": "ada", "slug": "x"}) == "slot:ada/x"


class TestLoadMappingErrors:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(MappingConfigError):
            load_mapping(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        with pytest.raises(MappingConfigError):
            load_mapping(write_mapping(tmp_path, "{not json"))

    def test_unknown_entity(self, tmp_path: Path) -> None:
        content = {"mapping": {"Ghost": {"rest_path": "ghosts"}}}

        with pytest.raises(MappingConfigError, match="unknown entity 'Ghost'"):
            load_mapping(write_mapping(tmp_path, content))

    def test_unknown_superentity(self, tmp_path: Path) -> None:
        content = {"entities": {"Sub": {"superentity": "Base"}}}

        with pytest.raises(MappingConfigError, match="Unknown superentity"):
            load_mapping(write_mapping(tmp_path, content))

    def test_unknown_transformer(self, tmp_path: Path) -> None:
        content = {
            "entities": {"Base": {}},
            "mapping": {"Base": {"properties": {"price": {"rest_name": "p", "transformer": "x"}}}},
        }

        with pytest.raises(MappingConfigError, match="Unknown transformer"):
            load_mapping(write_mapping(tmp_path, content))

    @pytest.mark.parametrize(
        "uniquing",
        [
            {"kind": "singleton"},
            {"kind": "on_property", "properties": []},
            {"kind": "on_property", "properties": ["a", "b"]},
            {"kind": "on_properties"},
            {"kind": "by_magic"},
        ],
    )
    def test_invalid_uniquing(self, tmp_path: Path, uniquing: dict[str, Any]) -> None:
        content = {"entities": {"Base": {}}, "mapping": {"Base": {"uniquing": uniquing}}}

        with pytest.raises(MappingConfigError):
            load_mapping(write_mapping(tmp_path, content))
