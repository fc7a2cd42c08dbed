"""Tests for the entity hierarchy and its construction from SQLAlchemy models."""

import pytest

from rest_bridge.mapping import ManagedObjectModel, RelationshipDescription
from tests.sample_models import Customer, Employee, Person, SampleBase, Team


class TestManagedObjectModel:
    def test_add_entity_links_parent_and_children(self) -> None:
        model = ManagedObjectModel()
        base = model.add_entity("Base")
        sub1 = model.add_entity("Sub1", "Base")
        sub2 = model.add_entity("Sub2", base)

        assert sub1.superentity is base
        assert sub2.superentity is base
        assert base.subentities == [sub1, sub2]
        assert model.root_entities == [base]
        assert len(model) == 3

    def test_duplicate_name_rejected(self) -> None:
        model = ManagedObjectModel()
        model.add_entity("Base")

        with pytest.raises(ValueError, match="already registered"):
            model.add_entity("Base")

    def test_unknown_superentity_rejected(self) -> None:
        model = ManagedObjectModel()

        with pytest.raises(ValueError, match="Unknown superentity"):
            model.add_entity("Sub", "Missing")

    def test_superentity_from_other_model_rejected(self) -> None:
        other = ManagedObjectModel().add_entity("Base")
        model = ManagedObjectModel()

        with pytest.raises(ValueError, match="does not belong"):
            model.add_entity("Sub", other)

    def test_lookup(self) -> None:
        model = ManagedObjectModel()
        base = model.add_entity("Base")

        assert model["Base"] is base
        assert model.get("Base") is base
        assert model.get("Missing") is None
        assert "Base" in model
        assert list(model) == [base]

    def test_entities_with_same_name_in_different_models_differ(self) -> None:
        a = ManagedObjectModel().add_entity("Base")
        b = ManagedObjectModel().add_entity("Base")

        assert a != b
        assert len({a, b}) == 2


class TestEntityDescription:
    @pytest.fixture
    def model(self) -> ManagedObjectModel:
        model = ManagedObjectModel()
        model.add_entity(
            "Base",
            attributes=["id", "name"],
            relationships={"owner": RelationshipDescription("owner", "Base")},
        )
        model.add_entity("Sub1", "Base", attributes=["name", "extra"])
        model.add_entity("Sub2", "Base")
        model.add_entity(
            "Leaf",
            "Sub1",
            relationships={"items": RelationshipDescription("items", "Sub2", to_many=True)},
        )
        return model

    def test_ancestors_nearest_first(self, model: ManagedObjectModel) -> None:
        assert [e.name for e in model["Leaf"].ancestors()] == ["Sub1", "Base"]
        assert list(model["Base"].ancestors()) == []

    def test_all_attributes_root_first_without_duplicates(self, model: ManagedObjectModel) -> None:
        assert model["Leaf"].all_attributes == ("id", "name", "extra")

    def test_all_relationships_include_inherited(self, model: ManagedObjectModel) -> None:
        assert set(model["Leaf"].all_relationships) == {"owner", "items"}
        assert model["Leaf"].all_relationships["items"].to_many is True

    def test_property_names(self, model: ManagedObjectModel) -> None:
        assert model["Leaf"].property_names == ("id", "name", "extra", "owner", "items")


class TestFromDeclarativeBase:
    @pytest.fixture
    def model(self) -> ManagedObjectModel:
        return ManagedObjectModel.from_declarative_base(SampleBase)

    def test_roots_and_hierarchy(self, model: ManagedObjectModel) -> None:
        assert {e.name for e in model.root_entities} == {"Team", "Person"}
        assert model["Employee"].superentity is model["Person"]
        assert [e.name for e in model["Person"].subentities] == ["Employee", "Customer"]

    def test_models_attached(self, model: ManagedObjectModel) -> None:
        assert model["Person"].model is Person
        assert model["Customer"].model is Customer

    def test_own_attributes_only(self, model: ManagedObjectModel) -> None:
        assert "remote_id" in model["Person"].attributes
        assert model["Employee"].attributes == ("salary",)
        assert "salary" in model["Employee"].all_attributes
        assert "remote_id" in model["Employee"].all_attributes

    def test_relationships(self, model: ManagedObjectModel) -> None:
        team = model["Person"].relationships["team"]
        members = model["Team"].relationships["members"]

        assert team.destination == "Team"
        assert team.to_many is False
        assert members.destination == "Person"
        assert members.to_many is True
        assert model["Employee"].relationships == {}
        assert "team" in model["Employee"].all_relationships

    def test_entity_for_model_and_object(self, model: ManagedObjectModel) -> None:
        assert model.entity_for_model(Employee) is model["Employee"]
        assert model.entity_for_object(Team(name="Core")) is model["Team"]
        assert model.entity_for_model(str) is None
