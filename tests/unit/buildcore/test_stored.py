"""Tests for buildcore/pob/stored.py - persisted build shape."""
from __future__ import annotations

import dataclasses
import json

import pytest

from buildcore.pob.models import Build, ParsedTreeUrl, TreeSpec
from buildcore.pob.parser import parse_build
from buildcore.pob.stored import StoredBuild, create_stored_build

pytestmark = pytest.mark.unit


class VendorMatcher:
    def match_gems(self, gems, character_class):
        return [dataclasses.replace(g, quest=f"{character_class} quest", act=1) for g in gems]


@pytest.fixture
def sample_build(tree_registry, sample_pob_xml):
    return parse_build(sample_pob_xml, tree_registry)


class TestCreateStoredBuild:
    """Deriving the stored form from a Build."""

    def test_copies_build_fields(self, sample_build):
        stored = create_stored_build("CODE", sample_build, now=1_700_000_000_000)

        assert stored.code == "CODE"
        assert stored.class_name == "Marauder"
        assert stored.ascendancy_name == "Chieftain"
        assert stored.level == 93
        assert stored.imported_at == 1_700_000_000_000
        assert stored.tree_specs == sample_build.tree_specs
        assert stored.notes == "Level with Cyclone after act 2."

    def test_first_snapshot_drives_nodes_and_progression(self, sample_build):
        stored = create_stored_build("CODE", sample_build, now=1)

        assert stored.allocated_nodes == (1, 2, 3)
        assert len(stored.tree_progression) == 1
        assert stored.tree_progression[0].node_ids == (1, 2, 3)

    def test_allocated_nodes_fall_back_to_url_nodes(self):
        parsed = ParsedTreeUrl(version=6, class_id=0, ascendancy_id=0, nodes=("5", "6"))
        spec = TreeSpec(title="A", parsed_url=parsed)
        build = Build(class_name="Witch", level=10, tree_specs=(spec,))
        stored = create_stored_build("CODE", build, now=1)

        assert stored.allocated_nodes == (5, 6)
        assert stored.tree_progression[0].node_ids == (5, 6)

    def test_unique_gems(self, sample_build):
        stored = create_stored_build("CODE", sample_build, now=1)
        names = [g.name for g in stored.gems]

        assert "Cyclone" in names
        assert len(names) == len(set(n.lower() for n in names))

    def test_matcher_annotates_gems(self, sample_build):
        stored = create_stored_build("CODE", sample_build, matcher=VendorMatcher(), now=1)

        assert stored.gems
        assert all(g.quest == "Marauder quest" for g in stored.gems)

    def test_build_without_snapshots(self):
        stored = create_stored_build("CODE", Build(class_name="Witch"), now=1)

        assert stored.allocated_nodes == ()
        assert stored.tree_progression[0].node_ids == ()

    def test_defaults_to_current_time(self, sample_build):
        assert create_stored_build("CODE", sample_build).imported_at > 0


class TestSerialization:
    """to_dict / from_dict."""

    def test_json_round_trip(self, sample_build):
        stored = create_stored_build("CODE", sample_build, now=42)
        restored = StoredBuild.from_dict(json.loads(json.dumps(stored.to_dict())))

        assert restored == stored

    def test_snake_case_keys(self, sample_build):
        data = create_stored_build("CODE", sample_build, now=42).to_dict()

        assert data["class_name"] == "Marauder"
        assert data["imported_at"] == 42
        assert data["tree_specs"][0]["parsed_url"]["nodes"] == ["1", "2", "3"]
        assert data["item_sets"][0]["items"]["Helmet"]["name"] == "Goldrim"

    def test_url_less_known_nodes_survive_round_trip(self, tree_registry):
        xml = (
            '<PathOfBuilding><Build level="10" className="Witch"/>'
            '<Tree><Spec title="Legacy" nodes="1,2,777"/></Tree></PathOfBuilding>'
        )
        stored = create_stored_build("CODE", parse_build(xml, tree_registry), now=1)
        data = json.loads(json.dumps(stored.to_dict()))
        restored = StoredBuild.from_dict(data)

        assert data["tree_specs"][0]["known_nodes"] == ["1", "2"]
        assert restored.tree_specs[0].resolved_nodes == ("1", "2")
        assert restored.tree_specs[0].allocated_nodes == (1, 2, 777)
        assert restored == stored

    def test_notes_omitted_when_empty(self):
        stored = create_stored_build("CODE", Build(class_name="Witch"), now=1)
        assert "notes" not in stored.to_dict()

    def test_from_dict_defaults(self):
        stored = StoredBuild.from_dict({})

        assert stored.code == ""
        assert stored.level == 1
        assert stored.tree_specs == ()
        assert stored.notes is None
