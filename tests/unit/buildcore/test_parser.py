"""Tests for buildcore/pob/parser.py and the import facade."""
from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from buildcore.pob.decoder import encode_pob_code
from buildcore.pob.importer import import_build
from buildcore.pob.parser import (
    PoBParser,
    clean_title,
    parse_build,
    parse_mastery_effects,
    parse_node_list,
)
from buildcore.result import Err, Ok

pytestmark = pytest.mark.unit


def _spec_xml(*specs: str, skills: str = "", items: str = "") -> str:
    return (
        '<PathOfBuilding><Build level="10" className="Witch" ascendClassName=""/>'
        f"<Tree>{''.join(specs)}</Tree><Skills>{skills}</Skills><Items>{items}</Items>"
        "</PathOfBuilding>"
    )


class TestHelpers:
    """Title, mastery and node list helpers."""

    def test_clean_title_strips_color_codes(self):
        assert clean_title("^xE05030Act ^71") == "Act 1"
        assert clean_title("  Endgame ") == "Endgame"

    def test_parse_mastery_effects(self):
        assert parse_mastery_effects("{4,7},{12,34}") == {"4": "7", "12": "34"}
        assert parse_mastery_effects("") == {}

    def test_parse_node_list(self):
        assert parse_node_list("1,2, 3,,x") == (1, 2, 3)
        assert parse_node_list("") == ()


class TestParseBuild:
    """Top-level build fields."""

    def test_sample_build(self, tree_registry, sample_pob_xml):
        build = PoBParser(tree_registry).parse(sample_pob_xml)

        assert build is not None
        assert build.class_name == "Marauder"
        assert build.ascendancy_name == "Chieftain"
        assert build.level == 93
        assert build.character_name == "TestChar"
        assert build.main_socket_group == 2
        assert build.tree_version == "3_25"
        assert build.notes == "Level with Cyclone after act 2."
        assert build.display_name == "Level 93 Chieftain"

    def test_missing_build_element_returns_none(self, tree_registry):
        assert PoBParser(tree_registry).parse("<PathOfBuilding><Tree/></PathOfBuilding>") is None

    def test_malformed_xml_returns_none(self, tree_registry, caplog):
        with caplog.at_level(logging.ERROR):
            assert PoBParser(tree_registry).parse("<PathOfBuilding><Build>") is None
        assert "Failed to parse PoB XML" in caplog.text

    def test_entity_declarations_are_rejected(self, tree_registry):
        xml = (
            '<?xml version="1.0"?><!DOCTYPE p [<!ENTITY x "boom">]>'
            '<PathOfBuilding><Build/></PathOfBuilding>'
        )
        assert PoBParser(tree_registry).parse(xml) is None

    def test_no_specs_returns_none(self, tree_registry):
        assert PoBParser(tree_registry).parse(_spec_xml()) is None

    def test_parse_build_wrapper(self, tree_registry, sample_pob_xml):
        assert parse_build(sample_pob_xml, tree_registry) is not None


class TestTreeSpecs:
    """Snapshot decoding, filtering and inclusion."""

    def test_only_resolvable_specs_are_kept(self, tree_registry, sample_pob_xml):
        build = PoBParser(tree_registry).parse(sample_pob_xml)

        assert [s.title for s in build.tree_specs] == ["Act 1", "Endgame"]

    def test_unknown_nodes_are_filtered(self, tree_registry, sample_pob_xml):
        spec = PoBParser(tree_registry).parse(sample_pob_xml).tree_specs[0]

        assert spec.parsed_url.nodes == ("1", "2", "3")
        assert spec.resolved_nodes == ("1", "2", "3")
        assert spec.node_count == 3
        assert spec.parsed_url.masteries == {"4": "7"}

    def test_spec_fields(self, tree_registry, sample_pob_xml):
        spec = PoBParser(tree_registry).parse(sample_pob_xml).tree_specs[0]

        assert spec.allocated_nodes == (1, 2, 3)
        assert spec.nodes == "1,2,3"
        assert spec.class_id == 1
        assert spec.ascend_class_id == 3
        assert spec.mastery_effects == {"4": "7"}
        assert [(s.node_id, s.item_id) for s in spec.sockets] == [(5, 3), (9, 1)]

    def test_header_only_snapshot_is_dropped(self, tree_registry, tree_url_factory):
        """A spec whose decoded nodes are all unknown is dropped even with legacy nodes."""
        xml = _spec_xml(
            f'<Spec title="Header" nodes="998"><URL>{tree_url_factory([998])}</URL></Spec>',
            f'<Spec title="Real" nodes="1"><URL>{tree_url_factory([1])}</URL></Spec>',
        )
        build = PoBParser(tree_registry).parse(xml)

        assert [s.title for s in build.tree_specs] == ["Real"]

    def test_all_snapshots_header_only_returns_none(self, tree_registry, tree_url_factory):
        xml = _spec_xml(f'<Spec nodes=""><URL>{tree_url_factory([998])}</URL></Spec>')
        assert PoBParser(tree_registry).parse(xml) is None

    def test_legacy_spec_without_url(self, tree_registry):
        build = PoBParser(tree_registry).parse(_spec_xml('<Spec nodes="1,2,777"/>'))

        spec = build.tree_specs[0]
        assert spec.title == "Tree 1"
        assert spec.parsed_url is None
        assert spec.resolved_nodes == ("1", "2")
        assert spec.allocated_nodes == (1, 2, 777)
        assert spec.nodes == "1,2,777"
        assert spec.tree_version == "3_25"

    def test_url_less_spec_with_only_unknown_nodes_is_dropped(self, tree_registry):
        xml = _spec_xml('<Spec title="Stale" nodes="998,999"/>', '<Spec title="Real" nodes="1"/>')
        build = PoBParser(tree_registry).parse(xml)

        assert [s.title for s in build.tree_specs] == ["Real"]

    def test_only_unknown_url_less_spec_returns_none(self, tree_registry):
        assert PoBParser(tree_registry).parse(_spec_xml('<Spec nodes="998,999"/>')) is None

    def test_old_url_version_treated_as_url_less(self, tree_registry, tree_url_factory, caplog):
        xml = _spec_xml(f'<Spec nodes="1,2"><URL>{tree_url_factory([1], version=4)}</URL></Spec>')

        with caplog.at_level(logging.WARNING):
            build = PoBParser(tree_registry).parse(xml)

        assert build.tree_specs[0].parsed_url is None
        assert build.tree_specs[0].resolved_nodes == ("1", "2")
        assert "version 4" in caplog.text

    def test_unknown_tree_version_uses_default_context(self, tree_registry, tree_url_factory):
        xml = _spec_xml(
            f'<Spec treeVersion="9_99" nodes=""><URL>{tree_url_factory([1, 998])}</URL></Spec>'
        )
        spec = PoBParser(tree_registry).parse(xml).tree_specs[0]

        assert spec.parsed_url.nodes == ("1",)
        assert spec.tree_version == "9_99"

    def test_build_tree_version_from_first_included_spec(self, tree_registry, tree_url_factory):
        xml = _spec_xml(
            '<Spec treeVersion="3_20" nodes=""/>',
            '<Spec treeVersion="3_24" nodes="1"/>',
            '<Spec treeVersion="3_25" nodes="2"/>',
        )
        assert PoBParser(tree_registry).parse(xml).tree_version == "3_24"


class TestGems:
    """Socket group extraction."""

    def test_skill_sets_are_flattened(self, tree_registry, sample_pob_xml):
        build = PoBParser(tree_registry).parse(sample_pob_xml)

        assert [s.title for s in build.skill_sets] == ["Leveling", "Skill Set 2"]
        assert len(build.gems) == 2
        assert build.gems[0].label == "Cyclone"
        assert build.gems[0].skill_set_title == "Leveling"
        assert build.gems[0].gems[1].skill_set_title == "Leveling"
        assert build.gems[1].skill_set_title == "Skill Set 2"
        assert build.gems[1].enabled is False

    def test_label_strips_support_prefix_when_all_supports(self, tree_registry):
        skills = '<Skill><Gem nameSpec="Support: Added Fire Damage"/></Skill>'
        build = PoBParser(tree_registry).parse(_spec_xml('<Spec nodes="1"/>', skills=skills))

        assert build.gems[0].label == "Added Fire Damage"
        assert build.gems[0].gems[0].is_support

    def test_legacy_skills_without_skill_sets(self, tree_registry):
        skills = '<Skill slot="Weapon 1"><Gem nameSpec="Fireball" level="5"/></Skill><Skill><Gem nameSpec=""/></Skill>'
        build = PoBParser(tree_registry).parse(_spec_xml('<Spec nodes="1"/>', skills=skills))

        assert build.skill_sets == ()
        assert len(build.gems) == 1
        assert build.gems[0].slot == "Weapon 1"
        assert build.gems[0].skill_set_title is None
        assert build.gems[0].gems[0].level == 5

    def test_skill_sets_without_groups_fall_back_to_legacy(self, tree_registry):
        skills = '<SkillSet title="Empty"/><Skill><Gem nameSpec="Arc"/></Skill>'
        build = PoBParser(tree_registry).parse(_spec_xml('<Spec nodes="1"/>', skills=skills))

        assert build.skill_sets == ()
        assert [g.label for g in build.gems] == ["Arc"]


class TestItemSets:
    """Item sets and the tree jewel merge."""

    def test_slots_are_resolved_and_parsed(self, tree_registry, sample_pob_xml):
        item_set = PoBParser(tree_registry).parse(sample_pob_xml).item_sets[0]

        assert item_set.title == "Act 1"
        assert item_set.items["Helmet"].name == "Goldrim"
        assert item_set.items["Gloves"].implicit_mods == ("+50 to maximum Life",)
        assert item_set.items["Gloves"].crafted_mods == ("+25% to Cold Resistance",)
        assert "Weapon 1" not in item_set.items

    def test_tree_jewels_are_merged(self, tree_registry, sample_pob_xml):
        items = PoBParser(tree_registry).parse(sample_pob_xml).item_sets[0].items

        assert items["Jewel 1"].name == "Gloom Bane"
        assert list(items) == ["Helmet", "Gloves", "Jewel 1"]

    def test_non_jewel_sockets_are_ignored(self, tree_registry):
        spec = (
            '<Spec title="Main" nodes="1"><Sockets>'
            '<Socket nodeId="5" itemId="2"/><Socket nodeId="6" itemId="3"/>'
            '</Sockets></Spec>'
        )
        items = (
            '<Item id="2">Rarity: RARE\nIron Ring\nRing Name\nImplicits: 0\n</Item>'
            '<Item id="3">Rarity: RARE\nViridian Jewel\nFoe Eye\nImplicits: 0\n</Item>'
            '<ItemSet id="4"/>'
        )
        item_set = PoBParser(tree_registry).parse(_spec_xml(spec, items=items)).item_sets[0]

        assert item_set.title == "Gear Set 4"
        assert list(item_set.items) == ["Jewel 1"]
        assert item_set.items["Jewel 1"].id == 3

    def test_best_title_match_picks_tree(self, tree_registry):
        specs = (
            '<Spec title="Early Leveling" nodes="1"><Sockets><Socket nodeId="5" itemId="1"/></Sockets></Spec>',
            '<Spec title="Late Endgame" nodes="1"><Sockets><Socket nodeId="5" itemId="2"/></Sockets></Spec>',
        )
        items = (
            '<Item id="1">Rarity: RARE\nCobalt Jewel\nEarly Eye\nImplicits: 0\n</Item>'
            '<Item id="2">Rarity: RARE\nCobalt Jewel\nLate Eye\nImplicits: 0\n</Item>'
            '<ItemSet id="1" title="Endgame gear"/>'
        )
        item_set = PoBParser(tree_registry).parse(_spec_xml(*specs, items=items)).item_sets[0]

        assert item_set.items["Jewel 1"].name == "Late Eye"

    def test_jewel_key_skips_named_slot(self, tree_registry):
        spec = '<Spec nodes="1"><Sockets><Socket nodeId="5" itemId="2"/></Sockets></Spec>'
        items = (
            '<Item id="1">Rarity: RARE\nCobalt Jewel\nSlotted Eye\nImplicits: 0\n</Item>'
            '<Item id="2">Rarity: RARE\nCobalt Jewel\nTree Eye\nImplicits: 0\n</Item>'
            '<ItemSet id="1"><Slot name="Jewel 1" itemId="1"/></ItemSet>'
        )
        items_by_slot = PoBParser(tree_registry).parse(_spec_xml(spec, items=items)).item_sets[0].items

        assert items_by_slot["Jewel 1"].name == "Slotted Eye"
        assert items_by_slot["Jewel 2"].name == "Tree Eye"

    def test_slotted_jewel_is_not_duplicated_from_tree(self, tree_registry):
        spec = '<Spec nodes="1"><Sockets><Socket nodeId="5" itemId="1"/></Sockets></Spec>'
        items = (
            '<Item id="1">Rarity: RARE\nCobalt Jewel\nShared Eye\nImplicits: 0\n</Item>'
            '<ItemSet id="1"><Slot name="Jewel 1" itemId="1"/></ItemSet>'
        )
        items_by_slot = PoBParser(tree_registry).parse(_spec_xml(spec, items=items)).item_sets[0].items

        assert list(items_by_slot) == ["Jewel 1"]
        assert [item.id for item in items_by_slot.values()] == [1]


class TestImportBuild:
    """Tests for import_build."""

    def test_ok_for_valid_code(self, tree_registry, sample_pob_xml):
        result = import_build(encode_pob_code(sample_pob_xml), tree_registry)

        assert isinstance(result, Ok)
        assert result.unwrap().class_name == "Marauder"

    def test_err_for_undecodable_code(self, tree_registry):
        result = import_build("not a pob code!!", tree_registry)

        assert isinstance(result, Err)
        assert "Invalid PoB code" in result.error

    def test_err_for_build_without_tree(self, tree_registry):
        result = import_build(encode_pob_code(_spec_xml()), tree_registry)

        assert result.is_err()
        assert "passive tree" in result.error

    def test_fetch_failure_is_err(self, tree_registry):
        import requests

        with patch("buildcore.pob.decoder.requests.get", side_effect=requests.ConnectionError("offline")):
            result = import_build("https://pobb.in/abc123", tree_registry)

        assert result.is_err()
        assert "Could not fetch pobb.in" in result.error
