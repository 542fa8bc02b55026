"""Tests for buildcore/pob/markup.py - XML walk into element records."""
from __future__ import annotations

import defusedxml.ElementTree as ET
import pytest

from buildcore.pob.markup import visit_document

pytestmark = pytest.mark.unit


def _visit(xml: str):
    return visit_document(ET.fromstring(xml))


class TestVisitDocument:
    """Tests for visit_document."""

    def test_reads_sample_document(self, sample_pob_xml):
        document = _visit(sample_pob_xml)

        assert document.build.class_name == "Marauder"
        assert document.build.ascendancy_name == "Chieftain"
        assert document.build.level == 93
        assert document.build.main_socket_group == 2
        assert document.character_name == "TestChar"
        assert len(document.specs) == 4
        assert [s.index for s in document.specs] == [0, 1, 2, 3]
        assert document.notes == "Level with Cyclone after act 2."

    def test_build_defaults(self):
        document = _visit("<PathOfBuilding><Build/></PathOfBuilding>")

        assert document.build.level == 1
        assert document.build.main_socket_group == 1
        assert document.build.class_name == ""
        assert document.character_name == ""
        assert document.notes is None

    def test_missing_build_element(self):
        assert _visit("<PathOfBuilding/>").build is None

    def test_garbage_level_falls_back(self):
        document = _visit('<PathOfBuilding><Build level="abc"/></PathOfBuilding>')
        assert document.build.level == 1

    def test_spec_sockets_skip_empty_items(self, sample_pob_xml):
        spec = _visit(sample_pob_xml).specs[0]

        assert [(s.node_id, s.item_id) for s in spec.sockets] == [(5, 3), (9, 1)]
        assert spec.url.startswith("https://")
        assert spec.mastery_effects == "{4,7}"

    def test_spec_without_url(self, sample_pob_xml):
        spec = _visit(sample_pob_xml).specs[3]

        assert spec.url is None
        assert spec.tree_version is None
        assert spec.title == "Empty"


class TestSkills:
    """Skill sets and legacy skills."""

    def test_skill_sets(self, sample_pob_xml):
        document = _visit(sample_pob_xml)

        assert [s.title for s in document.skill_sets] == ["Leveling", None]
        first = document.skill_sets[0].skills[0]
        assert first.slot == "Body Armour"
        assert [g.name_spec for g in first.gems] == ["Support: Melee Physical Damage", "Cyclone"]
        assert first.gems[0].support_gem is True
        assert first.gems[1].quality == 20
        assert first.gems[1].skill_id == "Cyclone"
        assert document.legacy_skills == ()

    def test_legacy_skills_only_direct_children(self):
        xml = """
<PathOfBuilding>
    <Skills>
        <Skill slot="Helmet">
            <Gem nameSpec="Arc"/>
            <Skill slot="Nested"><Gem nameSpec="Nested Gem"/></Skill>
        </Skill>
    </Skills>
</PathOfBuilding>"""
        document = _visit(xml)

        assert len(document.legacy_skills) == 1
        assert [g.name_spec for g in document.legacy_skills[0].gems] == ["Arc"]

    def test_gem_id_used_when_name_spec_missing(self):
        xml = '<PathOfBuilding><Skills><Skill><Gem gemId="Metadata/Items/Gems/SkillGemArc"/></Skill></Skills></PathOfBuilding>'
        gem = _visit(xml).legacy_skills[0].gems[0]
        assert gem.name_spec == "Metadata/Items/Gems/SkillGemArc"

    def test_flags_default_to_enabled(self):
        xml = '<PathOfBuilding><Skills><Skill><Gem nameSpec="Arc" enabled="false"/></Skill></Skills></PathOfBuilding>'
        skill = _visit(xml).legacy_skills[0]

        assert skill.enabled is True
        assert skill.include_in_full_dps is True
        assert skill.gems[0].enabled is False


class TestItems:
    """Item index and item sets."""

    def test_item_index_and_sets(self, sample_pob_xml):
        document = _visit(sample_pob_xml)

        assert set(document.items) == {1, 2, 3}
        assert len(document.item_sets) == 1
        item_set = document.item_sets[0]
        assert item_set.id == 1
        assert item_set.title == "Act 1"
        assert item_set.use_second_weapon_set is False
        assert [(s.name, s.item_id) for s in item_set.slots] == [("Helmet", 1), ("Gloves", 2)]

    def test_legacy_slots_under_items(self):
        xml = """
<PathOfBuilding>
    <Items>
        <Item id="1">Rarity: NORMAL
Iron Ring</Item>
        <Slot name="Ring 1" itemId="1"/>
    </Items>
</PathOfBuilding>"""
        document = _visit(xml)

        assert len(document.item_sets) == 1
        assert document.item_sets[0].id == 1
        assert document.item_sets[0].title is None
        assert document.item_sets[0].slots[0].name == "Ring 1"

    def test_empty_item_text_is_not_indexed(self):
        xml = '<PathOfBuilding><Items><Item id="4">   </Item></Items></PathOfBuilding>'
        assert _visit(xml).items == {}
