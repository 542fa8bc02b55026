"""Shared fixtures: a small processed tree dataset and a sample PoB build."""
from __future__ import annotations

import copy
from typing import Any, Dict

import pytest

from buildcore.passive_tree import SkillTreeData, TreeRegistry, build_tree_context
from buildcore.pob.models import ParsedTreeUrl
from buildcore.pob.tree_url import encode_tree_url

# =============================================================================
# Tree dataset
# =============================================================================

# Main graph: 1-2-3-4-5 chain plus a keystone and mastery.
# Chieftain graph: start node 100 connected to 101 and 102.
TREE_DATA: Dict[str, Any] = {
    "bounds": {"minX": -1000, "minY": -800, "maxX": 1000, "maxY": 800},
    "classes": [
        {"name": "Scion", "ascendancies": ["Ascendant"]},
        {"name": "Marauder", "ascendancies": ["Juggernaut", "Berserker", "Chieftain"]},
    ],
    "graphs": [
        {
            "nodes": {
                "1": {"x": 0, "y": 0, "k": "Normal", "text": "Strength", "stats": ["+10 to Strength"]},
                "2": {"x": 100, "y": 0, "k": "Normal", "text": "Life", "stats": ["5% increased maximum Life"]},
                "3": {"x": 200, "y": 0, "k": "Notable", "text": "Constitution"},
                "4": {"x": 300, "y": 100, "k": "Mastery", "text": "Life Mastery"},
                "5": {"x": 400, "y": 100, "k": "Jewel", "text": "Jewel Socket"},
                "6": {"x": 500, "y": 0, "k": "Keystone", "text": "Resolute Technique"},
            },
            "connections": [
                {"a": "1", "b": "2"},
                {"a": "2", "b": "3"},
                {"a": "3", "b": "4", "s": {"w": "CW", "r": 150}},
                {"a": "4", "b": "5"},
                {"a": "5", "b": "6", "s": {"w": "CCW", "r": 200}},
            ],
        },
        {
            "nodes": {
                "100": {"x": -500, "y": -500, "k": "Ascendancy_Start", "text": "Chieftain"},
                "101": {"x": -400, "y": -500, "k": "Notable", "text": "Tukohama, War's Herald"},
                "102": {"x": -500, "y": -400, "k": "Normal", "text": "Fire Damage"},
            },
            "connections": [
                {"a": "100", "b": "101"},
                {"a": "100", "b": "102"},
            ],
        },
    ],
    "graphIndex": 0,
    "ascendancies": {
        "Chieftain": {"id": "Chieftain", "startNodeId": "100", "graphIndex": 1},
    },
    "masteryEffects": {
        "7": {"stats": ["+50 to maximum Life"]},
    },
}


@pytest.fixture
def tree_data() -> Dict[str, Any]:
    """A fresh copy of the raw tree dataset."""
    return copy.deepcopy(TREE_DATA)


@pytest.fixture
def tree_context(tree_data):
    return build_tree_context("3_25", SkillTreeData.from_dict(tree_data))


@pytest.fixture
def tree_registry(tree_context):
    return TreeRegistry([tree_context], default_version="3_25")


# =============================================================================
# PoB build
# =============================================================================


def make_tree_url(nodes, class_id=1, ascendancy_id=3, masteries=None, version=6) -> str:
    """Encode a tree URL for the given node ids."""
    return encode_tree_url(ParsedTreeUrl(
        version=version,
        class_id=class_id,
        ascendancy_id=ascendancy_id,
        nodes=tuple(str(n) for n in nodes),
        masteries=masteries or {},
    ))


SAMPLE_POB_XML = """<?xml version="1.0" encoding="UTF-8"?>
<PathOfBuilding characterName="TestChar">
    <Build level="93" className="Marauder" ascendClassName="Chieftain" mainSocketGroup="2"/>
    <Tree activeSpec="1">
        <Spec title="^xE05030Act 1" treeVersion="3_25" classId="1" ascendClassId="3"
              nodes="1,2,3" masteryEffects="{{4,7}}">
            <URL>{act1_url}</URL>
            <Sockets>
                <Socket nodeId="5" itemId="3"/>
                <Socket nodeId="9" itemId="1"/>
                <Socket nodeId="10" itemId="0"/>
            </Sockets>
        </Spec>
        <Spec title="Endgame" treeVersion="3_25" classId="1" ascendClassId="3" nodes="2,3,4,101">
            <URL>{endgame_url}</URL>
        </Spec>
        <Spec title="Stale" treeVersion="3_25" nodes="998,999">
            <URL>{stale_url}</URL>
        </Spec>
        <Spec title="Empty" nodes=""/>
    </Tree>
    <Skills>
        <SkillSet id="1" title="Leveling">
            <Skill slot="Body Armour" enabled="true" includeInFullDPS="true">
                <Gem nameSpec="Support: Melee Physical Damage" level="1" supportGem="true"/>
                <Gem nameSpec="Cyclone" level="20" quality="20" skillId="Cyclone"/>
            </Skill>
            <Skill slot="Helmet">
                <Gem nameSpec=""/>
            </Skill>
        </SkillSet>
        <SkillSet id="2">
            <Skill slot="Gloves" enabled="false">
                <Gem nameSpec="Anomalous Leap Slam" level="10" enabled="false"/>
            </Skill>
        </SkillSet>
    </Skills>
    <Items activeItemSet="1">
        <Item id="1">
Rarity: UNIQUE
Leather Cap
Goldrim
Unique ID: abc123
Item Level: 50
Quality: 0
Sockets: B-B
LevelReq: 1
Implicits: 0
+30% to all Elemental Resistances
10% increased Rarity of Items found
</Item>
        <Item id="2">
Rarity: RARE
Vaal Gauntlets
Storm Bite
Item Level: 84
Quality: 20
Sockets: R-R-R-R
LevelReq: 63
Implicits: 1
{{tags:strength}}+50 to maximum Life
+46 to Strength
+30% to Fire Resistance
{{crafted}}+25% to Cold Resistance
</Item>
        <Item id="3">
Rarity: RARE
Cobalt Jewel
Gloom Bane
Item Level: 80
Implicits: 0
+12 to Intelligence
7% increased maximum Life
</Item>
        <ItemSet id="1" title="Act 1" useSecondWeaponSet="false">
            <Slot name="Helmet" itemId="1"/>
            <Slot name="Gloves" itemId="2"/>
            <Slot name="Weapon 1" itemId="0"/>
        </ItemSet>
    </Items>
    <Notes>
  Level with Cyclone after act 2.
    </Notes>
</PathOfBuilding>
"""


@pytest.fixture
def sample_pob_xml() -> str:
    """Sample build: two usable tree specs, one stale and one empty."""
    return SAMPLE_POB_XML.format(
        act1_url=make_tree_url([1, 2, 3, 999], masteries={"4": "7"}),
        endgame_url=make_tree_url([2, 3, 4, 101]),
        stale_url=make_tree_url([998, 999]),
    )


@pytest.fixture
def tree_url_factory():
    """make_tree_url, for tests that build their own snapshots."""
    return make_tree_url
