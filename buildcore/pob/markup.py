"""
Single-pass walk of PoB XML into typed element records.

The parser works on these records only, so attribute defaults and the
"direct children only" rules for skills and gems live in one place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

# Use defusedxml to prevent XXE (XML External Entity) attacks
# PoB codes from untrusted sources could contain malicious XML
import defusedxml.ElementTree as ET

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildElement:
    class_name: str
    ascendancy_name: str
    level: int
    main_socket_group: int


@dataclass(frozen=True)
class SocketElement:
    node_id: int
    item_id: int


@dataclass(frozen=True)
class SpecElement:
    index: int  # Position among all Spec elements (0-based)
    title: Optional[str]
    nodes: str
    tree_version: Optional[str]
    class_id: int
    ascend_class_id: int
    mastery_effects: str
    url: Optional[str]
    sockets: Tuple[SocketElement, ...]


@dataclass(frozen=True)
class GemElement:
    name_spec: str
    level: int
    quality: int
    enabled: bool
    skill_id: Optional[str]
    support_gem: bool


@dataclass(frozen=True)
class SkillElement:
    slot: str
    enabled: bool
    include_in_full_dps: bool
    gems: Tuple[GemElement, ...]


@dataclass(frozen=True)
class SkillSetElement:
    index: int
    title: Optional[str]
    skills: Tuple[SkillElement, ...]


@dataclass(frozen=True)
class SlotElement:
    name: str
    item_id: int


@dataclass(frozen=True)
class ItemSetElement:
    id: int
    title: Optional[str]
    use_second_weapon_set: bool
    slots: Tuple[SlotElement, ...]


@dataclass(frozen=True)
class BuildDocument:
    """Everything the parser needs from one PoB XML document."""
    build: Optional[BuildElement]
    character_name: str = ""
    specs: Tuple[SpecElement, ...] = ()
    skill_sets: Tuple[SkillSetElement, ...] = ()
    legacy_skills: Tuple[SkillElement, ...] = ()
    item_sets: Tuple[ItemSetElement, ...] = ()
    items: Dict[int, str] = field(default_factory=dict)  # item id -> raw text
    notes: Optional[str] = None


def _int_attr(elem: ET.Element, name: str, default: int) -> int:
    """Read an integer attribute, falling back on missing or garbage values."""
    value = elem.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        logger.debug(f"Non-integer {elem.tag}@{name}={value!r}, using {default}")
        return default


def _flag(elem: ET.Element, name: str) -> bool:
    """PoB flags default to true unless spelled 'false'."""
    return elem.get(name) != "false"


def _visit_gem(elem: ET.Element) -> GemElement:
    return GemElement(
        name_spec=elem.get("nameSpec") or elem.get("gemId") or "",
        level=_int_attr(elem, "level", 1),
        quality=_int_attr(elem, "quality", 0),
        enabled=_flag(elem, "enabled"),
        skill_id=elem.get("skillId") or None,
        support_gem=elem.get("supportGem") == "true",
    )


def _visit_skills(container: ET.Element) -> Tuple[SkillElement, ...]:
    # findall("Skill") / findall("Gem") only match direct children, which
    # keeps nested groups from malformed exports out
    skills = []
    for skill_elem in container.findall("Skill"):
        skills.append(SkillElement(
            slot=skill_elem.get("slot", ""),
            enabled=_flag(skill_elem, "enabled"),
            include_in_full_dps=_flag(skill_elem, "includeInFullDPS"),
            gems=tuple(_visit_gem(g) for g in skill_elem.findall("Gem")),
        ))
    return tuple(skills)


def _visit_spec(index: int, elem: ET.Element) -> SpecElement:
    url_elem = elem.find("URL")
    url = (url_elem.text or "").strip() if url_elem is not None else ""

    sockets = []
    sockets_elem = elem.find("Sockets")
    if sockets_elem is not None:
        for socket_elem in sockets_elem.findall("Socket"):
            item_id = _int_attr(socket_elem, "itemId", 0)
            if item_id:
                sockets.append(SocketElement(
                    node_id=_int_attr(socket_elem, "nodeId", 0),
                    item_id=item_id,
                ))

    return SpecElement(
        index=index,
        title=elem.get("title") or None,
        nodes=elem.get("nodes", ""),
        tree_version=elem.get("treeVersion") or None,
        class_id=_int_attr(elem, "classId", 0),
        ascend_class_id=_int_attr(elem, "ascendClassId", 0),
        mastery_effects=elem.get("masteryEffects", ""),
        url=url or None,
        sockets=tuple(sockets),
    )


def _visit_item_set(elem: ET.Element) -> ItemSetElement:
    slots = []
    for slot_elem in elem.findall("Slot"):
        item_id = _int_attr(slot_elem, "itemId", 0)
        name = slot_elem.get("name", "")
        # itemId 0 marks an empty slot
        if name and item_id:
            slots.append(SlotElement(name=name, item_id=item_id))

    return ItemSetElement(
        id=_int_attr(elem, "id", 1),
        title=elem.get("title") or None,
        use_second_weapon_set=elem.get("useSecondWeaponSet") == "true",
        slots=tuple(slots),
    )


def visit_document(root: ET.Element) -> BuildDocument:
    """
    Walk a parsed PoB document into a BuildDocument.

    Args:
        root: The <PathOfBuilding> element

    Returns:
        BuildDocument; ``build`` is None when there is no <Build> element
    """
    build_elem = root.find("Build")
    build = None
    if build_elem is not None:
        build = BuildElement(
            class_name=build_elem.get("className", ""),
            ascendancy_name=build_elem.get("ascendClassName", ""),
            level=_int_attr(build_elem, "level", 1),
            main_socket_group=_int_attr(build_elem, "mainSocketGroup", 1),
        )

    specs = tuple(_visit_spec(i, elem) for i, elem in enumerate(root.iter("Spec")))

    skill_sets: List[SkillSetElement] = []
    legacy_skills: Tuple[SkillElement, ...] = ()
    skills_elem = root.find("Skills")
    if skills_elem is not None:
        for i, ss_elem in enumerate(skills_elem.findall("SkillSet")):
            skill_sets.append(SkillSetElement(
                index=i,
                title=ss_elem.get("title") or ss_elem.get("name") or None,
                skills=_visit_skills(ss_elem),
            ))
        legacy_skills = _visit_skills(skills_elem)

    items: Dict[int, str] = {}
    item_sets: List[ItemSetElement] = []
    items_elem = root.find("Items")
    if items_elem is not None:
        for item_elem in items_elem.findall("Item"):
            item_id = _int_attr(item_elem, "id", 0)
            text = item_elem.text or ""
            if item_id and text.strip():
                items[item_id] = text

        for set_elem in items_elem.findall("ItemSet"):
            item_sets.append(_visit_item_set(set_elem))

        # Older exports put Slot elements straight under <Items>
        if not item_sets and items_elem.find("Slot") is not None:
            legacy_set = _visit_item_set(items_elem)
            item_sets.append(ItemSetElement(
                id=1,
                title=None,
                use_second_weapon_set=legacy_set.use_second_weapon_set,
                slots=legacy_set.slots,
            ))

    notes_elem = root.find("Notes")
    notes = (notes_elem.text or "").strip() if notes_elem is not None else ""

    return BuildDocument(
        build=build,
        character_name=root.get("characterName", ""),
        specs=specs,
        skill_sets=tuple(skill_sets),
        legacy_skills=legacy_skills,
        item_sets=tuple(item_sets),
        items=items,
        notes=notes or None,
    )
