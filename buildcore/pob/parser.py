"""
Build markup parser - turns decoded PoB XML into a Build.

The XML is walked once into markup records (see markup.py); this module
applies the import rules on top of them:

- tree snapshots are decoded and filtered against the loaded tree dataset,
  and snapshots without any resolvable node are dropped
- gems from every skill set are flattened (legacy <Skills> otherwise)
- item sets are resolved against the item index, then jewels socketed in the
  matching tree snapshot are merged in as "Jewel N" slots
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Set, Tuple

# Use defusedxml to prevent XXE (XML External Entity) attacks
# PoB codes from untrusted sources could contain malicious XML
import defusedxml.ElementTree as ET
from defusedxml import DefusedXmlException

from buildcore.constants import DEFAULT_TREE_VERSION
from buildcore.passive_tree import TreeRegistry
from buildcore.pob.item_text import parse_item_text
from buildcore.pob.markup import (
    BuildDocument,
    SkillElement,
    SpecElement,
    visit_document,
)
from buildcore.pob.models import (
    Build,
    GemInfo,
    GemSocketGroup,
    Item,
    ItemSet,
    SkillSet,
    TreeSocket,
    TreeSpec,
)
from buildcore.pob.tree_url import decode_tree_url

logger = logging.getLogger(__name__)

# Regex pattern for PoB color codes
COLOR_CODE_PATTERN = re.compile(r"\^x[A-Fa-f0-9]{6}|\^[0-9]")

# masteryEffects attribute: "{nodeId,effectId},{nodeId,effectId}"
MASTERY_EFFECT_PATTERN = re.compile(r"\{(\d+),(\d+)\}")

SUPPORT_PREFIX_RE = re.compile(r"^Support:\s*")


def clean_title(title: str) -> str:
    """Remove PoB color codes from a title."""
    return COLOR_CODE_PATTERN.sub("", title).strip()


def parse_mastery_effects(value: str) -> Dict[str, str]:
    """Parse a masteryEffects attribute into node id -> effect id."""
    return {m.group(1): m.group(2) for m in MASTERY_EFFECT_PATTERN.finditer(value)}


def parse_node_list(value: str) -> Tuple[int, ...]:
    """Parse the legacy comma-separated node list, skipping garbage entries."""
    return tuple(int(part) for part in value.split(",") if part.strip().isdigit())


def _socket_group_label(gems: Tuple[GemInfo, ...]) -> str:
    main_gem = next((g for g in gems if not g.name_spec.startswith("Support:")), gems[0])
    return SUPPORT_PREFIX_RE.sub("", main_gem.name_spec)


def _title_tokens(title: str) -> Set[str]:
    return set(title.lower().split())


class PoBParser:
    """
    Parses PoB build XML against a set of loaded tree datasets.

    Usage:
        parser = PoBParser(registry)
        build = parser.parse(xml)
        if build is None:
            ...  # not a usable build
    """

    def __init__(self, trees: TreeRegistry):
        self.trees = trees

    def parse(self, xml_string: str) -> Optional[Build]:
        """
        Parse PoB XML into a Build.

        Returns:
            The Build, or None if the XML is malformed, has no <Build>
            element, or has no tree snapshot with a resolvable node
        """
        try:
            root = ET.fromstring(xml_string)
        except (ET.ParseError, DefusedXmlException) as e:
            logger.error(f"Failed to parse PoB XML: {e}")
            return None

        document = visit_document(root)
        return self.build_from_document(document)

    def build_from_document(self, document: BuildDocument) -> Optional[Build]:
        if document.build is None:
            logger.error("No <Build> element found")
            return None

        if not document.specs:
            logger.error("No <Spec> elements found")
            return None

        tree_specs = tuple(
            spec for spec in (self._build_tree_spec(elem) for elem in document.specs)
            if spec is not None
        )
        if not tree_specs:
            logger.error(f"None of {len(document.specs)} tree specs has a resolvable node")
            return None

        skill_sets = self._build_skill_sets(document)
        if skill_sets:
            gems = tuple(group for skill_set in skill_sets for group in skill_set.socket_groups)
        else:
            gems = self._build_socket_groups(document.legacy_skills)

        item_sets = self._build_item_sets(document, tree_specs)

        build = Build(
            class_name=document.build.class_name,
            ascendancy_name=document.build.ascendancy_name,
            level=document.build.level,
            character_name=document.character_name,
            main_socket_group=document.build.main_socket_group,
            tree_specs=tree_specs,
            gems=gems,
            skill_sets=skill_sets,
            item_sets=item_sets,
            tree_version=tree_specs[0].tree_version,
            notes=document.notes,
        )
        logger.info(
            f"Parsed build '{build.display_name}': {len(tree_specs)} tree specs, "
            f"{len(gems)} socket groups, {len(item_sets)} item sets"
        )
        return build

    # ----------------------------------------------------------------------
    # Tree snapshots
    # ----------------------------------------------------------------------

    def _build_tree_spec(self, elem: SpecElement) -> Optional[TreeSpec]:
        title = clean_title(elem.title or "") or f"Tree {elem.index + 1}"
        tree_version = elem.tree_version or DEFAULT_TREE_VERSION
        allocated_nodes = parse_node_list(elem.nodes)
        context = self.trees.get(tree_version)

        parsed_url = None
        known_nodes = None
        if elem.url:
            result = decode_tree_url(elem.url)
            if result.is_ok():
                decoded = result.unwrap()
                nodes = tuple(n for n in decoded.nodes if context.has_node(n))
                logger.debug(
                    f"Tree '{title}': {len(nodes)} of {len(decoded.nodes)} nodes "
                    f"exist in tree {context.version}"
                )
                parsed_url = replace(decoded, nodes=nodes)
            else:
                error = result.error
                logger.warning(
                    f"Failed to decode tree URL for '{title}' "
                    f"(version {error.version}): {error}"
                )

        if parsed_url is None:
            known_nodes = tuple(str(n) for n in allocated_nodes if context.has_node(str(n)))
            if len(known_nodes) != len(allocated_nodes):
                logger.debug(
                    f"Tree '{title}': {len(known_nodes)} of {len(allocated_nodes)} listed nodes "
                    f"exist in tree {context.version}"
                )

        resolvable = parsed_url.nodes if parsed_url is not None else known_nodes
        if not resolvable:
            logger.debug(f"Skipping tree '{title}': no resolvable nodes")
            return None

        return TreeSpec(
            title=title,
            nodes=elem.nodes,
            allocated_nodes=allocated_nodes,
            url=elem.url,
            parsed_url=parsed_url,
            class_id=elem.class_id,
            ascend_class_id=elem.ascend_class_id,
            tree_version=tree_version,
            mastery_effects=parse_mastery_effects(elem.mastery_effects),
            sockets=tuple(TreeSocket(node_id=s.node_id, item_id=s.item_id) for s in elem.sockets),
            known_nodes=known_nodes,
        )

    # ----------------------------------------------------------------------
    # Gems
    # ----------------------------------------------------------------------

    def _build_socket_groups(
        self,
        skills: Tuple[SkillElement, ...],
        skill_set_title: Optional[str] = None,
    ) -> Tuple[GemSocketGroup, ...]:
        groups: List[GemSocketGroup] = []
        for skill in skills:
            gems = tuple(
                GemInfo(
                    name_spec=gem.name_spec,
                    level=gem.level,
                    quality=gem.quality,
                    enabled=gem.enabled,
                    skill_id=gem.skill_id,
                    support_gem=gem.support_gem,
                    skill_set_title=skill_set_title,
                )
                for gem in skill.gems
                if gem.name_spec
            )
            if not gems:
                continue

            groups.append(GemSocketGroup(
                slot=skill.slot,
                enabled=skill.enabled,
                include_in_full_dps=skill.include_in_full_dps,
                gems=gems,
                label=_socket_group_label(gems),
                skill_set_title=skill_set_title,
            ))
        return tuple(groups)

    def _build_skill_sets(self, document: BuildDocument) -> Tuple[SkillSet, ...]:
        skill_sets = []
        for elem in document.skill_sets:
            title = clean_title(elem.title or "") or f"Skill Set {elem.index + 1}"
            groups = self._build_socket_groups(elem.skills, title)
            if groups:
                skill_sets.append(SkillSet(title=title, socket_groups=groups))
        return tuple(skill_sets)

    # ----------------------------------------------------------------------
    # Items
    # ----------------------------------------------------------------------

    def _build_item_sets(
        self,
        document: BuildDocument,
        tree_specs: Tuple[TreeSpec, ...],
    ) -> Tuple[ItemSet, ...]:
        parsed_items: Dict[int, Item] = {}

        def resolve(item_id: int) -> Optional[Item]:
            if item_id not in parsed_items:
                text = document.items.get(item_id)
                if text is None:
                    return None
                parsed_items[item_id] = parse_item_text(text, item_id)
            return parsed_items[item_id]

        item_sets = []
        for elem in document.item_sets:
            items: Dict[str, Item] = {}
            for slot in elem.slots:
                item = resolve(slot.item_id)
                if item is None:
                    logger.debug(f"Item set {elem.id}: slot {slot.name} references missing item {slot.item_id}")
                    continue
                items[slot.name] = item

            title = clean_title(elem.title or "") or f"Gear Set {elem.id}"
            self._merge_tree_jewels(title, items, tree_specs, resolve)
            item_sets.append(ItemSet(
                id=elem.id,
                title=title,
                use_second_weapon_set=elem.use_second_weapon_set,
                items=items,
            ))
        return tuple(item_sets)

    @staticmethod
    def _matching_tree_spec(title: str, tree_specs: Tuple[TreeSpec, ...]) -> TreeSpec:
        """Tree spec whose title best matches an item set title (ties: first)."""
        wanted = title.lower()
        for spec in tree_specs:
            if spec.title.lower() == wanted:
                return spec

        wanted_tokens = _title_tokens(title)
        best = tree_specs[0]
        best_score = -1
        for spec in tree_specs:
            score = len(wanted_tokens & _title_tokens(spec.title))
            if score > best_score:
                best, best_score = spec, score
        return best

    def _merge_tree_jewels(
        self,
        title: str,
        items: Dict[str, Item],
        tree_specs: Tuple[TreeSpec, ...],
        resolve: Callable[[int], Optional[Item]],
    ) -> None:
        spec = self._matching_tree_spec(title, tree_specs)
        used_ids = {item.id for item in items.values()}
        jewel_number = 1
        merged = 0

        for socket in spec.sockets:
            if socket.item_id in used_ids:
                continue
            item = resolve(socket.item_id)
            if item is None or not item.is_jewel:
                continue

            while f"Jewel {jewel_number}" in items:
                jewel_number += 1
            items[f"Jewel {jewel_number}"] = item
            used_ids.add(item.id)
            merged += 1

        if merged:
            logger.debug(f"Item set '{title}': merged {merged} jewels from tree '{spec.title}'")


def parse_build(xml_string: str, trees: TreeRegistry) -> Optional[Build]:
    """Convenience wrapper around PoBParser.parse."""
    return PoBParser(trees).parse(xml_string)
