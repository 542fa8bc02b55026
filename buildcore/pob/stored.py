"""
Stored build - the persisted form of an imported build.

Adds what the leveling views need on top of a Build (per-act tree
progression, a unique gem list, the original code and import time) and
converts everything to and from a JSON-compatible dict.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from buildcore.pob.gems import GemSourceMatcher, extract_unique_gems
from buildcore.pob.models import (
    ActTreeProgression,
    Build,
    GemInfo,
    GemRequirement,
    GemSocketGroup,
    Item,
    ItemSet,
    ParsedTreeUrl,
    SkillSet,
    TreeSocket,
    TreeSpec,
)
from buildcore.pob.progression import calculate_tree_progression_by_act

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class StoredBuild:
    """An imported build as kept in the build library."""
    code: str
    class_name: str
    ascendancy_name: str
    character_name: str
    level: int
    tree_specs: Tuple[TreeSpec, ...]
    allocated_nodes: Tuple[int, ...]  # First snapshot, for older readers
    tree_progression: Tuple[ActTreeProgression, ...]
    gems: Tuple[GemRequirement, ...]
    socket_groups: Tuple[GemSocketGroup, ...]
    skill_sets: Tuple[SkillSet, ...]
    item_sets: Tuple[ItemSet, ...]
    tree_version: str
    imported_at: int
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON storage."""
        result = {
            "code": self.code,
            "class_name": self.class_name,
            "ascendancy_name": self.ascendancy_name,
            "character_name": self.character_name,
            "level": self.level,
            "tree_specs": [_tree_spec_to_dict(s) for s in self.tree_specs],
            "allocated_nodes": list(self.allocated_nodes),
            "tree_progression": [
                {
                    "act_number": p.act_number,
                    "recommended_level": p.recommended_level,
                    "node_ids": list(p.node_ids),
                    "total_points": p.total_points,
                    "new_nodes_from_previous_act": list(p.new_nodes_from_previous_act),
                }
                for p in self.tree_progression
            ],
            "gems": [_gem_requirement_to_dict(g) for g in self.gems],
            "socket_groups": [_socket_group_to_dict(g) for g in self.socket_groups],
            "skill_sets": [
                {
                    "title": s.title,
                    "socket_groups": [_socket_group_to_dict(g) for g in s.socket_groups],
                }
                for s in self.skill_sets
            ],
            "item_sets": [_item_set_to_dict(s) for s in self.item_sets],
            "tree_version": self.tree_version,
            "imported_at": self.imported_at,
        }
        if self.notes:
            result["notes"] = self.notes
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredBuild":
        """Deserialize from a dict written by to_dict (missing keys default)."""
        return cls(
            code=data.get("code", ""),
            class_name=data.get("class_name", ""),
            ascendancy_name=data.get("ascendancy_name", ""),
            character_name=data.get("character_name", ""),
            level=data.get("level", 1),
            tree_specs=tuple(_tree_spec_from_dict(s) for s in data.get("tree_specs", [])),
            allocated_nodes=tuple(data.get("allocated_nodes", [])),
            tree_progression=tuple(
                ActTreeProgression(
                    act_number=p["act_number"],
                    recommended_level=p.get("recommended_level", 0),
                    node_ids=tuple(p.get("node_ids", [])),
                    total_points=p.get("total_points", 0),
                    new_nodes_from_previous_act=tuple(p.get("new_nodes_from_previous_act", [])),
                )
                for p in data.get("tree_progression", [])
            ),
            gems=tuple(_gem_requirement_from_dict(g) for g in data.get("gems", [])),
            socket_groups=tuple(_socket_group_from_dict(g) for g in data.get("socket_groups", [])),
            skill_sets=tuple(
                SkillSet(
                    title=s.get("title", ""),
                    socket_groups=tuple(_socket_group_from_dict(g) for g in s.get("socket_groups", [])),
                )
                for s in data.get("skill_sets", [])
            ),
            item_sets=tuple(_item_set_from_dict(s) for s in data.get("item_sets", [])),
            tree_version=data.get("tree_version", ""),
            imported_at=data.get("imported_at", 0),
            notes=data.get("notes") or None,
        )


def create_stored_build(
    code: str,
    build: Build,
    matcher: Optional[GemSourceMatcher] = None,
    now: Optional[int] = None,
) -> StoredBuild:
    """
    Build the stored form of a freshly imported build.

    Tree progression is computed from the first snapshot. When a matcher is
    given it annotates the unique gem list with quest/vendor sources.
    """
    first_spec = build.tree_specs[0] if build.tree_specs else None
    if first_spec is None:
        allocated: Tuple[int, ...] = ()
    elif first_spec.allocated_nodes:
        allocated = first_spec.allocated_nodes
    else:
        allocated = tuple(int(n) for n in first_spec.resolved_nodes)

    progression_nodes = (
        tuple(int(n) for n in first_spec.resolved_nodes) if first_spec is not None else ()
    )

    gems = extract_unique_gems(build.gems)
    if matcher is not None:
        gems = matcher.match_gems(gems, build.class_name)

    stored = StoredBuild(
        code=code,
        class_name=build.class_name,
        ascendancy_name=build.ascendancy_name,
        character_name=build.character_name,
        level=build.level,
        tree_specs=build.tree_specs,
        allocated_nodes=allocated,
        tree_progression=tuple(calculate_tree_progression_by_act(progression_nodes, build.level)),
        gems=tuple(gems),
        socket_groups=build.gems,
        skill_sets=build.skill_sets,
        item_sets=build.item_sets,
        tree_version=build.tree_version,
        imported_at=now if now is not None else now_ms(),
        notes=build.notes,
    )
    logger.info(
        f"Stored build {build.display_name}: {len(stored.gems)} unique gems, "
        f"{len(stored.tree_progression)} act slices"
    )
    return stored


# ----------------------------------------------------------------------
# Model <-> dict helpers
# ----------------------------------------------------------------------


def _tree_spec_to_dict(spec: TreeSpec) -> Dict[str, Any]:
    result: Dict[str, Any] = {
        "title": spec.title,
        "nodes": spec.nodes,
        "allocated_nodes": list(spec.allocated_nodes),
        "class_id": spec.class_id,
        "ascend_class_id": spec.ascend_class_id,
        "tree_version": spec.tree_version,
        "mastery_effects": dict(spec.mastery_effects),
        "sockets": [{"node_id": s.node_id, "item_id": s.item_id} for s in spec.sockets],
    }
    if spec.url:
        result["url"] = spec.url
    if spec.known_nodes is not None:
        result["known_nodes"] = list(spec.known_nodes)
    if spec.parsed_url is not None:
        result["parsed_url"] = {
            "version": spec.parsed_url.version,
            "class_id": spec.parsed_url.class_id,
            "ascendancy_id": spec.parsed_url.ascendancy_id,
            "nodes": list(spec.parsed_url.nodes),
            "masteries": dict(spec.parsed_url.masteries),
            "cluster_node_count": spec.parsed_url.cluster_node_count,
        }
    return result


def _tree_spec_from_dict(data: Dict[str, Any]) -> TreeSpec:
    known_nodes = data.get("known_nodes")
    parsed_url = None
    if url_data := data.get("parsed_url"):
        parsed_url = ParsedTreeUrl(
            version=url_data["version"],
            class_id=url_data.get("class_id", 0),
            ascendancy_id=url_data.get("ascendancy_id", 0),
            nodes=tuple(str(n) for n in url_data.get("nodes", [])),
            masteries=dict(url_data.get("masteries", {})),
            cluster_node_count=url_data.get("cluster_node_count", 0),
        )
    return TreeSpec(
        title=data.get("title", ""),
        nodes=data.get("nodes", ""),
        allocated_nodes=tuple(data.get("allocated_nodes", [])),
        url=data.get("url"),
        parsed_url=parsed_url,
        class_id=data.get("class_id", 0),
        ascend_class_id=data.get("ascend_class_id", 0),
        tree_version=data.get("tree_version", ""),
        mastery_effects=dict(data.get("mastery_effects", {})),
        sockets=tuple(
            TreeSocket(node_id=s["node_id"], item_id=s["item_id"])
            for s in data.get("sockets", [])
        ),
        known_nodes=tuple(str(n) for n in known_nodes) if known_nodes is not None else None,
    )


def _socket_group_to_dict(group: GemSocketGroup) -> Dict[str, Any]:
    return {
        "slot": group.slot,
        "enabled": group.enabled,
        "include_in_full_dps": group.include_in_full_dps,
        "label": group.label,
        "skill_set_title": group.skill_set_title,
        "gems": [
            {
                "name_spec": gem.name_spec,
                "level": gem.level,
                "quality": gem.quality,
                "enabled": gem.enabled,
                "skill_id": gem.skill_id,
                "support_gem": gem.support_gem,
                "skill_set_title": gem.skill_set_title,
            }
            for gem in group.gems
        ],
    }


def _socket_group_from_dict(data: Dict[str, Any]) -> GemSocketGroup:
    return GemSocketGroup(
        slot=data.get("slot", ""),
        enabled=data.get("enabled", True),
        include_in_full_dps=data.get("include_in_full_dps", True),
        label=data.get("label", ""),
        skill_set_title=data.get("skill_set_title"),
        gems=tuple(
            GemInfo(
                name_spec=gem.get("name_spec", ""),
                level=gem.get("level", 1),
                quality=gem.get("quality", 0),
                enabled=gem.get("enabled", True),
                skill_id=gem.get("skill_id"),
                support_gem=gem.get("support_gem", False),
                skill_set_title=gem.get("skill_set_title"),
            )
            for gem in data.get("gems", [])
        ),
    )


def _gem_requirement_to_dict(gem: GemRequirement) -> Dict[str, Any]:
    return {
        "name": gem.name,
        "level": gem.level,
        "is_support": gem.is_support,
        "skill_set_title": gem.skill_set_title,
        "quest": gem.quest,
        "act": gem.act,
        "vendor": gem.vendor,
        "reward_type": gem.reward_type,
        "available_from": gem.available_from,
    }


def _gem_requirement_from_dict(data: Dict[str, Any]) -> GemRequirement:
    return GemRequirement(
        name=data.get("name", ""),
        level=data.get("level", 1),
        is_support=data.get("is_support", False),
        skill_set_title=data.get("skill_set_title"),
        quest=data.get("quest"),
        act=data.get("act", 0),
        vendor=data.get("vendor"),
        reward_type=data.get("reward_type"),
        available_from=data.get("available_from"),
    )


def _item_set_to_dict(item_set: ItemSet) -> Dict[str, Any]:
    return {
        "id": item_set.id,
        "title": item_set.title,
        "use_second_weapon_set": item_set.use_second_weapon_set,
        "items": {
            slot: {
                "id": item.id,
                "raw_text": item.raw_text,
                "name": item.name,
                "base_name": item.base_name,
                "rarity": item.rarity,
                "item_level": item.item_level,
                "quality": item.quality,
                "sockets": item.sockets,
                "variant": item.variant,
                "implicit_mods": list(item.implicit_mods),
                "mods": list(item.mods),
                "crafted_mods": list(item.crafted_mods),
            }
            for slot, item in item_set.items.items()
        },
    }


def _item_set_from_dict(data: Dict[str, Any]) -> ItemSet:
    items = {
        slot: Item(
            id=item.get("id", 0),
            raw_text=item.get("raw_text", ""),
            name=item.get("name"),
            base_name=item.get("base_name"),
            rarity=item.get("rarity"),
            item_level=item.get("item_level"),
            quality=item.get("quality"),
            sockets=item.get("sockets"),
            variant=item.get("variant"),
            implicit_mods=tuple(item.get("implicit_mods", [])),
            mods=tuple(item.get("mods", [])),
            crafted_mods=tuple(item.get("crafted_mods", [])),
        )
        for slot, item in data.get("items", {}).items()
    }
    return ItemSet(
        id=data.get("id", 1),
        title=data.get("title", ""),
        use_second_weapon_set=data.get("use_second_weapon_set", False),
        items=items,
    )
