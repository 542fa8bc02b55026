"""
PoB data models - enums and dataclasses for decoded Path of Building builds.

Every record is frozen: a Build is created once per successful import and is
read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class ItemSection(str, Enum):
    """Section of an item's text that a line belongs to."""
    HEADER = "header"
    IMPLICIT = "implicit"
    EXPLICIT = "explicit"
    CRAFTED = "crafted"


@dataclass(frozen=True)
class ParsedTreeUrl:
    """Decoded contents of a passive tree URL."""
    version: int
    class_id: int
    ascendancy_id: int
    nodes: Tuple[str, ...]
    masteries: Dict[str, str] = field(default_factory=dict)  # node id -> effect id
    cluster_node_count: int = 0


@dataclass(frozen=True)
class TreeSocket:
    """A jewel socketed into a tree snapshot."""
    node_id: int
    item_id: int


@dataclass(frozen=True)
class TreeSpec:
    """One saved passive tree allocation ("Early Game", "Act 5", ...)."""
    title: str
    nodes: str = ""  # Raw comma-separated ids from the legacy attribute
    allocated_nodes: Tuple[int, ...] = ()
    url: Optional[str] = None
    parsed_url: Optional[ParsedTreeUrl] = None
    class_id: int = 0
    ascend_class_id: int = 0
    tree_version: str = ""
    mastery_effects: Dict[str, str] = field(default_factory=dict)
    sockets: Tuple[TreeSocket, ...] = ()
    # Legacy ids that exist in the tree dataset, set when there is no URL
    known_nodes: Optional[Tuple[str, ...]] = None

    @property
    def resolved_nodes(self) -> Tuple[str, ...]:
        """Node ids that count for this snapshot (decoded URL wins over legacy list)."""
        if self.parsed_url is not None:
            return self.parsed_url.nodes
        if self.known_nodes is not None:
            return self.known_nodes
        return tuple(str(n) for n in self.allocated_nodes)

    @property
    def node_count(self) -> int:
        return len(self.resolved_nodes)


@dataclass(frozen=True)
class GemInfo:
    """A single gem in a socket group."""
    name_spec: str
    level: int = 1
    quality: int = 0
    enabled: bool = True
    skill_id: Optional[str] = None
    support_gem: bool = False
    skill_set_title: Optional[str] = None

    @property
    def is_support(self) -> bool:
        return self.support_gem or self.name_spec.startswith("Support:")


@dataclass(frozen=True)
class GemSocketGroup:
    """Linked gems slotted into one item."""
    slot: str
    enabled: bool
    include_in_full_dps: bool
    gems: Tuple[GemInfo, ...]
    label: str = ""
    skill_set_title: Optional[str] = None


@dataclass(frozen=True)
class SkillSet:
    """A named grouping of socket groups (per-act gem presets)."""
    title: str
    socket_groups: Tuple[GemSocketGroup, ...]


@dataclass(frozen=True)
class Item:
    """An item parsed from PoB's item text."""
    id: int
    raw_text: str
    name: Optional[str] = None
    base_name: Optional[str] = None
    rarity: Optional[str] = None
    item_level: Optional[int] = None
    quality: Optional[int] = None
    sockets: Optional[str] = None
    variant: Optional[int] = None
    implicit_mods: Tuple[str, ...] = ()
    mods: Tuple[str, ...] = ()
    crafted_mods: Tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        if self.name and self.base_name and self.name != self.base_name:
            return f"{self.name} ({self.base_name})"
        return self.name or self.base_name or f"Item {self.id}"

    @property
    def is_jewel(self) -> bool:
        return any("jewel" in (text or "").lower() for text in (self.name, self.base_name))


@dataclass(frozen=True)
class ItemSet:
    """A gear set: slot name -> equipped item."""
    id: int
    title: str
    use_second_weapon_set: bool = False
    items: Dict[str, Item] = field(default_factory=dict)


@dataclass(frozen=True)
class Build:
    """A decoded PoB build."""
    class_name: str = ""
    ascendancy_name: str = ""
    level: int = 1
    character_name: str = ""
    main_socket_group: int = 1
    tree_specs: Tuple[TreeSpec, ...] = ()
    gems: Tuple[GemSocketGroup, ...] = ()
    skill_sets: Tuple[SkillSet, ...] = ()
    item_sets: Tuple[ItemSet, ...] = ()
    tree_version: str = ""
    notes: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"Level {self.level} {self.ascendancy_name or self.class_name}"


# ----------------------------------------------------------------------
# Persistence shapes
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class ActTreeProgression:
    """Passive nodes expected to be allocated by the end of an act."""
    act_number: int
    recommended_level: int
    node_ids: Tuple[int, ...]
    total_points: int
    new_nodes_from_previous_act: Tuple[int, ...]


@dataclass(frozen=True)
class GemRequirement:
    """A gem the build needs while leveling, with where to get it."""
    name: str
    level: int
    is_support: bool
    skill_set_title: Optional[str] = None
    quest: Optional[str] = None
    act: int = 0
    vendor: Optional[str] = None
    reward_type: Optional[str] = None  # "quest" or "vendor"
    available_from: Optional[str] = None
