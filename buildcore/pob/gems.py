"""
Unique gem list for leveling.

Collapses a build's socket groups into the distinct gems a character has to
acquire. Where each gem comes from (quest reward or vendor) is looked up by
an injected GemSourceMatcher; the quest data itself lives outside this
package.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Protocol, runtime_checkable

from buildcore.pob.models import GemRequirement, GemSocketGroup

logger = logging.getLogger(__name__)

# Alternate quality prefixes from older exports
ALT_QUALITY_PREFIX_RE = re.compile(r"^(Anomalous|Divergent|Phantasmal)\s+", re.IGNORECASE)

SUPPORT_KEYWORDS = ("Support", "Awakened", "Empower", "Enlighten", "Enhance")


@runtime_checkable
class GemSourceMatcher(Protocol):
    """Interface for annotating gems with where to get them.

    Implementations fill quest, act, vendor, reward_type and available_from.
    """

    def match_gems(
        self,
        gems: List[GemRequirement],
        character_class: str,
    ) -> List[GemRequirement]:
        """Return the gems annotated for the given class."""
        ...


def normalize_gem_name(name_spec: str) -> str:
    """Strip alternate quality prefixes ("Anomalous Fireball" -> "Fireball")."""
    return ALT_QUALITY_PREFIX_RE.sub("", name_spec).strip()


def is_support_name(name: str) -> bool:
    return any(keyword in name for keyword in SUPPORT_KEYWORDS)


def extract_unique_gems(socket_groups: Iterable[GemSocketGroup]) -> List[GemRequirement]:
    """
    Distinct enabled gems from enabled socket groups.

    Gems are keyed by their normalized, lowercased name; the first occurrence
    wins (its level and skill set are kept).
    """
    gems: Dict[str, GemRequirement] = {}

    for group in socket_groups:
        if not group.enabled:
            continue
        for gem in group.gems:
            if not gem.enabled:
                continue

            name = normalize_gem_name(gem.name_spec)
            key = name.lower()
            if not key or key in gems:
                continue

            gems[key] = GemRequirement(
                name=name,
                level=gem.level,
                is_support=gem.support_gem or is_support_name(name),
                skill_set_title=gem.skill_set_title,
            )

    logger.debug(f"Extracted {len(gems)} unique gems")
    return list(gems.values())
