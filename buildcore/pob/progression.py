"""
Act-by-act passive tree progression.

Splits a snapshot's node list (assumed to be in allocation order) into the
nodes a character can afford by the end of each act, counting one point per
level after 1 plus the quest rewards up to that act.
"""
from __future__ import annotations

import logging
from typing import List, Sequence

from buildcore.constants import ACT_LEVEL_RANGES, QUEST_PASSIVES_PER_ACT
from buildcore.pob.models import ActTreeProgression

logger = logging.getLogger(__name__)


def quest_points_up_to_act(act_number: int) -> int:
    """Passive points from quests completed by the end of an act."""
    return sum(QUEST_PASSIVES_PER_ACT.get(act, 0) for act in range(1, act_number + 1))


def calculate_tree_progression_by_act(
    all_nodes: Sequence[int],
    build_level: int,
) -> List[ActTreeProgression]:
    """
    Split node allocations into per-act slices.

    Stops at the first act whose available points cover every node.

    Args:
        all_nodes: Node ids in allocation order
        build_level: Final level of the build (caps points per act)

    Returns:
        One ActTreeProgression per act, in act order
    """
    progression: List[ActTreeProgression] = []
    previous_nodes: Sequence[int] = ()

    for act, _min_level, max_level in ACT_LEVEL_RANGES:
        level_at_act_end = min(max_level, build_level)
        # Level 2 grants the first point
        total_points = (level_at_act_end - 1) + quest_points_up_to_act(act)

        nodes = tuple(all_nodes[:max(0, min(total_points, len(all_nodes)))])
        previous = set(previous_nodes)
        new_nodes = tuple(n for n in nodes if n not in previous)

        progression.append(ActTreeProgression(
            act_number=act,
            recommended_level=max_level,
            node_ids=nodes,
            total_points=total_points,
            new_nodes_from_previous_act=new_nodes,
        ))
        previous_nodes = nodes

        if total_points >= len(all_nodes):
            break

    logger.debug(
        f"Tree progression: {len(all_nodes)} nodes over {len(progression)} acts "
        f"(build level {build_level})"
    )
    return progression


def recommended_act_for_level(level: int) -> int:
    """First act whose level range reaches the given level (10 for maps)."""
    for act, _min_level, max_level in ACT_LEVEL_RANGES:
        if level <= max_level:
            return act
    return 10
