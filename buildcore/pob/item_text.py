"""
Item text parser for PoB's stored item format.

PoB keeps each item as clipboard-like text:

    Rarity: RARE
    Storm Bite
    Vaal Gauntlets
    Unique ID: ...
    Item Level: 84
    Quality: 20
    Sockets: R-R-R-R
    LevelReq: 63
    Implicits: 1
    {tags:strength}+50 to maximum Life
    +46 to Strength
    {crafted}+30% to Fire Resistance

Lines are classified one at a time by a small state machine over
ItemSection. Every line ends up in a field, in one of the three mod lists, or
is dropped; parsing never fails.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from buildcore.pob.models import Item, ItemSection

logger = logging.getLogger(__name__)

SELECTED_VARIANT_RE = re.compile(r"^Selected Variant:\s*(\d+)$")
RARITY_RE = re.compile(r"^Rarity:\s*(.*)$")
ITEM_LEVEL_RE = re.compile(r"^Item Level:\s*(\d+)")
QUALITY_RE = re.compile(r"^Quality:\s*\+?(\d+)")
SOCKETS_RE = re.compile(r"^Sockets:\s*(.*)$")
IMPLICITS_RE = re.compile(r"^Implicits?:\s*(\d*)")
SEPARATOR_RE = re.compile(r"^-+$")

DECORATOR_RE = re.compile(r"\{[^{}]*\}")
DECORATOR_ONLY_RE = re.compile(r"^(?:\s*\{[^{}]*\})+\s*$")
VARIANT_TOKEN_RE = re.compile(r"\{variant:([^}]*)\}", re.IGNORECASE)
CRAFTED_PREFIX = "{crafted}"

# Base item properties restated as plain numbers ("Armour: 512")
DEFENCE_RE = re.compile(
    r"^(Armour|Evasion|Evasion Rating|Energy Shield|Ward|Chance to Block|Block)"
    r":\s*\+?[\d.]+%?(?:\s*\(augmented\))?$"
)
BASE_PERCENTILE_RE = re.compile(r"^\w+BasePercentile:")

# Requirement, bookkeeping and metadata lines that never become mods
NOISE_PREFIXES = (
    "Unique ID:", "LevelReq:", "Level:", "Str:", "Dex:", "Int:",
    "Requires ", "Requirements:", "Variant:", "Has Alt Variant", "Has Variants",
    "League:", "Prefix:", "Suffix:", "Crafted:", "Catalyst:", "CatalystQuality:",
    "Radius:", "Limited to:", "Talisman Tier:", "Item Class:",
    "Cluster Jewel Skill:", "Cluster Jewel Node Count:",
)

# Influence and corruption flags
NOISE_LINES = frozenset({
    "Shaper Item", "Elder Item", "Crusader Item", "Hunter Item",
    "Redeemer Item", "Warlord Item", "Searing Exarch Item", "Eater of Worlds Item",
    "Synthesised Item", "Fractured Item", "Corrupted", "Mirrored", "Split",
    "Unidentified",
})


def _is_noise(line: str) -> bool:
    return (
        line in NOISE_LINES
        or line.startswith(NOISE_PREFIXES)
        or DEFENCE_RE.match(line) is not None
        or BASE_PERCENTILE_RE.match(line) is not None
    )


def _is_name_line(line: str) -> bool:
    return not (":" in line or "+" in line or "%" in line or line[0].isdigit())


def _variant_lists(line: str) -> List[Tuple[int, ...]]:
    """Variant numbers named by each {variant:...} token on the line."""
    lists = []
    for match in VARIANT_TOKEN_RE.finditer(line):
        numbers = tuple(int(v) for v in re.findall(r"\d+", match.group(1)))
        lists.append(numbers)
    return lists


def _dedupe(lines: List[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(lines))


def find_selected_variant(lines: List[str]) -> Optional[int]:
    """Return the variant picked by a 'Selected Variant: N' line, if any."""
    selected = None
    for line in lines:
        if m := SELECTED_VARIANT_RE.match(line):
            selected = int(m.group(1))
    return selected


def parse_item_text(text: str, item_id: int = 0) -> Item:
    """
    Parse one item's PoB text into an Item.

    Args:
        text: Raw item text as stored in the <Item> element
        item_id: The item's id in the build's item index

    Returns:
        Item with fields and de-duplicated implicit/explicit/crafted mods
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    selected_variant = find_selected_variant(lines)

    rarity: Optional[str] = None
    item_level: Optional[int] = None
    quality: Optional[int] = None
    sockets: Optional[str] = None
    names: List[str] = []
    mods = {
        ItemSection.IMPLICIT: [],
        ItemSection.EXPLICIT: [],
        ItemSection.CRAFTED: [],
    }

    state = ItemSection.HEADER
    implicits_remaining = 0

    for line in lines:
        if SELECTED_VARIANT_RE.match(line):
            continue

        # ───────────────────────────────────────────────
        # Fields (never change state)
        # ───────────────────────────────────────────────

        if m := RARITY_RE.match(line):
            rarity = m.group(1).strip() or None
            continue

        if line.startswith("Item Level:"):
            if m := ITEM_LEVEL_RE.match(line):
                item_level = int(m.group(1))
            continue

        if line.startswith("Quality:"):
            if m := QUALITY_RE.match(line):
                quality = int(m.group(1))
            continue

        if m := SOCKETS_RE.match(line):
            sockets = m.group(1).strip() or None
            continue

        # ───────────────────────────────────────────────
        # Section transitions
        # ───────────────────────────────────────────────

        if m := IMPLICITS_RE.match(line):
            count = int(m.group(1)) if m.group(1) else 0
            if count > 0:
                state = ItemSection.IMPLICIT
                implicits_remaining = count
            else:
                state = ItemSection.EXPLICIT
                implicits_remaining = 0
            continue

        if SEPARATOR_RE.match(line):
            if state == ItemSection.IMPLICIT:
                state = ItemSection.EXPLICIT
                implicits_remaining = 0
            continue

        if _is_noise(line) or DECORATOR_ONLY_RE.match(line):
            continue

        if line.lower().startswith(CRAFTED_PREFIX):
            state = ItemSection.CRAFTED

        has_decorators = DECORATOR_RE.search(line) is not None
        mod_text = DECORATOR_RE.sub("", line).strip() if has_decorators else line
        if not mod_text:
            continue

        # ───────────────────────────────────────────────
        # Header: name / base name
        # ───────────────────────────────────────────────

        if state == ItemSection.HEADER:
            if not has_decorators and _is_name_line(mod_text):
                names.append(mod_text)
                if len(names) == 2:
                    state = ItemSection.EXPLICIT
                continue
            state = ItemSection.EXPLICIT

        # ───────────────────────────────────────────────
        # Mods
        # ───────────────────────────────────────────────

        include = True
        if selected_variant is not None:
            variant_lists = _variant_lists(line)
            if variant_lists:
                include = any(selected_variant in numbers for numbers in variant_lists)

        if include:
            mods[state].append(mod_text)

        # PoB counts every stored implicit line, including other variants'
        if state == ItemSection.IMPLICIT:
            implicits_remaining -= 1
            if implicits_remaining <= 0:
                state = ItemSection.EXPLICIT

    name: Optional[str] = None
    base_name: Optional[str] = None
    if len(names) == 1:
        name = names[0]
    elif len(names) == 2:
        base_name, name = names

    item = Item(
        id=item_id,
        raw_text=text,
        name=name,
        base_name=base_name,
        rarity=rarity,
        item_level=item_level,
        quality=quality,
        sockets=sockets,
        variant=selected_variant,
        implicit_mods=_dedupe(mods[ItemSection.IMPLICIT]),
        mods=_dedupe(mods[ItemSection.EXPLICIT]),
        crafted_mods=_dedupe(mods[ItemSection.CRAFTED]),
    )
    logger.debug(
        f"Parsed item {item_id} '{item.display_name}': {len(item.implicit_mods)} implicit, "
        f"{len(item.mods)} explicit, {len(item.crafted_mods)} crafted"
    )
    return item
