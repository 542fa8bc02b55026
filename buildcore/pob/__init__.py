"""
Path of Building (PoB) Integration Package.

Provides functionality to:
1. Decode PoB share codes and pobb.in / pastebin links into XML
2. Parse the XML into a Build (tree snapshots, gems, item sets)
3. Decode passive tree URLs and PoB item text
4. Keep a library of saved builds

For new code, import directly from this package:
    from buildcore.pob import import_build, PoBParser, BuildLibrary
"""

from buildcore.pob.decoder import PoBDecodeError, decode_pob_code, encode_pob_code
from buildcore.pob.gems import GemSourceMatcher, extract_unique_gems
from buildcore.pob.importer import import_build
from buildcore.pob.item_text import parse_item_text
from buildcore.pob.library import BuildEntry, BuildLibrary
from buildcore.pob.models import (
    ActTreeProgression,
    Build,
    GemInfo,
    GemRequirement,
    GemSocketGroup,
    Item,
    ItemSection,
    ItemSet,
    ParsedTreeUrl,
    SkillSet,
    TreeSocket,
    TreeSpec,
)
from buildcore.pob.parser import PoBParser, parse_build
from buildcore.pob.progression import calculate_tree_progression_by_act, recommended_act_for_level
from buildcore.pob.stored import StoredBuild, create_stored_build
from buildcore.pob.tree_url import TreeUrlError, decode_tree_url, encode_tree_url

__all__ = [
    # Models
    "ActTreeProgression",
    "Build",
    "GemInfo",
    "GemRequirement",
    "GemSocketGroup",
    "Item",
    "ItemSection",
    "ItemSet",
    "ParsedTreeUrl",
    "SkillSet",
    "TreeSocket",
    "TreeSpec",
    # Decoding
    "PoBDecodeError",
    "decode_pob_code",
    "encode_pob_code",
    "TreeUrlError",
    "decode_tree_url",
    "encode_tree_url",
    "parse_item_text",
    # Parsing
    "PoBParser",
    "parse_build",
    "import_build",
    # Stored builds
    "calculate_tree_progression_by_act",
    "recommended_act_for_level",
    "GemSourceMatcher",
    "extract_unique_gems",
    "StoredBuild",
    "create_stored_build",
    "BuildEntry",
    "BuildLibrary",
]
