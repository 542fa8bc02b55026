"""
Shared constants for the PoB build import core.

Centralizes magic numbers (timeouts, size caps, tree layout values) so the
decoder, parser and tree builder agree on them.
"""

# =============================================================================
# Network
# =============================================================================

# Timeout (seconds) for fetching a code from a share host
FETCH_TIMEOUT_DEFAULT = 10

# Share hosts that are resolved to a raw code before decoding
POBBIN_HOSTS = frozenset({"pobb.in", "www.pobb.in"})
PASTEBIN_HOSTS = frozenset({"pastebin.com", "www.pastebin.com"})

# Build sites whose URLs are recognized but cannot be imported directly
UNSUPPORTED_BUILD_SITES = (
    "maxroll.gg",
    "mobalytics.gg",
    "poe.ninja",
    "pathofexile.com",
    "poebuilds.cc",
    "pobarchives.com",
)


# =============================================================================
# Decoding limits
# =============================================================================

# Encoded codes above this size are rejected (most codes are < 50KB)
MAX_CODE_SIZE = 500_000

# Inflated XML above this size is rejected (zip bomb guard)
MAX_XML_SIZE = 10_000_000


# =============================================================================
# Passive tree
# =============================================================================

# Tree version assumed when a Spec carries no treeVersion attribute
DEFAULT_TREE_VERSION = "3_25"

# Oldest tree URL layout the binary decoder understands
MIN_TREE_URL_VERSION = 6

# Ascendancy id that gets the larger border (multi-ascendancy overlay)
ASCENDANT_ID = "Ascendant"

# SVG layout
TREE_PADDING = 550
ASCENDANCY_BORDER_RADIUS = 650
ASCENDANCY_ASCENDANT_BORDER_RADIUS = 750
NODE_STROKE_WIDTH = 0
CONNECTION_STROKE_WIDTH = 20
CONNECTION_ACTIVE_STROKE_WIDTH = 35
MASTERY_COLOR = "hsl(215, 15%, 40%)"


# =============================================================================
# Leveling progression
# =============================================================================

# Passive points granted by quests in each act (PoE1)
QUEST_PASSIVES_PER_ACT = {
    1: 2,
    2: 2,
    3: 2,
    4: 1,
    5: 2,
    6: 1,
    7: 2,
    8: 1,
    9: 1,
    10: 1,
}

# (act, min level, max level) recommended for each act
ACT_LEVEL_RANGES = (
    (1, 1, 12),
    (2, 12, 20),
    (3, 20, 30),
    (4, 30, 40),
    (5, 40, 50),
    (6, 50, 60),
    (7, 60, 68),
    (8, 68, 75),
    (9, 75, 80),
    (10, 80, 100),
)
