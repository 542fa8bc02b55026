"""
One-call build import: share code or link in, Build (or a reason) out.
"""

from __future__ import annotations

import logging
from typing import Optional

from buildcore.config import ImportSettings
from buildcore.passive_tree import TreeRegistry
from buildcore.pob.decoder import PoBDecodeError, decode_pob_code
from buildcore.pob.models import Build
from buildcore.pob.parser import PoBParser
from buildcore.result import Err, Ok, Result

logger = logging.getLogger(__name__)


def import_build(
    code: str,
    trees: TreeRegistry,
    settings: Optional[ImportSettings] = None,
) -> Result[Build, str]:
    """
    Decode and parse a PoB code.

    Returns:
        Ok(Build) on success, Err(reason) when the code cannot be decoded or
        the XML holds no usable build. A partial build is never returned.
    """
    try:
        xml = decode_pob_code(code, settings)
    except PoBDecodeError as e:
        return Err(str(e))

    build = PoBParser(trees).parse(xml)
    if build is None:
        return Err("PoB code does not contain a build with a usable passive tree")

    return Ok(build)
