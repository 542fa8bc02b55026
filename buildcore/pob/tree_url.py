"""
Passive tree URL decoder.

PoB stores each tree snapshot as a URL whose last path segment is a URL-safe
base64 blob. Layout (all multi-byte integers big-endian):

    u32  version          (only 6 and later are supported)
    u8   class id
    u8   ascendancy id
    u8   N, then N x u16  allocated node ids
    u8   C, then C x u16  cluster jewel node ids
    u8   M, then M x (u16 effect id, u16 node id)  mastery selections
"""

from __future__ import annotations

import base64
import binascii
import struct
from dataclasses import dataclass
from typing import List, Optional, Tuple

from buildcore.constants import MIN_TREE_URL_VERSION
from buildcore.pob.models import ParsedTreeUrl
from buildcore.result import Err, Ok, Result


_HEADER = struct.Struct(">IBB")


@dataclass(frozen=True)
class TreeUrlError:
    """Why a tree URL could not be decoded."""
    message: str
    version: Optional[int] = None

    def __str__(self) -> str:
        return self.message


def _url_segment(url: str) -> str:
    """Return the data segment after the last slash (query string dropped)."""
    return url.strip().split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]


def _decode_urlsafe(data: str) -> bytes:
    padded = data + "=" * (-len(data) % 4)
    return base64.b64decode(padded.replace("-", "+").replace("_", "/"), validate=True)


class _Reader:
    """Sequential big-endian reader that reports truncation."""

    def __init__(self, buffer: bytes, offset: int = 0):
        self.buffer = buffer
        self.offset = offset

    def u8(self) -> int:
        if self.offset + 1 > len(self.buffer):
            raise EOFError(f"expected 1 byte at offset {self.offset}")
        value = self.buffer[self.offset]
        self.offset += 1
        return value

    def u16s(self, count: int) -> Tuple[int, ...]:
        end = self.offset + count * 2
        if end > len(self.buffer):
            raise EOFError(f"expected {count * 2} bytes at offset {self.offset}")
        values = struct.unpack_from(f">{count}H", self.buffer, self.offset)
        self.offset = end
        return values


def decode_tree_url(url: str) -> Result[ParsedTreeUrl, TreeUrlError]:
    """
    Decode a PoB tree URL (or bare data segment).

    Returns:
        Ok(ParsedTreeUrl) on success, Err(TreeUrlError) otherwise. An
        unsupported format version is reported with ``error.version`` set.
    """
    segment = _url_segment(url)
    if not segment:
        return Err(TreeUrlError(f"Invalid tree URL: {url!r}"))

    try:
        buffer = _decode_urlsafe(segment)
    except (binascii.Error, ValueError) as e:
        return Err(TreeUrlError(f"Invalid tree URL encoding: {e}"))

    if len(buffer) < _HEADER.size:
        return Err(TreeUrlError(f"Tree URL too short ({len(buffer)} bytes)"))

    version, class_id, ascendancy_id = _HEADER.unpack_from(buffer, 0)
    if version < MIN_TREE_URL_VERSION:
        return Err(TreeUrlError(f"Unsupported tree URL version: {version}", version=version))

    reader = _Reader(buffer, _HEADER.size)
    try:
        node_ids = reader.u16s(reader.u8())
        cluster_ids = reader.u16s(reader.u8())
        mastery_data = reader.u16s(reader.u8() * 2)
    except EOFError as e:
        return Err(TreeUrlError(f"Truncated tree URL (version {version}): {e}", version=version))

    # Flat run of (effect, node) pairs: odd positions are node ids
    masteries = {
        str(mastery_data[i + 1]): str(mastery_data[i])
        for i in range(0, len(mastery_data), 2)
    }

    return Ok(ParsedTreeUrl(
        version=version,
        class_id=class_id,
        ascendancy_id=ascendancy_id,
        nodes=tuple(str(node_id) for node_id in node_ids),
        masteries=masteries,
        cluster_node_count=len(cluster_ids),
    ))


def encode_tree_url(
    parsed: ParsedTreeUrl,
    cluster_nodes: Tuple[int, ...] = (),
    prefix: str = "https://www.pathofexile.com/passive-skill-tree/",
) -> str:
    """Encode a ParsedTreeUrl back into PoB's URL form."""
    nodes = [int(n) for n in parsed.nodes]
    mastery_pairs: List[int] = []
    for node_id, effect_id in parsed.masteries.items():
        mastery_pairs.extend((int(effect_id), int(node_id)))

    buffer = bytearray(_HEADER.pack(parsed.version, parsed.class_id, parsed.ascendancy_id))
    buffer.append(len(nodes))
    buffer += struct.pack(f">{len(nodes)}H", *nodes)
    buffer.append(len(cluster_nodes))
    buffer += struct.pack(f">{len(cluster_nodes)}H", *cluster_nodes)
    buffer.append(len(parsed.masteries))
    buffer += struct.pack(f">{len(mastery_pairs)}H", *mastery_pairs)

    return prefix + base64.urlsafe_b64encode(bytes(buffer)).decode("ascii")
