"""
PoB decoder - turns Path of Building share codes into build XML.

PoB codes are URL-safe base64-encoded, zlib-compressed XML. Share links from
pobb.in and pastebin.com are fetched once and decoded the same way.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import zlib
from typing import Optional
from urllib.parse import urlparse

import requests

from buildcore.config import ImportSettings
from buildcore.constants import (
    PASTEBIN_HOSTS,
    POBBIN_HOSTS,
    UNSUPPORTED_BUILD_SITES,
)

logger = logging.getLogger(__name__)

# pobb.in can answer with its HTML page instead of the raw code
TEXTAREA_RE = re.compile(r"<textarea[^>]*>([\s\S]*?)</textarea>", re.IGNORECASE)


class PoBDecodeError(ValueError):
    """Raised when a code or share link cannot be turned into XML."""


def _hostname(url: str) -> str:
    """Lowercased hostname of a URL; scheme-less input is parsed as a netloc."""
    try:
        parsed = urlparse(url if "://" in url else f"//{url}")
    except ValueError:
        return ""
    return (parsed.hostname or "").lower()


def _is_pastebin_url(url: str) -> bool:
    """Check if URL is from pastebin.com using proper hostname validation."""
    return _hostname(url) in PASTEBIN_HOSTS


def _is_pobbin_url(url: str) -> bool:
    """Check if URL is from pobb.in using proper hostname validation."""
    return _hostname(url) in POBBIN_HOSTS


def _url_host_matches(url: str, host: str) -> bool:
    """Check if URL's hostname matches the given host (case-insensitive)."""
    hostname = _hostname(url)
    return hostname == host or hostname == f"www.{host}"


def _looks_like_url(text: str) -> bool:
    """Check if text looks like a URL rather than a PoB code."""
    if text.lower().startswith(("http://", "https://", "www.")):
        return True
    return any(_url_host_matches(text, host) for host in UNSUPPORTED_BUILD_SITES)


def _raise_url_error(url: str) -> None:
    """Raise a helpful error for URLs that can't be imported directly."""
    if _url_host_matches(url, "maxroll.gg"):
        raise PoBDecodeError(
            "Maxroll.gg URLs cannot be imported directly.\n\n"
            "Open the build in your browser, use 'Export to PoB' and paste the code here."
        )
    if _url_host_matches(url, "mobalytics.gg"):
        raise PoBDecodeError(
            "Mobalytics URLs cannot be imported directly.\n\n"
            "Open the build in your browser, find the 'Path of Building' section "
            "and paste the code here."
        )
    if _url_host_matches(url, "poe.ninja"):
        raise PoBDecodeError(
            "poe.ninja URLs cannot be imported directly.\n\n"
            "Open the character in your browser, click 'Export to Path of Building' "
            "and paste the code here."
        )
    if _url_host_matches(url, "pobarchives.com"):
        raise PoBDecodeError(
            "PoB Archives URLs cannot be imported directly.\n\n"
            "Copy the pobb.in link from the build page and paste it here."
        )
    raise PoBDecodeError(
        f"URL detected but cannot be imported directly: {url}\n\n"
        "Paste a PoB code, a pobb.in URL or a pastebin.com URL."
    )


def _paste_id(url: str, site: str) -> str:
    parsed = urlparse(url if "://" in url else f"//{url}")
    path_parts = [part for part in parsed.path.split("/") if part]
    # pobb.in/{id}/raw and pastebin.com/raw/{id}
    path_parts = [part for part in path_parts if part != "raw"]
    if not path_parts:
        raise PoBDecodeError(f"Invalid {site} URL: no paste ID found")
    return path_parts[-1]


def _unwrap_html(body: str) -> str:
    if m := TEXTAREA_RE.search(body):
        return m.group(1).strip()
    return body.strip()


def _fetch(url: str, site: str, timeout: float) -> str:
    """Single GET of a raw paste; any failure fails the import."""
    logger.info(f"Fetching PoB code from {site}: {url}")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Failed to fetch {site}: {e}")
        raise PoBDecodeError(f"Could not fetch {site}: {e}") from e

    code = _unwrap_html(response.text)
    if not code:
        raise PoBDecodeError(f"Could not fetch {site}: empty response")
    return code


def fetch_pobbin(url: str, timeout: float) -> str:
    """Fetch the raw PoB code behind a pobb.in link."""
    return _fetch(f"https://pobb.in/{_paste_id(url, 'pobb.in')}/raw", "pobb.in", timeout)


def fetch_pastebin(url: str, timeout: float) -> str:
    """Fetch the raw PoB code behind a pastebin link."""
    return _fetch(f"https://pastebin.com/raw/{_paste_id(url, 'pastebin')}", "pastebin", timeout)


def decode_pob_code(code: str, settings: Optional[ImportSettings] = None) -> str:
    """
    Decode a PoB share code (or pobb.in / pastebin link) to XML.

    Args:
        code: The PoB share code or share link
        settings: Timeout and size limits (defaults when None)

    Returns:
        Decoded XML string

    Raises:
        PoBDecodeError: If the code is invalid, too large, inflates past the
            size cap, or the share link cannot be fetched
    """
    settings = settings or ImportSettings()

    # Remove any whitespace/newlines
    code = "".join(code.split())
    if not code:
        raise PoBDecodeError("Invalid PoB code: empty input")

    # Security: Reject excessively large inputs
    if len(code) > settings.max_code_size:
        raise PoBDecodeError(
            f"PoB code too large ({len(code)} bytes, max {settings.max_code_size})"
        )

    if _is_pobbin_url(code):
        code = "".join(fetch_pobbin(code, settings.fetch_timeout).split())
    elif _is_pastebin_url(code):
        code = "".join(fetch_pastebin(code, settings.fetch_timeout).split())
    elif _looks_like_url(code):
        _raise_url_error(code)

    if len(code) > settings.max_code_size:
        raise PoBDecodeError(
            f"PoB code too large ({len(code)} bytes, max {settings.max_code_size})"
        )

    # PoB uses URL-safe base64: - for + and _ for /, padding often stripped
    code = code.replace("-", "+").replace("_", "/")
    code += "=" * (-len(code) % 4)

    try:
        decoded = base64.b64decode(code, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.error(f"Failed to decode PoB code: {e}")
        raise PoBDecodeError(f"Invalid PoB code (base64 decoding failed): {e}") from e

    # Decompress with a size limit to prevent zip bombs
    decompressor = zlib.decompressobj()
    try:
        xml_data = decompressor.decompress(decoded, settings.max_xml_size)
    except zlib.error as e:
        logger.error(f"Failed to decompress PoB code: {e}")
        raise PoBDecodeError(f"Invalid PoB code (decompression failed): {e}") from e

    if decompressor.unconsumed_tail:
        raise PoBDecodeError(
            f"Invalid PoB code: decompressed data exceeds maximum size "
            f"({settings.max_xml_size} bytes)"
        )

    try:
        xml = xml_data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise PoBDecodeError(f"Invalid PoB code (not UTF-8): {e}") from e

    logger.debug(f"Decoded PoB code: {len(decoded)} compressed -> {len(xml)} chars")
    return xml


def encode_pob_code(xml: str) -> str:
    """Encode build XML into a PoB share code."""
    compressed = zlib.compress(xml.encode("utf-8"))
    return base64.urlsafe_b64encode(compressed).decode("ascii")
