"""
dylive - Stream Resolver
Picks one playback URL out of a quality manifest.
"""

from enum import Enum
from typing import Callable, Dict, Mapping


class StreamFormat(str, Enum):
    """Protocol family of a manifest."""
    FLV = "flv"
    HLS = "hls"

    @classmethod
    def parse(cls, value: str) -> "StreamFormat":
        """Parse a user-supplied format name; m3u8 is an alias of hls."""
        value = (value or "").strip().lower()
        if value in ("hls", "m3u8"):
            return cls.HLS
        return cls.FLV


QUALITIES = ("uhd", "hd", "ld", "sd")

# quality token -> predicate(label, url)
_MATCHERS: Dict[str, Callable[[str, str], bool]] = {
    "uhd": lambda label, url: "FULL_HD" in label or "_uhd" in url,
    "hd": lambda label, url: "_hd" in url,
    "ld": lambda label, url: "_ld" in url,
    "sd": lambda label, url: "_sd" in url,
}


def normalize_quality(quality: str) -> str:
    """Lowercase and strip a quality token. Unknown tokens are kept as-is."""
    return (quality or "").strip().lower()


def resolve_stream_url(manifest: Mapping[str, str], quality: str, default_url: str) -> str:
    """
    Pick exactly one URL from a manifest.

    Args:
        manifest: label -> URL for one protocol family
        quality: uhd, hd, ld or sd; anything else selects the default
        default_url: room-level default URL, returned when nothing matches

    Returns:
        The first manifest URL matching the quality tier, else default_url.
    """
    matcher = _MATCHERS.get(normalize_quality(quality))
    if matcher is None:
        return default_url

    for label, url in (manifest or {}).items():
        if url and matcher(label, url):
            return url

    return default_url
