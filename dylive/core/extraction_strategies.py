"""
dylive - Extraction Strategies
Multi-strategy extraction of server-rendered JSON state embedded in Douyin pages.

Douyin has changed how it embeds page state several times. Each known page shape
is one strategy; adding a new shape means adding one strategy class.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional
from urllib.parse import unquote_plus

logger = logging.getLogger(__name__)


class PageShape(str, Enum):
    """Known embedding conventions, most specific first."""
    INIT_PROPS = "init_props"
    RENDER_DATA = "render_data"
    PACE_FLIGHT = "pace_flight"


@dataclass(frozen=True)
class PagePayload:
    """A candidate JSON payload and the page shape it came from."""
    shape: PageShape
    text: str


class ExtractionStrategy(ABC):
    """Base class for extraction strategies."""

    shape: PageShape
    priority = 0  # Lower = higher priority

    def __init__(self):
        self.name = self.__class__.__name__
        self.success_count = 0
        self.failure_count = 0

    @abstractmethod
    def can_extract(self, html: str) -> bool:
        """Cheap pre-check that the page carries this strategy's marker."""

    @abstractmethod
    def extract(self, html: str) -> List[str]:
        """
        Extract candidate payloads from HTML.

        Returns:
            Payload strings, empty if the page shape is not recognized.
        """

    def log_success(self, count: int):
        self.success_count += 1
        logger.debug(f"[{self.name}] ✓ {count} payload(s) (total: {self.success_count})")

    def log_failure(self, error: str = ""):
        self.failure_count += 1
        logger.debug(f"[{self.name}] ✗ Failed (total: {self.failure_count}): {error}")


class InitPropsStrategy(ExtractionStrategy):
    """
    Strategy 1: window.__INIT_PROPS__ assignment (share/reflow pages).
    The payload is raw JSON between the marker and the closing script tag.
    """

    shape = PageShape.INIT_PROPS
    priority = 1

    SCRIPT_OPEN = "<script>window.__INIT_PROPS__ = "
    SCRIPT_CLOSE = "</script>"

    def can_extract(self, html: str) -> bool:
        return self.SCRIPT_OPEN in html

    def extract(self, html: str) -> List[str]:
        start = html.find(self.SCRIPT_OPEN)
        if start < 0:
            self.log_failure("No __INIT_PROPS__ marker")
            return []

        rest = html[start + len(self.SCRIPT_OPEN):]
        end = rest.find(self.SCRIPT_CLOSE)
        if end < 0:
            self.log_failure("Unterminated script")
            return []

        payload = rest[:end].strip()
        if not payload:
            self.log_failure("Empty payload")
            return []

        self.log_success(1)
        return [payload]


class RenderDataStrategy(ExtractionStrategy):
    """
    Strategy 2: RENDER_DATA element (category pages).
    The marker is an attribute value; the element text is URL-encoded JSON.
    """

    shape = PageShape.RENDER_DATA
    priority = 2

    MARKER = "RENDER_DATA"

    def can_extract(self, html: str) -> bool:
        return self.MARKER in html

    def extract(self, html: str) -> List[str]:
        start = html.find(self.MARKER)
        if start < 0:
            self.log_failure("No RENDER_DATA marker")
            return []

        rest = html[start:]
        tag_end = rest.find(">")
        if tag_end < 0:
            self.log_failure("Unterminated tag")
            return []

        rest = rest[tag_end + 1:]
        text_end = rest.find("<")
        if text_end < 0:
            self.log_failure("Unterminated element")
            return []

        payload = unquote_plus(rest[:text_end]).strip()
        if not payload:
            self.log_failure("Empty payload")
            return []

        self.log_success(1)
        return [payload]


class PaceFlightStrategy(ExtractionStrategy):
    """
    Strategy 3: streamed hydration chunks, self.__pace_f.push([1,"..."]).
    Every chunk is a JSON string literal. Chunks are unescaped and joined, and
    each line yields the outermost [...] or {...} span as a candidate.
    """

    shape = PageShape.PACE_FLIGHT
    priority = 3

    PUSH_PATTERN = re.compile(r'self\.__pace_f\.push\(\[\d+,\s*("(?:[^"\\]|\\.)*")\s*\]\)')

    def can_extract(self, html: str) -> bool:
        return "__pace_f" in html

    def extract(self, html: str) -> List[str]:
        chunks = []
        for literal in self.PUSH_PATTERN.findall(html):
            try:
                chunks.append(json.loads(literal))
            except ValueError as e:
                logger.debug(f"[{self.name}] Skipping undecodable chunk: {e}")

        if not chunks:
            self.log_failure("No __pace_f chunks")
            return []

        candidates = []
        for line in "\n".join(chunks).splitlines():
            span = json_span(line)
            if span:
                candidates.append(span)

        if not candidates:
            self.log_failure("No JSON spans in chunks")
            return []

        self.log_success(len(candidates))
        return candidates


def json_span(line: str) -> Optional[str]:
    """Return the text from the first '[' or '{' to its last matching closer."""
    starts = [i for i in (line.find("["), line.find("{")) if i >= 0]
    if not starts:
        return None

    start = min(starts)
    closer = "]" if line[start] == "[" else "}"
    end = line.rfind(closer)
    if end <= start:
        return None
    return line[start:end + 1]


class AdaptiveExtractor:
    """
    Tries every strategy in priority order and collects their payloads.
    Never raises: an unrecognized page yields no payloads.
    """

    def __init__(self, strategies: Optional[List[ExtractionStrategy]] = None):
        self.strategies: List[ExtractionStrategy] = strategies or [
            InitPropsStrategy(),
            RenderDataStrategy(),
            PaceFlightStrategy(),
        ]
        self.strategies.sort(key=lambda s: s.priority)

    def extract(self, html: str, shapes: Optional[Iterable[PageShape]] = None) -> List[PagePayload]:
        """
        Extract candidate payloads.

        Args:
            html: Raw page body
            shapes: Restrict to these page shapes (all when None)

        Returns:
            Payloads in strategy priority order.
        """
        wanted = set(shapes) if shapes is not None else None
        payloads: List[PagePayload] = []

        for strategy in self.strategies:
            if wanted is not None and strategy.shape not in wanted:
                continue
            if not strategy.can_extract(html):
                continue
            try:
                texts = strategy.extract(html)
            except Exception as e:
                strategy.log_failure(str(e))
                continue
            payloads.extend(PagePayload(strategy.shape, text) for text in texts)

        if not payloads:
            logger.debug("[AdaptiveExtractor] Page shape not recognized")
        return payloads

    def get_stats(self) -> Dict[str, Dict[str, int]]:
        """Get statistics for all strategies."""
        return {
            strategy.name: {
                'success': strategy.success_count,
                'failure': strategy.failure_count,
                'priority': strategy.priority,
            }
            for strategy in self.strategies
        }


_default_extractor = AdaptiveExtractor()


def extract_payloads(html: str, shapes: Optional[Iterable[PageShape]] = None) -> List[PagePayload]:
    """Extract candidate payloads with the shared extractor."""
    return _default_extractor.extract(html or "", shapes)


def payload_texts(payloads: Iterable[PagePayload], shape: PageShape) -> List[str]:
    return [p.text for p in payloads if p.shape == shape]
