# cs2_stats/scraper/extraction.py
"""
Heuristic stat extraction for csgostats.gg player pages.

The page has no stable labels, so values are classified by the text around
them. Each rule family pairs a node pattern with a context builder and an
ordered rule table; one generic matcher walks the table. Within a family the
first rule that accepts a node decides its field, and a field keeps the
first value it receives in document order.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Pattern, Tuple

from .core import NoDataFound
from .document import DocNode, DocumentSnapshot
from .validation import validate_fields

LOGGER = logging.getLogger(__name__)

INTEGER_RE = re.compile(r'^\d+$')
DECIMAL_RE = re.compile(r'^\d+\.\d+$')
PERCENT_RE = re.compile(r'^\d+%$')
ADR_RE = re.compile(r'^\d{2,3}$')

# Range guards keep unrelated counters (round ids, totals) out of small fields.
HEADSHOTS_MAX = 50000
MATCH_RESULT_MAX = 10000
ROUNDS_MIN = 1000
DAMAGE_MIN = 100000

HEADING_TAGS = ('h1',)
HEADING_CLASSES = ('player-name', 'username')
UNKNOWN_PLAYER = 'Unknown'

NO_DATA_MESSAGE = 'No stats data found - player might have no recorded matches'


@dataclass(frozen=True)
class NumericGuard:
    """Exclusive bounds a value must fall between."""

    above: Optional[float] = None
    below: Optional[float] = None

    def accepts(self, value: Any) -> bool:
        if self.above is not None and not value > self.above:
            return False
        if self.below is not None and not value < self.below:
            return False
        return True


@dataclass(frozen=True)
class Rule:
    target: str
    keywords: Tuple[str, ...]
    exclusions: Tuple[str, ...] = ()
    guard: NumericGuard = NumericGuard()


@dataclass(frozen=True)
class RuleFamily:
    name: str
    pattern: Pattern
    context: Callable[[DocumentSnapshot, DocNode], Optional[str]]
    convert: Callable[[str], Any]
    rules: Tuple[Rule, ...]
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Extraction:
    display_name: str
    source_url: str
    fields: Dict[str, Any] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    @property
    def field_count(self) -> int:
        return len(self.fields)


def match_rule(rules: Tuple[Rule, ...], context: str, value: Any) -> Optional[Rule]:
    """Return the first rule whose keywords, exclusions and guard accept the value."""
    for rule in rules:
        if not any(keyword in context for keyword in rule.keywords):
            continue
        if any(excluded in context for excluded in rule.exclusions):
            continue
        if not rule.guard.accepts(value):
            continue
        return rule
    return None


# --- Context builders ---

def svg_label_context(document: DocumentSnapshot, node: DocNode) -> Optional[str]:
    """Label text next to the chart that draws the value."""
    svg = document.closest(node, 'svg')
    if svg is None:
        return None
    container = document.parent_of(svg)
    if container is None:
        return None
    for child in document.children_of(container):
        if child.index != svg.index and child.text:
            return child.text.lower()
    return None


def parent_context(document: DocumentSnapshot, node: DocNode) -> str:
    return document.parent_text(node).lower()


def own_and_parent_context(document: DocumentSnapshot, node: DocNode) -> str:
    return f"{node.text} {document.parent_text(node)}".lower()


# --- Rule tables ---

POSITIVE = NumericGuard(above=0)

DECIMAL_FAMILY = RuleFamily(
    name='decimal',
    pattern=DECIMAL_RE,
    tags=('text',),
    context=svg_label_context,
    convert=float,
    rules=(
        Rule('kd_ratio', ('k/d', 'kd')),
        Rule('hltv_rating', ('hltv', 'rating')),
    ),
)

PERCENT_FAMILY = RuleFamily(
    name='percent',
    pattern=PERCENT_RE,
    context=parent_context,
    convert=str,
    rules=(
        Rule('win_rate', ('win',)),
        Rule('headshot_percentage', ('hs', 'headshot')),
        Rule('clutch_success', ('clutch',)),
        Rule('entry_success', ('entry',)),
    ),
)

INTEGER_FAMILY = RuleFamily(
    name='integer',
    pattern=INTEGER_RE,
    context=own_and_parent_context,
    convert=int,
    rules=(
        Rule('kills', ('kill',), exclusions=('death',), guard=POSITIVE),
        Rule('deaths', ('death',), exclusions=('kill',), guard=POSITIVE),
        Rule('assists', ('assist',), guard=POSITIVE),
        Rule('headshots', ('headshot',), guard=NumericGuard(above=0, below=HEADSHOTS_MAX)),
        Rule('matches_played', ('played', 'match'), exclusions=('round',), guard=POSITIVE),
        Rule('matches_won', ('won',), guard=NumericGuard(above=0, below=MATCH_RESULT_MAX)),
        Rule('matches_lost', ('lost',), guard=NumericGuard(above=0, below=MATCH_RESULT_MAX)),
        Rule('rounds_played', ('round',), guard=NumericGuard(above=ROUNDS_MIN)),
        Rule('total_damage', ('damage',), guard=NumericGuard(above=DAMAGE_MIN)),
    ),
)

ADR_FAMILY = RuleFamily(
    name='adr',
    pattern=ADR_RE,
    context=own_and_parent_context,
    convert=int,
    rules=(
        Rule('adr', ('adr',)),
    ),
)

RULE_FAMILIES: Tuple[RuleFamily, ...] = (
    DECIMAL_FAMILY,
    PERCENT_FAMILY,
    INTEGER_FAMILY,
    ADR_FAMILY,
)

# Upper-case labels whose value sits in a neighbouring sibling element.
LABEL_FIELDS: Dict[str, str] = {
    'PLAYED': 'matches_played',
    'KILLS': 'kills',
    'DAMAGE': 'total_damage',
    'WON': 'matches_won',
    'DEATHS': 'deaths',
    'ROUNDS': 'rounds_played',
    'LOST': 'matches_lost',
    'ASSISTS': 'assists',
    'TIED': 'matches_tied',
    'HEADSHOTS': 'headshots',
}
LABEL_WINDOW = 2


# --- Engine ---

def apply_family(family: RuleFamily, document: DocumentSnapshot, fields: Dict[str, Any]) -> None:
    for node in document.iter_nodes():
        if family.tags and node.tag not in family.tags:
            continue
        if not family.pattern.match(node.text):
            continue

        context = family.context(document, node)
        if context is None:
            continue

        value = family.convert(node.text)
        rule = match_rule(family.rules, context, value)
        if rule is None or rule.target in fields:
            continue

        LOGGER.debug("%s rule -> %s = %r", family.name, rule.target, value)
        fields[rule.target] = value


def apply_label_fallback(document: DocumentSnapshot, fields: Dict[str, Any]) -> None:
    """Fill fields whose label and value are separate sibling elements."""
    for label, target in LABEL_FIELDS.items():
        label_node = next(
            (node for node in document.iter_nodes() if node.text.upper() == label),
            None,
        )
        if label_node is None or label_node.parent is None:
            continue

        siblings = document.siblings_of(label_node)
        position = next(i for i, sibling in enumerate(siblings) if sibling.index == label_node.index)
        window = siblings[max(0, position - LABEL_WINDOW):position + LABEL_WINDOW + 1]

        for sibling in window:
            if sibling.index != label_node.index and INTEGER_RE.match(sibling.text):
                if target not in fields:
                    fields[target] = int(sibling.text)
                break


def resolve_display_name(document: DocumentSnapshot) -> str:
    """Player name from the page heading, else the title before ' - '."""
    for node in document.iter_nodes():
        is_heading = node.tag in HEADING_TAGS or any(node.has_class(c) for c in HEADING_CLASSES)
        if is_heading and node.text:
            return node.text

    title_name = document.title.split('-')[0].strip() if document.title else ''
    return title_name or UNKNOWN_PLAYER


def extract(document: DocumentSnapshot) -> Extraction:
    """
    Classify the stats shown on a player page.

    Args:
        document: Snapshot of the rendered player page

    Returns:
        Extraction with display name, source url and a non-empty field mapping.
        Integers are ints, ratios are floats, percentages stay as shown ("42%").

    Raises:
        NoDataFound: If no field could be classified
    """
    fields: Dict[str, Any] = {}
    for family in RULE_FAMILIES:
        apply_family(family, document, fields)
    apply_label_fallback(document, fields)

    is_valid, warnings = validate_fields(fields)
    if not is_valid:
        raise NoDataFound(NO_DATA_MESSAGE)

    for warning in warnings:
        LOGGER.warning("%s: %s", document.url or 'document', warning)

    return Extraction(
        display_name=resolve_display_name(document),
        source_url=document.url,
        fields=fields,
        warnings=tuple(warnings),
    )
