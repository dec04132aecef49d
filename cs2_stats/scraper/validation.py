# cs2_stats/scraper/validation.py
"""
Validation logic to prevent junk stat records.

An empty extraction means the page rendered without stats (private profile,
no CS2 matches, layout change) and must never be stored as a success.
"""

from typing import Any, Dict, List, Tuple

KD_TOLERANCE = 0.05


def validate_fields(fields: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Validate that extracted fields represent real data.

    Validation rules:
    1. Hard-fail: no fields at all -> Reject
    2. Warnings only (record is still stored):
       - won + lost + tied exceeds matches played
       - headshots exceed kills
       - kd_ratio disagrees with kills / deaths

    Args:
        fields: Field mapping produced by the extraction rules

    Returns:
        (is_valid: bool, warnings: List[str])

    Examples:
        >>> validate_fields({})[0]
        False
        >>> validate_fields({'kills': 10})
        (True, [])
    """
    warnings = []

    if not fields:
        warnings.append("REJECTED: no stat fields extracted (page has no recognizable stats)")
        return (False, warnings)

    played = fields.get('matches_played')
    results = [fields.get(key) for key in ('matches_won', 'matches_lost', 'matches_tied')]
    known_results = [r for r in results if r is not None]
    if played is not None and known_results and sum(known_results) > played:
        warnings.append(
            f"WARNING: won/lost/tied total ({sum(known_results)}) exceeds matches played ({played})"
        )

    kills = fields.get('kills')
    headshots = fields.get('headshots')
    if kills is not None and headshots is not None and headshots > kills:
        warnings.append(f"WARNING: headshots ({headshots}) exceed kills ({kills})")

    deaths = fields.get('deaths')
    kd_ratio = fields.get('kd_ratio')
    if kd_ratio is not None and kills is not None and deaths:
        computed = kills / deaths
        if abs(computed - kd_ratio) > KD_TOLERANCE:
            warnings.append(
                f"WARNING: kd_ratio {kd_ratio} does not match kills/deaths ({computed:.2f})"
            )

    return (True, warnings)
