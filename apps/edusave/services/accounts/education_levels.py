from typing import Iterable, Optional

EDUCATION_LEVEL_PRIORITY = {
    "primary": 1,
    "secondary": 2,
    "post_secondary": 3,
    "tertiary": 4,
    "postgraduate": 5,
}

EDUCATION_LEVEL_LABELS = {
    "primary": "Primary",
    "secondary": "Secondary",
    "post_secondary": "Post-Secondary",
    "tertiary": "Tertiary",
    "postgraduate": "Post-Graduate",
}


def format_education_level(level: Optional[str]) -> str:
    if not level:
        return "Not Set"
    return EDUCATION_LEVEL_LABELS.get(level, level)


def education_level_rank(level: Optional[str]) -> int:
    """0 for unset or unknown levels, 1..5 otherwise."""
    if not level:
        return 0
    return EDUCATION_LEVEL_PRIORITY.get(level, 0)


def highest_education_level(levels: Iterable[Optional[str]]) -> Optional[str]:
    valid = [lvl for lvl in levels if lvl in EDUCATION_LEVEL_PRIORITY]
    if not valid:
        return None
    return max(valid, key=lambda lvl: EDUCATION_LEVEL_PRIORITY[lvl])


def compare_education_levels(level1: Optional[str], level2: Optional[str]) -> int:
    """
    1 if level1 is higher, -1 if lower, 0 if equal.
    An unset level is lower than any set one.
    """
    if not level1 and not level2:
        return 0
    if not level1:
        return -1
    if not level2:
        return 1

    p1 = education_level_rank(level1)
    p2 = education_level_rank(level2)
    if p1 > p2:
        return 1
    if p1 < p2:
        return -1
    return 0
