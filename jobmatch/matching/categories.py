"""Career-path to job-category mapping.

Signup forms store career paths as short values ("tech", "data") or, in older
records, as display labels ("Tech & Engineering"). Job postings are tagged
with database categories ("tech-transformation"). This module maps the former
onto sets of the latter through a fixed, versioned table.

Anything the table does not know maps to ``ALL_CATEGORIES``, which means
"do not filter by category": a stale form value costs precision, never
the whole result set.
"""

from typing import Dict, FrozenSet, Iterable, Optional

CATEGORY_TABLE_VERSION = "2024-11"

ALL_CATEGORIES = "all-categories"

WORK_TYPE_CATEGORIES = (
    "strategy-business-design",
    "data-analytics",
    "marketing-growth",
    "tech-transformation",
    "operations-supply-chain",
    "finance-investment",
    "sales-client-success",
    "product-innovation",
    "sustainability-esg",
    "retail-luxury",
    "entrepreneurship",
    "technology",
)

SENIORITY_CATEGORIES = ("early-career", "experienced", "internship", "business-graduate")

_SENTINEL: FrozenSet[str] = frozenset({ALL_CATEGORIES})

# Form values (and hyphenated legacy values) -> database categories.
FORM_VALUE_CATEGORIES: Dict[str, FrozenSet[str]] = {
    "strategy": frozenset({"strategy-business-design"}),
    "data": frozenset({"data-analytics"}),
    "sales": frozenset({"sales-client-success"}),
    "marketing": frozenset({"marketing-growth"}),
    "finance": frozenset({"finance-investment"}),
    "operations": frozenset({"operations-supply-chain"}),
    "product": frozenset({"product-innovation"}),
    "tech": frozenset({"tech-transformation", "technology"}),
    "sustainability": frozenset({"sustainability-esg"}),
    "unsure": _SENTINEL,
    "data-analytics": frozenset({"data-analytics"}),
    "retail-luxury": frozenset({"retail-luxury"}),
    "entrepreneurship": frozenset({"entrepreneurship"}),
    "technology": frozenset({"tech-transformation", "technology"}),
}

# Display labels, current and retired, keyed case-insensitively.
LABEL_CATEGORIES: Dict[str, FrozenSet[str]] = {
    "strategy & business design": FORM_VALUE_CATEGORIES["strategy"],
    "data & analytics": FORM_VALUE_CATEGORIES["data"],
    "sales & client success": FORM_VALUE_CATEGORIES["sales"],
    "marketing & growth": FORM_VALUE_CATEGORIES["marketing"],
    "finance & investment": FORM_VALUE_CATEGORIES["finance"],
    "operations & supply chain": FORM_VALUE_CATEGORIES["operations"],
    "product & innovation": FORM_VALUE_CATEGORIES["product"],
    "tech & transformation": FORM_VALUE_CATEGORIES["tech"],
    "sustainability & esg": FORM_VALUE_CATEGORIES["sustainability"],
    "not sure yet / general": _SENTINEL,
    "tech & engineering": FORM_VALUE_CATEGORIES["tech"],
    "retail & luxury": FORM_VALUE_CATEGORIES["retail-luxury"],
}

CAREER_PATH_LABELS: Dict[str, str] = {
    "strategy": "Strategy & Business Design",
    "data": "Data & Analytics",
    "sales": "Sales & Client Success",
    "marketing": "Marketing & Growth",
    "finance": "Finance & Investment",
    "operations": "Operations & Supply Chain",
    "product": "Product & Innovation",
    "tech": "Tech & Transformation",
    "sustainability": "Sustainability & ESG",
    "unsure": "Not Sure Yet / General",
}


def map_form_value_to_categories(value: Optional[str]) -> FrozenSet[str]:
    """Map one career-path form value or label to database categories.

    Total over all strings: unknown, empty or None input returns the
    ``ALL_CATEGORIES`` sentinel set.

    Args:
        value: Form value ("tech"), legacy value ("data-analytics") or label

    Returns:
        Frozen set of database categories, or ``{ALL_CATEGORIES}``

    Example:
        >>> sorted(map_form_value_to_categories("Tech & Engineering"))
        ['tech-transformation', 'technology']
        >>> map_form_value_to_categories("astronaut") == frozenset({ALL_CATEGORIES})
        True
    """
    if not value or not value.strip():
        return _SENTINEL
    key = value.strip().lower()
    return FORM_VALUE_CATEGORIES.get(key) or LABEL_CATEGORIES.get(key) or _SENTINEL


def expand_career_paths(values: Iterable[str]) -> Optional[FrozenSet[str]]:
    """Union of categories for every career path a user selected.

    Returns:
        The category set, or None when any path maps to the sentinel
        (meaning: apply no category filter)
    """
    categories = set()
    for value in values:
        mapped = map_form_value_to_categories(value)
        if ALL_CATEGORIES in mapped:
            return None
        categories.update(mapped)
    return frozenset(categories) if categories else None


def category_overlap(job_categories: Iterable[str], career_paths: Iterable[str]) -> int:
    """Number of job categories covered by the user's career paths.

    A user without a category filter overlaps every categorised job by one.
    """
    wanted = expand_career_paths(career_paths)
    job_set = {c.lower() for c in job_categories}
    if wanted is None:
        return 1 if job_set & set(WORK_TYPE_CATEGORIES) else 0
    return len(job_set & wanted)


def job_matches_career_paths(job_categories: Iterable[str], career_paths: Iterable[str]) -> bool:
    """True if the job passes the user's category filter."""
    if expand_career_paths(career_paths) is None:
        return True
    return category_overlap(job_categories, career_paths) > 0


def work_type_categories(job_categories: Iterable[str]) -> FrozenSet[str]:
    """The job's work-type categories (seniority tags removed)."""
    return frozenset(c for c in job_categories if c in WORK_TYPE_CATEGORIES)


def career_path_label(value: str) -> str:
    """Display label for a form value; unknown values are returned unchanged."""
    return CAREER_PATH_LABELS.get(value.strip().lower(), value)
