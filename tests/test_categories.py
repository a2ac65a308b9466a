"""Unit tests for career-path to category mapping."""

import pytest

from jobmatch.matching.categories import (
    ALL_CATEGORIES,
    CATEGORY_TABLE_VERSION,
    career_path_label,
    category_overlap,
    expand_career_paths,
    job_matches_career_paths,
    map_form_value_to_categories,
    work_type_categories,
)


class TestMapFormValue:
    """Tests for map_form_value_to_categories."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("data", {"data-analytics"}),
            ("tech", {"tech-transformation", "technology"}),
            ("strategy", {"strategy-business-design"}),
            ("sustainability", {"sustainability-esg"}),
            ("retail-luxury", {"retail-luxury"}),
        ],
    )
    def test_known_form_values(self, value, expected):
        """Test each form value maps to its database categories."""
        assert map_form_value_to_categories(value) == frozenset(expected)

    def test_labels_are_case_insensitive(self):
        """Test display labels, current and retired, resolve."""
        assert map_form_value_to_categories("Data & Analytics") == frozenset({"data-analytics"})
        assert map_form_value_to_categories("tech & engineering") == map_form_value_to_categories(
            "tech"
        )

    @pytest.mark.parametrize("value", ["astronaut", "", "   ", None, "unsure"])
    def test_unknown_values_map_to_sentinel(self, value):
        """Test the mapper is total: unknown input means no category filter."""
        assert map_form_value_to_categories(value) == frozenset({ALL_CATEGORIES})

    def test_table_is_versioned(self):
        assert CATEGORY_TABLE_VERSION


class TestExpandCareerPaths:
    """Tests for expand_career_paths and the overlap helpers."""

    def test_union_of_paths(self):
        assert expand_career_paths(["data", "finance"]) == frozenset(
            {"data-analytics", "finance-investment"}
        )

    def test_sentinel_disables_filter(self):
        assert expand_career_paths(["data", "unsure"]) is None
        assert expand_career_paths(["not-a-path"]) is None

    def test_category_overlap_counts_matches(self):
        job_categories = ["early-career", "tech-transformation", "technology"]
        assert category_overlap(job_categories, ["tech"]) == 2
        assert category_overlap(job_categories, ["finance"]) == 0

    def test_unfiltered_user_matches_any_categorised_job(self):
        assert job_matches_career_paths(["marketing-growth"], ["unsure"])
        assert category_overlap(["marketing-growth"], ["unsure"]) == 1
        assert category_overlap(["early-career"], ["unsure"]) == 0

    def test_job_matches_career_paths(self):
        assert job_matches_career_paths(["data-analytics"], ["data"])
        assert not job_matches_career_paths(["data-analytics"], ["sales"])


class TestHelpers:
    """Tests for label and work-type helpers."""

    def test_work_type_categories_drops_seniority(self):
        assert work_type_categories(["early-career", "data-analytics", "internship"]) == frozenset(
            {"data-analytics"}
        )

    def test_career_path_label(self):
        assert career_path_label("tech") == "Tech & Transformation"
        assert career_path_label("Custom") == "Custom"
