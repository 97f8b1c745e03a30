from pipelines.matching import RegionMatcher, alias_strategy, extract_search_terms, normalize

REGIONS = ["United States", "New York, NY", "Denver, CO", "Dallas, TX", "Washington, DC"]


def test_normalize_and_terms():
    assert normalize("  Denver,  CO! ") == "denver co"
    terms = extract_search_terms("The Heights of Denver")

    assert "the" not in terms
    assert "of" not in terms
    assert terms[0] == "the heights"
    assert "denver" in terms
    assert len(terms[0]) >= len(terms[-1])


def test_substring_match_wins_first():
    matcher = RegionMatcher()

    assert matcher.resolve("Denver, CO", REGIONS) == "Denver, CO"
    assert matcher.resolve("downtown dallas lofts", REGIONS) == "Dallas, TX"


def test_alias_table_used_when_substring_fails():
    matcher = RegionMatcher()

    assert matcher.resolve("NYC", REGIONS) == "New York, NY"
    assert matcher.resolve("dc", REGIONS) == "Washington, DC"


def test_custom_alias_strategy():
    matcher = RegionMatcher([alias_strategy({"mile high": "Denver"})])

    assert matcher.resolve("Mile High", REGIONS) == "Denver, CO"
    assert matcher.resolve("Houston", REGIONS) is None


def test_cache_is_append_only():
    matcher = RegionMatcher()

    matcher.resolve("Denver, CO", REGIONS)
    assert matcher.cached == {"denver, co": "Denver, CO"}

    # cached answer survives even when the region list changes
    assert matcher.resolve("denver, co", ["Other"]) == "Denver, CO"
    assert matcher.resolve("Nowhere", REGIONS) is None
    assert "nowhere" not in matcher.cached
