"""Tests for Maven version ordering and ranges."""

import pytest

from thinlauncher.versions import MavenVersion, matches, parse_range, select_highest


class TestMavenVersion:
    """Ordering rules."""

    @pytest.mark.parametrize(
        "lower,higher",
        [
            ("1.0", "1.1"),
            ("1.2", "1.10"),
            ("1.0-alpha-1", "1.0-beta-1"),
            ("1.0-beta", "1.0-rc1"),
            ("1.0-rc1", "1.0-SNAPSHOT"),
            ("1.0-SNAPSHOT", "1.0"),
            ("1.0", "1.0-sp1"),
            ("1.0", "1.0.1"),
            ("4.3.3.RELEASE", "4.3.4.RELEASE"),
        ],
    )
    def test_ordering(self, lower, higher):
        """Versions sort the way Maven sorts them."""
        assert MavenVersion(lower) < MavenVersion(higher)

    def test_trailing_zeros_and_release_are_equal(self):
        """1.0, 1.0.0 and 1.0.RELEASE name the same version."""
        assert MavenVersion("1.0") == MavenVersion("1.0.0")
        assert MavenVersion("1.0") == MavenVersion("1.0.RELEASE")
        assert hash(MavenVersion("1.0")) == hash(MavenVersion("1.0.0"))


class TestRanges:
    """Range parsing and selection."""

    def test_half_open_range(self):
        """[1.0,2.0) includes 1.0 and excludes 2.0."""
        assert matches("[1.0,2.0)", "1.0")
        assert matches("[1.0,2.0)", "1.9.9")
        assert not matches("[1.0,2.0)", "2.0")

    def test_open_upper_bound(self):
        """(1.0,] excludes 1.0 and has no upper limit."""
        assert not matches("(1.0,]", "1.0")
        assert matches("(1.0,]", "99")

    def test_exact_bracket(self):
        """[1.2] pins a single version."""
        assert parse_range("[1.2]")[0].lower == MavenVersion("1.2")
        assert matches("[1.2]", "1.2")
        assert not matches("[1.2]", "1.2.1")

    def test_union_of_ranges(self):
        """Comma-joined intervals form a union."""
        assert matches("[1.0,2.0),[3.0,4.0]", "3.5")
        assert not matches("[1.0,2.0),[3.0,4.0]", "2.5")

    def test_select_highest_skips_snapshots(self):
        """Snapshots are ignored unless the range names one."""
        candidates = ["1.0", "1.5", "2.0-SNAPSHOT", "2.0", "2.1"]
        assert select_highest("[1.0,2.1)", candidates) == "2.0"
        assert select_highest("[1.0,3.0)", ["1.0", "2.0-SNAPSHOT"]) == "1.0"

    def test_select_highest_none_when_nothing_matches(self):
        """No match yields None."""
        assert select_highest("[5.0,)", ["1.0", "2.0"]) is None

    def test_plain_version_is_exact(self):
        """A non-range spec only selects the same version."""
        assert select_highest("1.0", ["1.0.0", "2.0"]) == "1.0.0"

    @pytest.mark.parametrize("spec", ["[1.0,2.0", "(1.0)", "[]"])
    def test_malformed_ranges(self, spec):
        """Malformed ranges raise ValueError."""
        with pytest.raises(ValueError):
            parse_range(spec)
