"""
Tests for the guide integrity checks.

Each test builds a small guide tree on disk, loads it and runs one check
function over every collection.
"""

from collections import Counter

from guidelint.checks import RULES, CheckContext
from guidelint.checks.fences import check_fences
from guidelint.checks.index import check_index
from guidelint.checks.links import check_links
from guidelint.checks.navigation import check_navigation
from guidelint.core.models import Severity
from guidelint.data.guide_loader import GuideLoader, normalize_path


def run_check(check, root, settings):
    loader = GuideLoader(settings)
    collections = loader.discover(root)
    context = CheckContext.build(normalize_path(root.absolute()), settings, collections)
    return [finding for collection in collections for finding in check(collection, context)]


def rule_counts(findings):
    return Counter(finding.rule for finding in findings)


class TestRegistry:
    """Test the rule registry."""

    def test_rules_registered_with_severities(self):
        """Test importing the package registers every rule."""
        assert RULES["nav-broken"].severity == Severity.ERROR
        assert RULES["fence-missing-language"].severity == Severity.ERROR
        assert RULES["index-number-mismatch"].severity == Severity.ERROR
        assert RULES["index-order"].severity == Severity.WARNING
        assert RULES["nav-missing"].severity == Severity.INFO
        assert "file-unreadable" in RULES
        assert "link-external-broken" in RULES


class TestLinkChecks:
    """Test relative link and anchor checks."""

    def test_broken_links_and_anchors(self, write_files, settings_for):
        """Test missing files, missing anchors and links leaving the root."""
        root = write_files(
            {
                "01-a.md": (
                    "# A\n\n## Details\n\n"
                    "[ok](02-b.md#usage) [bad](02-b.md#nope) [self](#details) "
                    "[gone](#gone) [gh](#user-content-details)\n"
                    "[missing](nowhere.md) ![pic](img/none.png) [dir](sub/) "
                    "[out](../outside.md) [mail](mailto:someone@example.com)\n"
                ),
                "02-b.md": "# B\n\n## Usage\n",
                "sub/01-c.md": "# C\n",
            }
        )

        findings = run_check(check_links, root, settings_for(root))

        assert rule_counts(findings) == {
            "anchor-missing": 2,
            "link-broken": 2,
            "link-outside-root": 1,
        }
        messages = [f.message for f in findings]
        assert "Anchor '#nope' not found in 02-b.md" in messages
        assert "Image target 'img/none.png' does not exist" in messages
        broken = [f for f in findings if f.rule == "link-broken"]
        assert all(f.path == "01-a.md" and f.line == 6 for f in broken)

    def test_anchor_to_emphasized_heading(self, write_files, settings_for):
        root = write_files({"notes.md": "# Notes\n\n## The _real_ setup\n\n[x](#the-real-setup)\n"})
        assert run_check(check_links, root, settings_for(root)) == []

    def test_navigation_links_left_to_navigation_rules(self, write_files, settings_for):
        """Test a broken Next link is not also reported as a broken link."""
        root = write_files({"01-a.md": "# A\n\n[Next →](02-missing.md)\n"})
        assert run_check(check_links, root, settings_for(root)) == []

    def test_root_relative_links(self, write_files, settings_for):
        """Test links starting with / resolve from the checked root."""
        root = write_files(
            {
                "README.md": "# Root\n",
                "guide/01-a.md": "# A\n\n[top](/README.md) [nope](/missing.md)\n",
            }
        )

        findings = run_check(check_links, root, settings_for(root))

        assert [f.message for f in findings] == ["Link target '/missing.md' does not exist"]


class TestNavigationChecks:
    """Test Previous / Next / Back to Index checks."""

    def test_valid_guide_has_no_navigation_findings(self, valid_guide, settings_for):
        assert run_check(check_navigation, valid_guide, settings_for(valid_guide)) == []

    def test_broken_next_link(self, valid_guide, settings_for, make_chapter):
        """Test a Next link to a missing chapter."""
        (valid_guide / "03-first-program.md").write_text(
            make_chapter("First Program", previous="02-setup.md", next_="04-missing.md"),
            encoding="utf-8",
        )

        findings = run_check(check_navigation, valid_guide, settings_for(valid_guide))

        assert len(findings) == 1
        assert findings[0].rule == "nav-broken"
        assert findings[0].path == "03-first-program.md"
        assert "Next link '04-missing.md'" in findings[0].message

    def test_next_link_skipping_a_chapter(self, valid_guide, settings_for, make_chapter):
        """Test a Next link that jumps over the following chapter."""
        (valid_guide / "01-introduction.md").write_text(
            make_chapter("Introduction", next_="03-first-program.md"),
            encoding="utf-8",
        )

        findings = run_check(check_navigation, valid_guide, settings_for(valid_guide))

        assert [f.rule for f in findings] == ["nav-order"]
        assert findings[0].message.endswith("expected 02-setup.md")

    def test_back_to_index_must_reach_an_index(self, valid_guide, settings_for, make_chapter):
        """Test Back to Index pointing at a chapter."""
        (valid_guide / "02-setup.md").write_text(
            make_chapter(
                "Setup",
                previous="01-introduction.md",
                next_="03-first-program.md",
                index="01-introduction.md",
            ),
            encoding="utf-8",
        )

        findings = run_check(check_navigation, valid_guide, settings_for(valid_guide))

        assert [f.rule for f in findings] == ["nav-order"]
        assert "not an index" in findings[0].message

    def test_back_to_parent_directory_index(self, write_files, settings_for):
        """Test Back to Index may point at a directory holding the index."""
        root = write_files(
            {
                "README.md": "# Guides\n",
                "guide/01-a.md": "# A\n\n[Back to Index](../)\n",
            }
        )
        assert run_check(check_navigation, root, settings_for(root)) == []

    def test_listed_chapter_without_navigation(self, valid_guide, settings_for):
        """Test a chapter in the index that has no footer links."""
        (valid_guide / "02-setup.md").write_text("# Setup\n\nNo footer.\n")

        findings = run_check(check_navigation, valid_guide, settings_for(valid_guide))

        assert rule_counts(findings) == {"nav-missing": 1}
        assert findings[0].severity == Severity.INFO


class TestFenceChecks:
    """Test fenced code block checks."""

    CONTENT = "# F\n\n```\nno lang\n```\n\n```cobol\nX\n```\n\n```python\nx\n"

    def test_missing_language_and_unclosed(self, write_files, settings_for):
        root = write_files({"01-f.md": self.CONTENT})

        findings = run_check(check_fences, root, settings_for(root))

        assert [(f.rule, f.line) for f in findings] == [
            ("fence-missing-language", 3),
            ("fence-unclosed", 11),
        ]

    def test_unknown_language_with_known_list(self, write_files, settings_for):
        """Test the language allow-list is only applied when configured."""
        root = write_files({"01-f.md": self.CONTENT})

        findings = run_check(
            check_fences, root, settings_for(root, known_languages=["python", "bash"])
        )

        assert ("fence-unknown-language", 7) in [(f.rule, f.line) for f in findings]
        assert "'cobol'" in [f for f in findings if f.rule == "fence-unknown-language"][0].message


class TestIndexChecks:
    """Test README index checks."""

    def test_valid_guide_has_no_index_findings(self, valid_guide, settings_for):
        assert run_check(check_index, valid_guide, settings_for(valid_guide)) == []

    def test_missing_index(self, write_files, settings_for):
        """Test numbered chapters without a README."""
        root = write_files({"01-a.md": "# A\n", "02-b.md": "# B\n"})

        findings = run_check(check_index, root, settings_for(root))

        assert [(f.rule, f.path) for f in findings] == [("index-missing", ".")]

    def test_single_loose_page_needs_no_index(self, write_files, settings_for):
        root = write_files({"notes.md": "# Notes\n"})
        assert run_check(check_index, root, settings_for(root)) == []

    def test_index_listing_nothing(self, write_files, settings_for):
        """Test a README that links no chapters at all."""
        root = write_files({"README.md": "# Guide\n\nWelcome.\n", "01-a.md": "# A\n"})

        findings = run_check(check_index, root, settings_for(root))

        assert [(f.rule, f.path) for f in findings] == [("index-missing", "README.md")]

    def test_unlisted_chapter_and_missing_file(self, write_files, settings_for):
        root = write_files(
            {
                "README.md": "1. [A](01-a.md)\n2. [C](03-c.md)\n",
                "01-a.md": "# A\n",
                "02-b.md": "# B\n",
            }
        )

        findings = run_check(check_index, root, settings_for(root))
        by_rule = {f.rule: f for f in findings}

        assert set(by_rule) == {"index-missing-file", "index-missing-chapter"}
        assert by_rule["index-missing-file"].line == 2
        assert "02-b.md" in by_rule["index-missing-chapter"].message
        assert by_rule["index-missing-chapter"].path == "README.md"

    def test_duplicate_entry(self, write_files, settings_for):
        root = write_files(
            {
                "README.md": "1. [A](01-a.md)\n2. [B](02-b.md)\n3. [A again](01-a.md)\n",
                "01-a.md": "# A\n",
                "02-b.md": "# B\n",
            }
        )

        findings = run_check(check_index, root, settings_for(root))

        assert [(f.rule, f.line) for f in findings] == [("index-duplicate-entry", 3)]

    def test_duplicate_entry_in_bulleted_index(self, write_files, settings_for):
        root = write_files(
            {
                "README.md": "- [A](01-a.md)\n- [B](02-b.md)\n- [A again](01-a.md)\n",
                "01-a.md": "# A\n",
                "02-b.md": "# B\n",
            }
        )

        findings = run_check(check_index, root, settings_for(root))

        assert [(f.rule, f.line) for f in findings] == [("index-duplicate-entry", 3)]

    def test_prose_link_is_not_a_duplicate(self, write_files, settings_for):
        """Test a chapter mentioned in prose and listed once is not a duplicate."""
        root = write_files(
            {
                "README.md": "Start with [the intro](01-a.md).\n\n- [A](01-a.md)\n- [B](02-b.md)\n",
                "01-a.md": "# A\n",
                "02-b.md": "# B\n",
            }
        )

        assert run_check(check_index, root, settings_for(root)) == []

    def test_number_mismatch_and_order(self, write_files, settings_for):
        """Test an index whose second and third entries are swapped."""
        root = write_files(
            {
                "README.md": "1. [A](01-a.md)\n2. [C](03-c.md)\n3. [B](02-b.md)\n",
                "01-a.md": "# A\n",
                "02-b.md": "# B\n",
                "03-c.md": "# C\n",
            }
        )

        findings = run_check(check_index, root, settings_for(root))

        assert rule_counts(findings) == {"index-number-mismatch": 2, "index-order": 1}
        mismatches = [f for f in findings if f.rule == "index-number-mismatch"]
        assert mismatches[0].message == (
            "Index entry 2 points to 03-c.md (chapter 3, expected 2)"
        )

    def test_numbering_gap(self, write_files, settings_for):
        root = write_files(
            {
                "README.md": "1. [A](01-a.md)\n2. [B](02-b.md)\n4. [C](03-c.md)\n",
                "01-a.md": "# A\n",
                "02-b.md": "# B\n",
                "03-c.md": "# C\n",
            }
        )

        findings = run_check(check_index, root, settings_for(root))

        assert rule_counts(findings) == {"index-numbering-gap": 1, "index-number-mismatch": 1}
        assert "1, 2, 4" in [f for f in findings if f.rule == "index-numbering-gap"][0].message

    def test_zero_based_chapters_allowed(self, write_files, settings_for):
        """Test chapters numbered from 00 listed from 1 are consistent."""
        root = write_files(
            {
                "README.md": "1. [Intro](00-intro.md)\n2. [Setup](01-setup.md)\n",
                "00-intro.md": "# Intro\n",
                "01-setup.md": "# Setup\n",
            }
        )
        assert run_check(check_index, root, settings_for(root)) == []

    def test_duplicate_chapter_titles(self, write_files, settings_for):
        root = write_files(
            {
                "README.md": "1. [A](01-a.md)\n2. [B](02-b.md)\n",
                "01-a.md": "# Setup\n",
                "02-b.md": "# Setup\n",
            }
        )

        findings = run_check(check_index, root, settings_for(root))

        assert [(f.rule, f.path) for f in findings] == [("heading-duplicate-title", "02-b.md")]
