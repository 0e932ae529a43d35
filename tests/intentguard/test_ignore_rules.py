"""Tests for .intentignore (gitignore-style) rules."""

from intentguard.ignore_rules import IgnoreRule, IntentIgnore


def _ignore(*lines):
    return IntentIgnore.from_text("\n".join(lines))


class TestIgnoreRuleParsing:
    def test_comments_and_blank_lines_are_skipped(self):
        ignore = _ignore("# secrets", "", "   ", "*.env")
        assert len(ignore) == 1

    def test_negation_and_directory_flags(self):
        rule = IgnoreRule.parse("!build/")
        assert rule.negated
        assert rule.directory_only
        assert rule.pattern == "build"

    def test_escaped_hash_is_literal(self):
        rule = IgnoreRule.parse("\\#notes.md")
        assert rule.pattern == "#notes.md"

    def test_slash_anchors_pattern(self):
        assert IgnoreRule.parse("/config.yaml").anchored
        assert IgnoreRule.parse("config/prod.yaml").anchored
        assert not IgnoreRule.parse("*.log").anchored


class TestIntentIgnore:
    def test_unanchored_pattern_matches_at_any_depth(self):
        ignore = _ignore("*.env")
        assert ignore.ignores(".env")
        assert ignore.ignores("config/prod.env")
        assert not ignore.ignores("src/env.py")

    def test_anchored_pattern_matches_from_root_only(self):
        ignore = _ignore("/secrets.yaml")
        assert ignore.ignores("secrets.yaml")
        assert not ignore.ignores("config/secrets.yaml")

    def test_directory_pattern_covers_contents(self):
        ignore = _ignore("vendor/")
        assert ignore.ignores("vendor/lib/a.js")
        assert ignore.ignores("packages/x/vendor/b.js")
        assert not ignore.ignores("vendor")  # a file named vendor is not a directory

    def test_double_star_patterns(self):
        ignore = _ignore("**/generated/*.ts", "docs/**")
        assert ignore.ignores("generated/a.ts")
        assert ignore.ignores("src/deep/generated/a.ts")
        assert ignore.ignores("docs/a/b.md")
        assert not ignore.ignores("src/generated/sub/a.ts")

    def test_negation_re_includes_file(self):
        ignore = _ignore("*.md", "!README.md")
        assert ignore.ignores("CHANGELOG.md")
        assert not ignore.ignores("README.md")

    def test_last_matching_rule_wins(self):
        ignore = _ignore("!keep.txt", "*.txt")
        assert ignore.ignores("keep.txt")

    def test_file_under_ignored_directory_cannot_be_re_included(self):
        ignore = _ignore("build/", "!build/keep.txt")
        assert ignore.ignores("build/keep.txt")

    def test_character_classes(self):
        ignore = _ignore("/data[0-9].csv")
        assert ignore.ignores("data1.csv")
        assert not ignore.ignores("datax.csv")

    def test_paths_are_normalized(self):
        ignore = _ignore("src/legacy/")
        assert ignore.ignores(".\\src\\legacy\\old.py")

    def test_empty_rules_ignore_nothing(self):
        assert not IntentIgnore().ignores("anything.py")


def test_load_missing_file_yields_no_rules(tmp_path):
    assert len(IntentIgnore.load(tmp_path / ".intentignore")) == 0


def test_load_reads_file(tmp_path):
    (tmp_path / ".intentignore").write_text("src/core/secrets.ts\n", encoding="utf-8")
    ignore = IntentIgnore.load(tmp_path / ".intentignore")
    assert ignore.ignores("src/core/secrets.ts")
    assert not ignore.ignores("src/core/other.ts")
