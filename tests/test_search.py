"""
Tests for testsuite_mcp.core.search — the goal-to-command pipeline, keyword
test search and result formatting.
"""

import json

import pytest

from testsuite_mcp.core.config import TestsuiteConfig
from testsuite_mcp.core.docs import GpacDocs, MP4BoxDocs
from testsuite_mcp.core.search import NO_MATCH, CommandSearchEngine, ResultFormatter
from testsuite_mcp.exceptions import ConfigError

from conftest import FakeRunner


@pytest.fixture
def engine(sample_index, config, gpac_docs, mp4box_docs):
    return CommandSearchEngine(sample_index, config=config,
                               gpac_docs=gpac_docs, mp4box_docs=mp4box_docs)


# =============================================================================
# find_commands
# =============================================================================

class TestFindCommands:
    """Goal → cleaned, validated commands."""

    def test_empty_goal_is_no_match(self, engine):
        outcome = engine.find_commands("   ")
        assert outcome.no_match
        assert outcome.to_dict() == {"error": NO_MATCH, "query": "   "}

    def test_unmatched_goal_is_no_match(self, engine):
        outcome = engine.find_commands("vp9 webm")
        assert outcome.to_dict()["error"] == NO_MATCH

    def test_encryption_goal(self, engine):
        outcome = engine.find_commands("encrypt with cenc", limit=3)
        data = outcome.to_dict()
        assert data["total"] == 1
        cmd = data["commands"][0]
        assert cmd["test"] == "cenc-encrypt"
        assert cmd["command"] == "MP4Box -crypt drm.xml input.mp4 -out out/crypted.mp4"
        assert cmd["original_command"] == "MP4Box -crypt drm.xml counter.mp4 -out out/crypted.mp4"
        assert cmd["changes"] == ["Replaced counter.mp4 → input.mp4"]
        assert cmd["confidence"] == "high"
        assert cmd["validated"] is True
        assert "validationErrors" not in cmd
        assert data["note"] == "Found 1 relevant command(s)."

    def test_dash_goal_cleans_and_validates_filter_graph(self, engine):
        outcome = engine.find_commands("live dash segmentation")
        commands = {c.subtest: c for c in outcome.commands}
        segment = commands["segment"]
        assert segment.command == "gpac -i input.mp4 dasher:segdur=2:profile=live -o out/live.mpd"
        assert segment.validated
        assert segment.validation.probes == 2

    def test_commands_sorted_by_score(self, engine):
        outcome = engine.find_commands("dash")
        scores = [c.score for c in outcome.commands]
        assert scores == sorted(scores, reverse=True)

    def test_validation_can_be_disabled(self, engine):
        outcome = engine.find_commands("encrypt", validate=False)
        cmd = outcome.commands[0]
        assert cmd.validation is None
        assert cmd.validated is False
        assert "validationErrors" not in cmd.to_dict()

    def test_unavailable_docs_do_not_mark_commands_validated(self, sample_index, config):
        runner = FakeRunner(fail=True)
        engine = CommandSearchEngine(sample_index, config=config,
                                     gpac_docs=GpacDocs(config, runner=runner),
                                     mp4box_docs=MP4BoxDocs(config, runner=runner))
        cmd = engine.find_commands("encrypt").commands[0].to_dict()
        assert cmd["validated"] is False
        assert "validationErrors" not in cmd
        assert cmd["validationWarnings"]

    def test_probe_budget_is_shared_across_commands(self, sample_index, gpac_docs, mp4box_docs):
        config = TestsuiteConfig(option_probes_per_command=1)
        engine = CommandSearchEngine(sample_index, config=config,
                                     gpac_docs=gpac_docs, mp4box_docs=mp4box_docs)
        outcome = engine.find_commands("live dash segmentation fragment", limit=1)
        assert sum(c.validation.probes for c in outcome.commands) <= 1

    @pytest.mark.parametrize("limit", [0, 11, -1])
    def test_out_of_range_limit_rejected(self, engine, limit):
        with pytest.raises(ConfigError):
            engine.find_commands("dash", limit=limit)

    def test_descriptions_are_truncated(self, engine):
        outcome = engine.find_commands("encrypt")
        assert len(outcome.commands[0].to_dict(max_desc_chars=5)["description"]) == 5


# =============================================================================
# find_tests / list_tests
# =============================================================================

class TestFindTests:
    """Keyword ranking over tests."""

    def test_ranks_by_keywords(self, engine):
        page = engine.find_tests(["dash"])
        names = [t["name"] for t in page["tests"]]
        assert names[0] == "dasher-live"
        assert set(names) == {"dasher-live", "aac-sbr"}
        assert page["total"] == 2
        assert "subtests" not in page["tests"][0]

    def test_empty_keywords_report_error(self, engine):
        page = engine.find_tests(["", "  "])
        assert page["total"] == 0
        assert page["tests"] == []
        assert page["error"] == "No valid keywords provided"

    def test_paging_and_subtests(self, engine):
        page = engine.find_tests(["dash"], limit=1, offset=1, include_subtests=True)
        assert page["returned"] == 1
        assert page["offset"] == 1
        assert page["tests"][0]["name"] == "aac-sbr"
        assert page["tests"][0]["subtests"] == [
            {"name": "dash", "desc": "Segment the AAC SBR stream for DASH"},
        ]

    def test_limit_above_max_rejected(self, engine):
        with pytest.raises(ConfigError):
            engine.find_tests(["dash"], limit=51)

    def test_list_tests(self, engine):
        page = engine.list_tests(limit=2)
        assert page["total"] == 3
        assert [t["name"] for t in page["tests"]] == ["aac-sbr", "cenc-encrypt"]
        assert page["tests"][0]["subtestCount"] == 1


# =============================================================================
# Formatting
# =============================================================================

class TestResultFormatter:

    def test_json_no_match(self, engine):
        text = ResultFormatter.format_json(engine.find_commands("nothing here zzz"))
        assert json.loads(text) == {"error": NO_MATCH, "query": "nothing here zzz"}

    def test_console_lists_commands(self, engine):
        text = ResultFormatter.format_console(engine.find_commands("encrypt"), elapsed_time=0.5)
        assert "cenc-encrypt#encrypt" in text
        assert "$ MP4Box -crypt drm.xml input.mp4" in text
        assert "validation: validated" in text
        assert "0.500 seconds" in text

    def test_console_no_match(self, engine):
        assert NO_MATCH in ResultFormatter.format_console(engine.find_commands(""))
