"""
Tests for testsuite_mcp.core.indexer — corpus parsing, alias merging and the
queryable TestIndex.
"""

import json

import pytest

from testsuite_mcp.core.config import TestsuiteConfig
from testsuite_mcp.core.indexer import (
    TestIndex,
    alias_key,
    build_index,
    load_aliases,
    load_corpus,
    parse_corpus,
)
from testsuite_mcp.exceptions import CorpusLoadError, TestNotFoundError

from conftest import SAMPLE_ALIASES


# =============================================================================
# Corpus loader
# =============================================================================

class TestParseCorpus:
    """XML → plain test dicts."""

    def test_reads_attributes_and_commands(self, sample_corpus):
        names = [t["name"] for t in sample_corpus]
        assert names == ["aac-sbr", "cenc-encrypt", "dasher-live"]
        aac = sample_corpus[0]
        assert aac["keywords"] == ["aac", "audio"]
        assert aac["file"] == "aac-sbr.sh"
        assert aac["subtests"][0]["command"] == "MP4Box -dash 1000 counter.264"

    def test_subtests_without_command_are_dropped(self, sample_corpus):
        assert [s["name"] for s in sample_corpus[0]["subtests"]] == ["dash"]

    def test_child_element_fields(self):
        xml = (
            "<TestSuiteDescription><Test><name>hls</name><desc>HLS output</desc>"
            "<Subtest><name>live</name><Command>gpac -i a.mp4 -o live.m3u8</Command></Subtest>"
            "</Test></TestSuiteDescription>"
        )
        corpus = parse_corpus(xml)
        assert corpus[0]["name"] == "hls"
        assert corpus[0]["desc"] == "HLS output"
        assert corpus[0]["subtests"][0]["command"] == "gpac -i a.mp4 -o live.m3u8"

    def test_duplicate_name_last_wins(self):
        xml = (
            '<TestSuiteDescription>'
            '<Test name="t" desc="first"/>'
            '<Test name="t" desc="second"/>'
            '</TestSuiteDescription>'
        )
        corpus = parse_corpus(xml)
        assert len(corpus) == 1
        assert corpus[0]["desc"] == "second"

    def test_malformed_xml_raises(self):
        with pytest.raises(CorpusLoadError, match="Malformed"):
            parse_corpus("<TestSuiteDescription><Test>")

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(CorpusLoadError, match="Cannot read"):
            load_corpus(tmp_path / "missing.xml")


# =============================================================================
# Alias table
# =============================================================================

class TestAliases:
    """Alias key normalization and alias JSON loading."""

    @pytest.mark.parametrize("file_name, key", [
        ("aac-sbr.sh", "aac-sbr"),
        ("cenc", "cenc"),
        ("  dash.sh ", "dash"),
        ("", ""),
        ("archive.sh.bak", "archive.sh.bak"),
    ])
    def test_alias_key(self, file_name, key):
        assert alias_key(file_name) == key

    def test_load_aliases(self, corpus_files):
        aliases = load_aliases(corpus_files / "aliases.json")
        assert aliases["aac-sbr"] == ["dash", "audio", "mp4box"]

    def test_missing_file_degrades_to_empty(self, tmp_path, caplog):
        assert load_aliases(tmp_path / "nope.json") == {}
        assert "not found" in caplog.text

    def test_corrupt_file_degrades_to_empty(self, tmp_path):
        path = tmp_path / "aliases.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_aliases(path) == {}

    def test_non_list_entries_are_skipped(self, tmp_path):
        path = tmp_path / "aliases.json"
        path.write_text(json.dumps({"a": "dash", "b": ["hls", 3]}), encoding="utf-8")
        assert load_aliases(path) == {"b": ["hls"]}

    def test_disabled_aliases(self):
        assert load_aliases(None) == {}


# =============================================================================
# Index builder
# =============================================================================

class TestBuildIndex:
    """Merge of corpus keywords and alias tags."""

    def test_keywords_merged_in_first_seen_order(self, sample_corpus):
        index = build_index(sample_corpus, SAMPLE_ALIASES)
        assert index["aac-sbr"].keywords == ["aac", "audio", "dash", "mp4box"]

    def test_test_without_alias_entry_keeps_own_keywords(self, sample_corpus):
        index = build_index(sample_corpus, SAMPLE_ALIASES)
        assert index["dasher-live"].keywords == ["dash", "live"]

    def test_subtests_inherit_a_copy_of_parent_keywords(self, sample_corpus):
        index = build_index(sample_corpus, SAMPLE_ALIASES)
        test = index["aac-sbr"]
        sub = test.subtests[0]
        assert sub.keywords == test.keywords
        sub.keywords.append("mutated")
        assert "mutated" not in test.keywords

    def test_subtest_own_keywords_are_kept(self, sample_corpus):
        index = build_index(sample_corpus, SAMPLE_ALIASES)
        fragment = index["dasher-live"].subtests[1]
        assert fragment.keywords == ["fragment"]
        assert fragment.test_name == "dasher-live"

    def test_rebuild_is_equal(self, sample_corpus):
        first = build_index(sample_corpus, SAMPLE_ALIASES)
        second = build_index(sample_corpus, SAMPLE_ALIASES)
        assert first.keys() == second.keys()
        for name in first:
            assert first[name].to_dict() == second[name].to_dict()

    def test_case_sensitive_dedup(self):
        corpus = [{"name": "t", "keywords": ["DASH"], "file": "t.sh", "subtests": []}]
        index = build_index(corpus, {"t": ["dash", "DASH"]})
        assert index["t"].keywords == ["DASH", "dash"]


# =============================================================================
# TestIndex
# =============================================================================

class TestTestIndex:
    """Loading, listing, lookup and repro scripts."""

    def test_load_from_config(self, config):
        index = TestIndex.load(config)
        assert len(index) == 3
        assert index.subtest_count() == 4
        assert index.stats()["tests"] == 3

    def test_load_missing_corpus_gives_empty_index(self, tmp_path):
        config = TestsuiteConfig(xml_tests_path=str(tmp_path / "missing.xml"), aliases_path=None)
        index = TestIndex.load(config)
        assert len(index) == 0

    def test_list_tests_sorted_and_filtered(self, sample_index):
        assert [t.name for t in sample_index.list_tests()] == ["aac-sbr", "cenc-encrypt", "dasher-live"]
        assert [t.name for t in sample_index.list_tests(["fragmented"])] == ["dasher-live"]
        assert [t.name for t in sample_index.list_tests("CENC")] == ["cenc-encrypt"]

    def test_get_unknown_test_raises(self, sample_index):
        with pytest.raises(TestNotFoundError, match="Unknown XML test: nope"):
            sample_index.get_test("nope")

    def test_get_test_enrichment(self, sample_index):
        data = sample_index.get_test("dasher-live")
        enriched = data["enriched_keywords"]
        assert enriched[:2] == ["dash", "live"]
        assert "segmentation" in enriched
        assert "dasher:segdur" in enriched
        assert "-o" in enriched
        assert data["full_description"] == "Live DASH segmentation with the dasher filter"
        assert data["subtest_summary"] == "Live profile segmentation; Fragmented MP4 output"
        assert len(data["subtests"]) == 2

    def test_dry_run_script(self, sample_index):
        script = sample_index.build_dry_run_script("cenc-encrypt", mp4box_bin="/opt/MP4Box")
        lines = script.splitlines()
        assert lines[0] == "# Repro for: cenc-encrypt"
        assert "set -e" in lines
        assert '"/opt/MP4Box" -crypt drm.xml counter.mp4 -out "$TEMP_DIR"/crypted.mp4' in lines
        assert "# Subtest 1: encrypt - Encrypt with CENC" in lines

    def test_dry_run_unknown_test(self, sample_index):
        with pytest.raises(TestNotFoundError):
            sample_index.build_dry_run_script("nope")
