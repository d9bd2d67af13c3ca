"""
Tests for the Testsuite client API (testsuite_mcp.client.Testsuite).

Covers the public facade: construction, command search, test lookup,
repro scripts, validation, scripts, stats, health and async variants.
"""

import asyncio

import pytest

import testsuite_mcp
from testsuite_mcp import Testsuite, TestsuiteConfig, TestNotFoundError
from testsuite_mcp.core.docs import GpacDocs, MP4BoxDocs

from conftest import FakeRunner, default_responses


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def client(config, gpac_docs, mp4box_docs):
    """Client over the sample corpus files with captured tool documentation."""
    return Testsuite(config=config, gpac_docs=gpac_docs, mp4box_docs=mp4box_docs)


# =============================================================================
# Construction
# =============================================================================


class TestTestsuiteConstruction:
    """Client construction from config and from env."""

    def test_construct_with_explicit_config(self, config):
        client = Testsuite(config=config)
        assert client.config is config

    def test_construct_from_kwargs_overrides_env(self):
        client = Testsuite(gpac_bin="/opt/gpac", find_default_limit=3)
        assert client.config.gpac_bin == "/opt/gpac"
        assert client.config.find_default_limit == 3

    def test_validate_on_init(self):
        with pytest.raises(testsuite_mcp.ConfigError):
            Testsuite(config=TestsuiteConfig(find_default_limit=20), validate_on_init=True)

    def test_index_is_loaded_lazily(self, client):
        assert client.health()["index_loaded"] is False
        assert len(client.index) == 3
        assert client.health()["index_loaded"] is True


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Search, lookup and validation through the client."""

    def test_find_commands(self, client):
        outcome = client.find_commands("encrypt with cenc")
        assert not outcome.no_match
        assert outcome.commands[0].test == "cenc-encrypt"

    def test_find_commands_no_match(self, client):
        assert client.find_commands("").no_match

    def test_find_tests(self, client):
        page = client.find_tests(("aac",))
        assert [t["name"] for t in page["tests"]] == ["aac-sbr"]

    def test_list_tests(self, client):
        assert client.list_tests(limit=1)["returned"] == 1

    def test_get_test(self, client):
        assert client.get_test("aac-sbr")["file"] == "aac-sbr.sh"

    def test_get_unknown_test_raises(self, client):
        with pytest.raises(TestNotFoundError):
            client.get_test("missing")

    def test_repro_script_uses_configured_binaries(self, config, gpac_docs, mp4box_docs):
        config.gpac_bin = "/opt/gpac/gpac"
        client = Testsuite(config=config, gpac_docs=gpac_docs, mp4box_docs=mp4box_docs)
        script = client.repro_script("dasher-live")
        assert '"/opt/gpac/gpac" -i counter.mp4' in script

    def test_validate(self, client):
        assert client.validate("gpac -i a.mp4 dashr:segdur=2").valid is False

    def test_reload_rebuilds_index(self, client, config):
        assert client.reload() == 3

    def test_describe_global_option(self, client):
        entry = client.describe("--threads")
        assert entry == {"kind": "global_option", "name": "--threads",
                         "found": True, "description": "number of extra threads"}

    def test_describe_mp4box_switch(self, client):
        entry = client.describe("-dash")
        assert entry["kind"] == "switch"
        assert entry["docs"][0]["group"] == "dash"

    def test_describe_filter(self, config, mp4box_docs):
        responses = default_responses()
        responses["-h dasher"] = "dasher: MPEG-DASH and HLS segmenter\n"
        client = Testsuite(config=config, mp4box_docs=mp4box_docs,
                           gpac_docs=GpacDocs(config, runner=FakeRunner(responses)))
        assert client.describe("dasher")["help"].startswith("dasher: MPEG-DASH")
        assert client.describe("dashr") == {"kind": "filter", "name": "dashr",
                                            "found": False, "help": None}


# =============================================================================
# Scripts, stats and health
# =============================================================================


class TestScriptsAndStats:

    def test_read_script_segment(self, client, config):
        path = f"{config.scripts_dir}/aac-sbr.sh"
        assert client.read_script_segment(path, 1, 1) == "#!/bin/sh"

    def test_search_scripts_max_results(self, client):
        assert len(client.search_scripts("MP4BOX", max_results=1)) == 1

    def test_stats(self, client):
        stats = client.stats()
        assert stats["index"]["tests"] == 3
        assert stats["index"]["subtests"] == 4
        assert stats["scripts"] is None

    def test_health_does_not_load(self, client):
        health = client.health()
        assert health["version"] == testsuite_mcp.__version__
        assert health["index_loaded"] is False

    def test_module_health(self, config):
        assert testsuite_mcp.health(config)["xml_tests_path"] == config.xml_tests_path


# =============================================================================
# Async variants
# =============================================================================


class TestAsync:
    """Async wrappers delegate to the sync methods."""

    def test_afind_commands(self, client):
        outcome = asyncio.run(client.afind_commands("encrypt"))
        assert outcome.commands[0].test == "cenc-encrypt"

    def test_aget_test_raises_same_exception(self, client):
        with pytest.raises(TestNotFoundError):
            asyncio.run(client.aget_test("missing"))

    def test_afind_tests_and_astats(self, client):
        page = asyncio.run(client.afind_tests(["dash"]))
        assert page["total"] == 2
        assert asyncio.run(client.astats())["index"]["tests"] == 3

    def test_avalidate(self, client):
        assert asyncio.run(client.avalidate("MP4Box -add a.mp4")).valid
