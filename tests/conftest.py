"""
Shared fixtures for the Testsuite-MCP test suite.
"""

import json
import sys
from pathlib import Path

import pytest

# Ensure the src/ directory is on the import path so that
# testsuite_mcp.core.config / testsuite_mcp.core.engine / etc. can be imported.
SRC_ROOT = Path(__file__).resolve().parent.parent / "src"
sys.path.insert(0, str(SRC_ROOT))

from testsuite_mcp.core.config import TestsuiteConfig  # noqa: E402
from testsuite_mcp.core.docs import GpacDocs, MP4BoxDocs  # noqa: E402
from testsuite_mcp.core.indexer import TestIndex, build_index, parse_corpus  # noqa: E402
from testsuite_mcp.exceptions import IntrospectionError  # noqa: E402


# =============================================================================
# Sample corpus & alias table
# =============================================================================

SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<TestSuiteDescription>
  <Test name="aac-sbr" desc="AAC SBR import and segmentation" keywords="aac audio" file="aac-sbr.sh">
    <Subtest name="dash" desc="Segment the AAC SBR stream for DASH" keywords="">
      <Command>MP4Box -dash 1000 counter.264</Command>
    </Subtest>
    <Subtest name="info" desc="Subtest without a command"/>
  </Test>
  <Test name="cenc-encrypt" desc="Common encryption of an MP4 file" keywords="cenc" file="cenc.sh">
    <Subtest name="encrypt" desc="Encrypt with CENC" keywords="encryption drm">
      <Command>MP4Box -crypt drm.xml counter.mp4 -out out/crypted.mp4</Command>
    </Subtest>
  </Test>
  <Test name="dasher-live" desc="Live DASH segmentation with the dasher filter" keywords="dash live" file="dasher-live.sh">
    <Subtest name="segment" desc="Live profile segmentation" keywords="">
      <Command>gpac -i counter.mp4:dur=10 dasher:segdur=2:profile=live -o out/live.mpd</Command>
    </Subtest>
    <Subtest name="fragment" desc="Fragmented MP4 output" keywords="fragment">
      <Command>gpac -i counter.mp4 mp4mx:frag -o out/frag.mp4</Command>
    </Subtest>
  </Test>
</TestSuiteDescription>
"""

SAMPLE_ALIASES = {
    "aac-sbr": ["dash", "audio", "mp4box"],
    "cenc": ["encryption", "cenc"],
    "unused-script": ["misc"],
}


# =============================================================================
# Captured help output
# =============================================================================

FILTERS_HELP = """\x1b[32mdasher\x1b[0m: MPEG-DASH and HLS segmenter
    segdur (frac): target segment duration
      in seconds
    profile (enum): target DASH profile
mp4mx: ISOBMFF/QT multiplexer
    frag (bool): use fragmented file
    segdur (frac): fragment duration
inspect: packet inspector
    deep (bool): dump packets along with PID state
"""

GLOBAL_HELP = """General options
    --threads        number of extra threads
    --log-file       set output log file
"""

MP4BOX_HELP = {
    "import": "  -add (string)    add given file tracks to file\n"
              "  -crypt (string)  encrypt or decrypt tracks\n"
              "  -out (string)    output file name\n"
              "  :sbr             mark AAC as SBR\n",
    "dash": "  -dash (number)   enable DASH-ing of the file(s)\n"
            "  -profile (string) target DASH profile\n",
    "hint": "  -hint            hint the file for RTP/RTSP\n",
}

VALID_PROBES = ("dasher.segdur", "dasher.profile", "mp4mx.frag", "mp4mx.segdur", "inspect.deep")


class FakeRunner:
    """Stands in for :class:`ToolRunner`, answering from captured help text.

    Unknown help targets behave like the real tool rejecting them (non-zero
    exit); ``fail=True`` behaves like a missing binary.
    """

    def __init__(self, responses=None, fail=False):
        self.responses = dict(responses or {})
        self.fail = fail
        self.calls = []

    def help(self, binary, args, timeout):
        key = " ".join(args)
        self.calls.append(key)
        if self.fail:
            raise IntrospectionError(f"{binary} not found")
        response = self.responses.get(key)
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise IntrospectionError(
                f"'{binary} {key}' exited with status 1", returncode=1,
                stderr=f"No such option {key}",
            )
        return response


def default_responses():
    responses = {
        "-ha filters": FILTERS_HELP,
        "-h doc": GLOBAL_HELP,
    }
    for group, text in MP4BOX_HELP.items():
        responses[f"-h {group}"] = text
    for target in VALID_PROBES:
        responses[f"-h {target}"] = f"{target}: documented option\n"
    return responses


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def sample_corpus():
    return parse_corpus(SAMPLE_XML)


@pytest.fixture
def sample_index(sample_corpus) -> TestIndex:
    return TestIndex(tests=build_index(sample_corpus, SAMPLE_ALIASES), source="sample.xml")


@pytest.fixture
def corpus_files(tmp_path: Path) -> Path:
    """A temporary directory with the sample XML, alias table and two scripts."""
    (tmp_path / "all_tests_descriptions.xml").write_text(SAMPLE_XML, encoding="utf-8")
    (tmp_path / "aliases.json").write_text(json.dumps(SAMPLE_ALIASES), encoding="utf-8")
    scripts = tmp_path / "scripts"
    (scripts / "sub").mkdir(parents=True)
    (scripts / "aac-sbr.sh").write_text(
        "#!/bin/sh\n"
        "single_test \"$MP4BOX -dash 1000 $TEMP_DIR/file.mp4\" \"dash\"\n"
        "echo done\n",
        encoding="utf-8",
    )
    (scripts / "sub" / "cenc.sh").write_text(
        "#!/bin/sh\n"
        "# encryption tests\n"
        "do_test \"$MP4BOX -crypt drm.xml in.mp4\" \"crypt\"\n",
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def config(corpus_files: Path) -> TestsuiteConfig:
    return TestsuiteConfig(
        xml_tests_path=str(corpus_files / "all_tests_descriptions.xml"),
        aliases_path=str(corpus_files / "aliases.json"),
        scripts_dir=str(corpus_files / "scripts"),
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner(default_responses())


@pytest.fixture
def failing_runner() -> FakeRunner:
    return FakeRunner(fail=True)


@pytest.fixture
def gpac_docs(config, fake_runner) -> GpacDocs:
    return GpacDocs(config, runner=fake_runner)


@pytest.fixture
def mp4box_docs(config, fake_runner) -> MP4BoxDocs:
    return MP4BoxDocs(config, runner=fake_runner)
