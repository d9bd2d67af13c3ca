#!/usr/bin/env python3
"""
Build the alias table (aliases.json) consumed by the test index.

Each test-suite script name gets a handful of coarse topic tags derived
from its name (dash, hls, encryption, hevc, ...), merged with the
keywords, test-name tokens and subtest-name tokens found for that script
in the test-description XML.  The output maps the script name without
its ``.sh`` suffix to an ordered, duplicate-free tag list.

Usage:
  # Script names taken from the XML corpus itself
  python scripts/build_aliases.py --xml all_tests_descriptions.xml

  # Explicit list of script names (one per line)
  python scripts/build_aliases.py --names "test name.txt" -o aliases.json

Requirements:
  - testsuite-mcp installed (pip install -e . from project root)
"""

import argparse
import json
import re
import sys
from pathlib import Path
from typing import Dict, Iterable, List

# Project src on path for the package import when run from the repo
_src = Path(__file__).resolve().parent.parent / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from testsuite_mcp.core.engine import normalize  # noqa: E402
from testsuite_mcp.core.indexer import alias_key, load_corpus  # noqa: E402


def tokenize(name: str) -> List[str]:
    return [t for t in re.split(r"[-_]+", normalize(name)) if t]


def _add(tags: List[str], *values: str) -> None:
    for value in values:
        if value and value not in tags:
            tags.append(value)


def derive_aliases(name: str) -> List[str]:
    """Coarse topic tags for a script *name*; never empty (``misc`` fallback)."""
    n = normalize(name)
    t = set(tokenize(name))
    tags: List[str] = []

    def has(*words: str) -> bool:
        return any(w in t for w in words)

    if "mp4box-" in n:
        _add(tags, "mp4box", "isobmff")
    if has("bifs", "laser", "x3d"):
        _add(tags, "bifs", "scene")
    if has("compositor", "vout", "graphics", "thumbs"):
        _add(tags, "render")

    if has("dash"):
        _add(tags, "dash")
    if has("cmaf"):
        _add(tags, "dash", "cmaf")
    if has("timeline", "template", "sidx", "ssix", "srd"):
        _add(tags, "dash-features")

    if has("hls", "llhls"):
        _add(tags, "hls")
    if has("saes"):
        _add(tags, "hls", "encryption")

    if has("cenc", "encryption", "crypt", "pssh", "selkey", "xps") or "iff_crypt" in n:
        _add(tags, "encryption", "cenc")

    if has("rtp"):
        _add(tags, "rtp")
    if has("rtsp"):
        _add(tags, "rtsp")
    if has("http") or "out_http" in n:
        _add(tags, "http")
    if has("socket", "pipe"):
        _add(tags, "io")

    if has("mpeg2ts", "tsmux", "route"):
        _add(tags, "mpeg-ts")
    if has("mpeg2ps"):
        _add(tags, "mpeg-ps")

    if has("hevc", "dovi") or any(s in n for s in ("hevcsplit", "hevc-tiles", "dolby_vision")):
        _add(tags, "hevc")
    if has("heif"):
        _add(tags, "heif")
    if has("qt", "qtvr", "prores"):
        _add(tags, "quicktime")

    if any(x.startswith("ff") for x in t):
        _add(tags, "ffmpeg")

    if has("ttml", "vtt", "stl", "subtitle", "vobsub", "ttxtdec", "txtgen", "txtconv", "cc708") \
            or "rawsubs" in n:
        _add(tags, "subtitles")

    if any(s in n for s in ("inspect", "analyze", "graphics_dump")):
        _add(tags, "inspect")

    if has("mux", "demux", "reframers"):
        _add(tags, "muxing")
    if has("cues", "cue", "chap"):
        _add(tags, "metadata")
    if has("yuv4mpeg", "raw-video", "raw-audio"):
        _add(tags, "raw")
    if has("jsfilter"):
        _add(tags, "quickjs")
    if has("python", "node"):
        _add(tags, "bindings")
    if has("svg", "swf", "x3d"):
        _add(tags, "vector-graphics")
    if has("filelist", "netcap"):
        _add(tags, "utils")
    if has("cues", "id3"):
        _add(tags, "id3")

    if not tags:
        _add(tags, "misc")
    return tags


def extract_xml_keywords(corpus: Iterable[dict]) -> Dict[str, List[str]]:
    """Per script name: test-name tokens, subtest keywords and subtest-name tokens."""
    by_file: Dict[str, List[str]] = {}
    for test in corpus:
        key = alias_key(test.get("file") or "")
        if not key:
            continue
        words = by_file.setdefault(key, [])
        _add(words, *tokenize(test.get("name") or ""))
        for sub in test.get("subtests") or []:
            _add(words, *(normalize(k) for k in sub.get("keywords") or []))
            _add(words, *tokenize(sub.get("name") or ""))
    return by_file


def build_aliases(names: Iterable[str], xml_keywords: Dict[str, List[str]]) -> Dict[str, List[str]]:
    aliases: Dict[str, List[str]] = {}
    for name in names:
        tags = derive_aliases(name)
        _add(tags, *xml_keywords.get(name, []))
        aliases[name] = tags
    return aliases


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Build aliases.json from script names and the test-description XML.",
    )
    parser.add_argument("--xml", type=Path, default=Path("all_tests_descriptions.xml"),
                        help="Test-description XML (default: all_tests_descriptions.xml)")
    parser.add_argument("--names", type=Path, default=None,
                        help="File listing script names, one per line (default: from the XML)")
    parser.add_argument("-o", "--output", type=Path, default=Path("aliases.json"),
                        help="Output JSON file (default: aliases.json)")
    args = parser.parse_args()

    print(f"Reading XML keywords from {args.xml}...")
    corpus = load_corpus(args.xml)
    xml_keywords = extract_xml_keywords(corpus)
    print(f"Extracted keywords for {len(xml_keywords)} test files.")

    if args.names is not None:
        raw = args.names.read_text(encoding="utf-8")
        names = [line.strip() for line in raw.splitlines() if line.strip()]
    else:
        names = sorted(xml_keywords)

    aliases = build_aliases(names, xml_keywords)
    args.output.write_text(json.dumps(aliases, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    print(f"Wrote {args.output} with {len(aliases)} entries.")


if __name__ == "__main__":
    main()
