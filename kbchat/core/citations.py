"""Citation extraction from raw oracle output.

Pure logic — no I/O, no FastAPI imports.  Never raises on bad input:
every failure degrades to "no citations" with the answer text still shown.

Pipeline:  raw text → (display text, parsed citations)
           → annotation fallback → optional default citation
"""

import json
import logging
import posixpath
from dataclasses import dataclass, field

from pydantic import ValidationError

from kbchat.core.prompt import SOURCES_MARKER
from kbchat.models.schemas import Citation

logger = logging.getLogger(__name__)


@dataclass
class Extraction:
    display_text: str
    citations: list[Citation] = field(default_factory=list)


# ------------------------------------------------------------------
# Trailing SOURCES_JSON line
# ------------------------------------------------------------------


def extract_citations(raw_text: str) -> Extraction:
    """Split *raw_text* into the answer to display and its citations.

    1. Find the last ``SOURCES_JSON=`` marker.  None → text returned verbatim.
    2. Take the first ``{`` … last ``}`` after the marker as the JSON blob.
    3. Parse strictly; on failure, drop one char from a ``}}`` ending and retry once.
    4. Drop the marker and everything after it, plus trailing whitespace,
       from the displayed text.  Leading whitespace is kept.
    """
    if not raw_text:
        return Extraction(display_text=raw_text or "")

    marker_at = raw_text.rfind(SOURCES_MARKER)
    if marker_at == -1:
        return Extraction(display_text=raw_text)

    display_text = raw_text[:marker_at].rstrip()
    tail = raw_text[marker_at + len(SOURCES_MARKER):]

    start = tail.find("{")
    end = tail.rfind("}")
    if start == -1 or end < start:
        logger.warning("SOURCES_JSON line without a JSON object: %r", tail[:200])
        return Extraction(display_text=display_text)

    blob = tail[start:end + 1]
    payload = _parse_blob(blob)
    if payload is None:
        logger.warning("Unrecoverable SOURCES_JSON payload: %r", blob[:500])
        return Extraction(display_text=display_text)

    return Extraction(display_text=display_text, citations=_to_citations(payload))


def _parse_blob(blob: str) -> dict | None:
    try:
        return _as_payload(json.loads(blob))
    except json.JSONDecodeError:
        pass
    except RecursionError:
        logger.warning("SOURCES_JSON payload nested too deeply to parse.")
        return None

    if not blob.endswith("}}"):
        return None

    # One extra closing brace is the only repair attempted.
    try:
        return _as_payload(json.loads(blob[:-1]))
    except (json.JSONDecodeError, RecursionError):
        return None


def _as_payload(parsed: object) -> dict | None:
    if isinstance(parsed, dict) and isinstance(parsed.get("sources"), list):
        return parsed
    return None


def _to_citations(payload: dict) -> list[Citation]:
    citations: list[Citation] = []
    for entry in payload["sources"]:
        try:
            citations.append(Citation.model_validate(entry))
        except ValidationError:
            logger.warning("Skipping malformed citation entry: %r", entry)
    return citations


# ------------------------------------------------------------------
# Fallbacks
# ------------------------------------------------------------------


def citation_from_annotations(
    annotations: list[dict],
    known_documents: list[str],
    chars_per_page: int = 0,
) -> Citation | None:
    """Approximate a citation from file_citation annotations.

    Only annotations naming one of *known_documents* qualify.  The page is 1,
    or ``index // chars_per_page + 1`` when *chars_per_page* is positive.
    This is an estimate, not a page locator.
    """
    wanted = {name.lower() for name in known_documents}
    if not wanted:
        return None

    for annotation in annotations:
        if annotation.get("type") != "file_citation":
            continue
        filename = annotation.get("filename")
        if not isinstance(filename, str):
            continue
        if posixpath.basename(filename).lower() not in wanted:
            continue

        page = 1
        index = annotation.get("index")
        if chars_per_page > 0 and isinstance(index, int) and index >= 0:
            page = index // chars_per_page + 1
        return Citation(file_name=posixpath.basename(filename), page=page)

    return None


def resolve_citations(
    raw_text: str,
    annotations: list[dict] | None = None,
    known_documents: list[str] | None = None,
    chars_per_page: int = 0,
    default_citation: Citation | None = None,
) -> Extraction:
    """Full extraction: trailing line, then annotations, then the default.

    *default_citation* is only used when the caller has opted in to it.
    """
    extraction = extract_citations(raw_text)
    if extraction.citations:
        return extraction

    fallback = citation_from_annotations(
        annotations or [], known_documents or [], chars_per_page,
    )
    if fallback is not None:
        logger.info("Citation inferred from annotations: %s p%d", fallback.file_name, fallback.page)
        extraction.citations = [fallback]
    elif default_citation is not None:
        extraction.citations = [default_citation]

    return extraction


# ------------------------------------------------------------------
# Consumer side
# ------------------------------------------------------------------


def select_citation(
    citations: list[Citation], displayed_file: str | None = None
) -> Citation | None:
    """Pick the citation to navigate to, preferring the displayed document."""
    if not citations:
        return None
    if displayed_file:
        for citation in citations:
            if citation.file_name == displayed_file:
                return citation
    return citations[0]
