"""
Section header deduplication for combined (full content) artifacts.

Only the first line of each trimmed body is inspected, and only for a
``#``-run heading marker. Nothing here parses markdown.
"""

import posixpath
import re
from typing import AbstractSet, List, Optional, Sequence, Tuple

from llms_plugins.llms_utils.documents import DocInfo
from llms_plugins.llms_utils.paths import strip_root_folder

FIRST_HEADING_RE = re.compile(r"^#+\s+(.+)$")


def extract_first_heading(content: str) -> Optional[str]:
    """Return the heading text of the first line of ``content``, if any."""
    first_line = content.strip().split("\n", 1)[0]
    match = FIRST_HEADING_RE.match(first_line)
    return match.group(1).strip() if match else None


def folder_name(path: str, root_folder: str = "") -> str:
    """Name of the folder holding ``path`` (``docs/basic/x.md`` -> ``basic``).

    ``root_folder`` is not a folder of its own: ``docs/x.md`` has none.
    """
    source = (path or "").replace("\\", "/").strip("/")
    directory = strip_root_folder(posixpath.dirname(source), root_folder)
    return directory.rsplit("/", 1)[-1] if directory else ""


def unique_header(
    title: str, path: str, used_headers: AbstractSet[str], root_folder: str = ""
) -> str:
    """Pick a section header for ``title`` that is not in ``used_headers``.

    ``used_headers`` holds lower-cased headers. The first retry uses the
    parent folder of ``path`` as context; later retries fall back to a
    numeric suffix.
    """
    header = title
    counter = 1
    while header.lower() in used_headers:
        counter += 1
        folder = folder_name(path, root_folder) if counter == 2 else ""
        if folder:
            header = f"{title} ({folder[:1].upper()}{folder[1:]})"
        else:
            header = f"{title} ({counter})"
    return header


def render_section(doc: DocInfo, header: str, level: int = 2) -> str:
    """Render ``doc`` under ``header``, replacing a leading heading equal to its title."""
    marker = "#" * level
    trimmed = doc.content.strip()
    if extract_first_heading(trimmed) == doc.title:
        rest = "\n".join(trimmed.split("\n")[1:])
        return f"{marker} {header}\n\n{rest}"
    return f"{marker} {header}\n\n{doc.content}"


def deduplicate_headers(
    docs: Sequence[DocInfo],
    used_headers: AbstractSet[str] = frozenset(),
    root_folder: str = "",
) -> Tuple[List[str], frozenset]:
    """Assign a unique header to each document, in order.

    Returns the headers and the updated set of used (lower-cased) headers
    so callers can continue the scan across batches. ``used_headers`` is
    left untouched.
    """
    used = set(used_headers)
    headers: List[str] = []
    for doc in docs:
        header = unique_header(doc.title, doc.path, used, root_folder)
        used.add(header.lower())
        headers.append(header)
    return headers, frozenset(used)


def deduplicate_sections(docs: Sequence[DocInfo], root_folder: str = "") -> List[str]:
    """Render every document as a ``##`` section with a unique header."""
    headers, _ = deduplicate_headers(docs, root_folder=root_folder)
    return [render_section(doc, header) for doc, header in zip(docs, headers)]
