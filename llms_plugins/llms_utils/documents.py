"""
Value objects shared by the llms_txt plugin and its helper library.

Documents flow through the generators as frozen records: every stage
returns an updated copy (``dataclasses.replace``) instead of mutating
the record it was given.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

# Values that can appear in a document's front matter block.
FrontMatterValue = Union[
    str, int, float, bool, None, List["FrontMatterValue"], Dict[str, "FrontMatterValue"]
]

SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class DocInfo:
    """A single documentation page as seen by the generators.

    ``path`` starts as the source path (e.g. ``docs/api/reference.md``)
    and ends as the finalized output path (``/api/reference.md``).
    ``url`` follows the same lifecycle.
    """

    content: str
    title: str
    description: str = ""
    path: str = ""
    url: str = ""
    front_matter: Mapping[str, FrontMatterValue] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self):
        # Keep a read-only view so callers can never mutate the source mapping
        if not isinstance(self.front_matter, MappingProxyType):
            object.__setattr__(
                self, "front_matter", MappingProxyType(dict(self.front_matter or {}))
            )
        if not (self.title or "").strip():
            object.__setattr__(self, "title", title_from_filename(self.path))


@dataclass(frozen=True)
class PathTransformation:
    ignore_paths: Tuple[str, ...] = ()
    add_paths: Tuple[str, ...] = ()

    @classmethod
    def from_config(cls, raw: Optional[Mapping[str, Any]]) -> Optional["PathTransformation"]:
        """Build from the ``path_transformation`` mapping in mkdocs.yml."""
        if not raw:
            return None
        ignore = tuple(str(p).strip("/") for p in raw.get("ignore_paths") or [] if p)
        add = tuple(str(p).strip("/") for p in raw.get("add_paths") or [] if p)
        if not ignore and not add:
            return None
        return cls(ignore_paths=ignore, add_paths=add)


@dataclass(frozen=True)
class CustomLLMFile:
    """An extra aggregate artifact selected by include patterns."""

    filename: str
    title: str
    description: str = ""
    include_patterns: Tuple[str, ...] = ()
    full_content: bool = True
    version: str = ""


def slugify_title(title: str) -> str:
    """Lower-case ``title`` and collapse non-alphanumeric runs to hyphens."""
    return SLUG_STRIP_RE.sub("-", (title or "").lower()).strip("-")


def title_from_filename(filename: str) -> str:
    """Derive a display title from a file name: ``getting-started.md`` -> ``Getting Started``."""
    stem = filename.rsplit("/", 1)[-1]
    if "." in stem:
        stem = stem.rsplit(".", 1)[0]
    words = re.split(r"[-_\s]+", stem)
    title = " ".join(w[:1].upper() + w[1:] for w in words if w)
    return title or "Untitled"
