import logging
import posixpath
import re
from typing import AbstractSet, List, Optional, Sequence

from llms_plugins.llms_utils.documents import DocInfo, PathTransformation, slugify_title

log = logging.getLogger("mkdocs.plugins.llms_txt")

MULTI_SLASH_RE = re.compile(r"/+")
MARKDOWN_EXTENSIONS = (".md", ".mdx")


def apply_path_transformations(
    url_path: str, path_transformation: Optional[PathTransformation]
) -> str:
    """Strip ``ignore_paths`` segments and prepend ``add_paths`` segments.

    Ignored segments are only removed when they form a whole path segment,
    so ignoring ``docs`` leaves ``my-docs/`` alone.
    """
    if not path_transformation:
        return url_path

    transformed = url_path

    if path_transformation.ignore_paths:
        for ignore_path in path_transformation.ignore_paths:
            ignore_re = re.compile(rf"(^|/)({re.escape(ignore_path)})(?=/|$)")
            # A match consumes the leading slash only, so adjacent repeats
            # ("docs/docs/x") need more than one pass.
            previous = None
            while previous != transformed:
                previous = transformed
                transformed = ignore_re.sub(r"\1", transformed)
        transformed = MULTI_SLASH_RE.sub("/", transformed)
        transformed = transformed.lstrip("/")

    # Walk in reverse so the prefixes end up in the configured order
    for add_path in reversed(path_transformation.add_paths):
        if transformed == add_path or transformed.startswith(f"{add_path}/"):
            continue
        transformed = f"{add_path}/{transformed}" if transformed else add_path

    return transformed


def strip_root_folder(directory: str, root_folder: str) -> str:
    """Drop ``root_folder`` when it is the first segment of ``directory``."""
    root = (root_folder or "").strip("/")
    if not root:
        return directory
    if directory == root:
        return ""
    if directory.startswith(f"{root}/"):
        return directory[len(root) + 1 :]
    return directory


def _last_segment(value) -> str:
    segments = [s for s in str(value).replace("\\", "/").split("/") if s]
    return segments[-1] if segments else ""


def derive_base_name(doc: DocInfo) -> str:
    """Pick the output file name (without extension) for ``doc``.

    Priority: front matter ``slug``, front matter ``id``, source file
    name, slugified title.
    """
    for key in ("slug", "id"):
        value = doc.front_matter.get(key)
        if value not in (None, ""):
            name = _last_segment(value)
            if name:
                return name

    source = (doc.path or "").replace("\\", "/")
    if source:
        filename = posixpath.basename(source)
        stem, ext = posixpath.splitext(filename)
        if ext.lower() in MARKDOWN_EXTENSIONS:
            filename = stem
        if filename:
            return filename

    return slugify_title(doc.title) or "index"


def derive_path(
    doc: DocInfo,
    root_folder: str = "docs",
    path_transformation: Optional[PathTransformation] = None,
) -> str:
    """Compute the candidate output path (relative, ``.md``) for ``doc``."""
    base_name = derive_base_name(doc)

    source = (doc.path or "").replace("\\", "/").strip("/")
    directory = posixpath.dirname(source) if source else ""
    directory = strip_root_folder(directory, root_folder)
    directory = apply_path_transformations(directory, path_transformation)
    directory = MULTI_SLASH_RE.sub("/", directory).strip("/")

    candidate = f"{directory}/{base_name}" if directory else base_name
    return f"{candidate}.md"


def next_unique_path(candidate: str, used_paths: AbstractSet[str]) -> str:
    """Return ``candidate`` or the first free ``{base}-{n}.{ext}`` variant."""
    if candidate not in used_paths:
        return candidate
    base, ext = posixpath.splitext(candidate)
    counter = 2
    while f"{base}-{counter}{ext}" in used_paths:
        counter += 1
    return f"{base}-{counter}{ext}"


def resolve_paths(candidates: Sequence[str]) -> List[str]:
    """Make every candidate path unique, keeping input order and positions."""
    used = set()
    resolved: List[str] = []
    for candidate in candidates:
        final = next_unique_path(candidate, used)
        if final != candidate:
            log.debug(f"[llms_txt] path collision: {candidate} -> {final}")
        used.add(final)
        resolved.append(final)
    return resolved
