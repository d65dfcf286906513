import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from llms_plugins.llms_utils.documents import CustomLLMFile, DocInfo, PathTransformation
from llms_plugins.llms_utils.headers import deduplicate_sections
from llms_plugins.llms_utils.paths import derive_path, resolve_paths

log = logging.getLogger("mkdocs.plugins.llms_txt")

DEFAULT_LINKS_INTRO = (
    "This file contains links to documentation sections following the llmstxt.org standard."
)
DEFAULT_FULL_INTRO = (
    "This file contains all documentation content in a single document following the llmstxt.org standard."
)
SECTION_SEPARATOR = "\n\n---\n\n"


def single_line(text: str) -> str:
    """Collapse runs of whitespace so ``text`` fits on one quoted line."""
    return " ".join((text or "").split())


def select_front_matter(doc: DocInfo, keep_keys: Sequence[str]) -> Dict[str, Any]:
    """Copy the kept front matter keys of ``doc`` in configured order."""
    selected: Dict[str, Any] = {}
    for key in keep_keys or []:
        if key in doc.front_matter:
            selected[key] = doc.front_matter[key]
    return selected


def render_markdown_file(doc: DocInfo, keep_front_matter: Sequence[str] = ()) -> str:
    """Build the text of an individual markdown file for ``doc``."""
    parts: List[str] = []

    front_matter = select_front_matter(doc, keep_front_matter)
    if front_matter:
        fm_yaml = yaml.safe_dump(
            front_matter, sort_keys=False, allow_unicode=True, width=4096
        ).strip()
        parts.append(f"---\n{fm_yaml}\n---\n\n")

    parts.append(f"# {doc.title}\n\n")
    description = single_line(doc.description)
    if description:
        parts.append(f"> {description}\n\n")
    parts.append(doc.content)
    return "".join(parts)


def generate_individual_markdown_files(
    docs: Sequence[DocInfo],
    output_dir: Path,
    site_url: str,
    root_folder: str = "docs",
    keep_front_matter: Sequence[str] = (),
    path_transformation: Optional[PathTransformation] = None,
) -> List[DocInfo]:
    """Write one ``.md`` file per document and return the updated records.

    Documents are written in input order. A write failure propagates and
    leaves the files written before it in place.
    """
    output_dir = Path(output_dir)
    base_url = (site_url or "").rstrip("/")
    candidates = [derive_path(doc, root_folder, path_transformation) for doc in docs]
    final_paths = resolve_paths(candidates)
    updated: List[DocInfo] = []

    for doc, final_path in zip(docs, final_paths):
        out_path = output_dir / final_path
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(render_markdown_file(doc, keep_front_matter), encoding="utf-8")
        log.debug(f"[llms_txt] wrote {out_path}")

        updated.append(
            dataclasses.replace(doc, path=f"/{final_path}", url=f"{base_url}/{final_path}")
        )

    log.info(f"[llms_txt] generated {len(updated)} individual markdown files")
    return updated


def render_preamble(title: str, description: str = "", version: str = "") -> str:
    lines = [f"# {title}", ""]
    description = single_line(description)
    if description:
        lines.extend([f"> {description}", ""])
    if version:
        lines.extend([f"Version: {version}", ""])
    return "\n".join(lines)


def generate_llm_file(
    docs: Sequence[DocInfo],
    llm_file: CustomLLMFile,
    root_content: str = "",
    root_folder: str = "",
) -> str:
    """Render an aggregate artifact (index or full content) for ``docs``.

    ``root_folder`` is the source prefix of ``DocInfo.path`` that section
    headers never use as folder context.
    """
    preamble = render_preamble(llm_file.title, llm_file.description, llm_file.version)

    if llm_file.full_content:
        intro = (root_content or DEFAULT_FULL_INTRO).strip()
        sections = deduplicate_sections(docs, root_folder)
        return f"{preamble}\n{intro}\n\n{SECTION_SEPARATOR.join(sections)}\n"

    intro = (root_content or DEFAULT_LINKS_INTRO).strip()
    links = "\n".join(f"- [{doc.title}]({doc.url})" for doc in docs)
    return f"{preamble}\n{intro}\n\n## Table of Contents\n\n{links}\n"


def write_llm_file(
    docs: Sequence[DocInfo],
    output_path: Path,
    llm_file: CustomLLMFile,
    root_content: str = "",
    root_folder: str = "",
) -> Path:
    """Render and write an aggregate artifact, creating parent directories."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    text = generate_llm_file(docs, llm_file, root_content, root_folder)
    output_path.write_text(text, encoding="utf-8")
    kind = "full content" if llm_file.full_content else "index"
    log.info(f"[llms_txt] {kind} file written to {output_path} (documents={len(docs)})")
    return output_path
