import dataclasses
import fnmatch
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from mkdocs.config import config_options as c
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin

from llms_plugins.llms_utils.documents import (
    CustomLLMFile,
    DocInfo,
    PathTransformation,
    title_from_filename,
)
from llms_plugins.llms_utils.generator import (
    generate_individual_markdown_files,
    write_llm_file,
)
from llms_plugins.llms_utils.headers import extract_first_heading
from llms_plugins.llms_utils.paths import apply_path_transformations

log = logging.getLogger("mkdocs.plugins.llms_txt")

# Module scope regex variables

FM_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*\n?", re.DOTALL)
H1_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$")
FENCE_RE = re.compile(r"^\s*(`{3,}|~{3,})")
HEADING_MARKER_RE = re.compile(r"^#+\s+")
IMPORT_LINE_RE = re.compile(
    r"^[ \t]*(?:import\s+.*?\s+from\s+['\"][^'\"]+['\"]|import\s+['\"][^'\"]+['\"]|export\s+.*?)[ \t]*;?[ \t]*$\n?",
    re.MULTILINE,
)
CUSTOM_FILE_KEYS = {
    "filename",
    "title",
    "description",
    "include_patterns",
    "full_content",
    "version",
}
PATH_TRANSFORMATION_KEYS = {"ignore_paths", "add_paths"}


class LlmsTxtPlugin(BasePlugin):
    """MkDocs plugin that publishes the documentation as LLM-friendly text.

    After the site is built it writes:
    - ``llms.txt``: an index of every page (llmstxt.org format).
    - ``llms-full.txt``: every page concatenated, with unique section headers.
    - one ``.md`` copy per page when ``generate_markdown_files`` is enabled.
    - any ``custom_llm_files`` selected by include patterns.
    """

    config_scheme = (
        ("generate_llms_txt", c.Type(bool, default=True)),
        ("generate_llms_full_txt", c.Type(bool, default=True)),
        ("llms_txt_filename", c.Type(str, default="llms.txt")),
        ("llms_full_txt_filename", c.Type(str, default="llms-full.txt")),
        ("title", c.Type(str, default="")),
        ("description", c.Type(str, default="")),
        ("version", c.Type(str, default="")),
        ("root_content", c.Type(str, default="")),
        ("full_root_content", c.Type(str, default="")),
        ("ignore_files", c.Type(list, default=[])),
        ("include_order", c.Type(list, default=[])),
        ("include_unmatched_last", c.Type(bool, default=True)),
        ("exclude_imports", c.Type(bool, default=False)),
        ("remove_duplicate_headings", c.Type(bool, default=False)),
        ("generate_markdown_files", c.Type(bool, default=False)),
        ("keep_front_matter", c.Type(list, default=[])),
        ("root_folder", c.Type(str, default="")),
        ("path_transformation", c.Type(dict, default={})),
        ("custom_llm_files", c.Type(list, default=[])),
    )

    def __init__(self):
        super().__init__()
        self.path_transformation: Optional[PathTransformation] = None
        self.custom_files: List[CustomLLMFile] = []

    def on_config(self, config, **kwargs):
        """Validate the nested options that ``config_scheme`` only type-checks."""
        raw_transformation = self.config["path_transformation"] or {}
        unknown = set(raw_transformation) - PATH_TRANSFORMATION_KEYS
        if unknown:
            raise PluginError(
                f"[llms_txt] unknown path_transformation keys: {', '.join(sorted(unknown))}"
            )
        for key in PATH_TRANSFORMATION_KEYS:
            if not isinstance(raw_transformation.get(key, []), list):
                raise PluginError(f"[llms_txt] path_transformation.{key} must be a list")
        self.path_transformation = PathTransformation.from_config(raw_transformation)

        self.custom_files = [
            self.parse_custom_file(raw, index)
            for index, raw in enumerate(self.config["custom_llm_files"])
        ]
        log.debug(f"[llms_txt] {len(self.custom_files)} custom llm files configured")
        return config

    @staticmethod
    def parse_custom_file(raw: Any, index: int) -> CustomLLMFile:
        """Turn one ``custom_llm_files`` entry into a :class:`CustomLLMFile`."""
        if not isinstance(raw, dict):
            raise PluginError(f"[llms_txt] custom_llm_files[{index}] must be a mapping")
        unknown = set(raw) - CUSTOM_FILE_KEYS
        if unknown:
            raise PluginError(
                f"[llms_txt] custom_llm_files[{index}] has unknown keys: {', '.join(sorted(unknown))}"
            )
        filename = str(raw.get("filename") or "").strip()
        if not filename:
            raise PluginError(f"[llms_txt] custom_llm_files[{index}] needs a filename")
        patterns = raw.get("include_patterns") or []
        if isinstance(patterns, str):
            patterns = [patterns]
        if not isinstance(patterns, list):
            raise PluginError(
                f"[llms_txt] custom_llm_files[{index}].include_patterns must be a list"
            )
        return CustomLLMFile(
            filename=filename,
            title=str(raw.get("title") or filename),
            description=str(raw.get("description") or ""),
            include_patterns=tuple(str(p) for p in patterns),
            full_content=bool(raw.get("full_content", True)),
            version=str(raw.get("version") or ""),
        )

    # Process will start after site build is complete
    def on_post_build(self, config, **kwargs):
        docs_dir = Path(config["docs_dir"]).resolve()
        site_dir = Path(config["site_dir"]).resolve()
        site_url = (config.get("site_url") or "").rstrip("/")
        use_directory_urls = config.get("use_directory_urls", True)
        docs_folder = docs_dir.name
        root_folder = self.config["root_folder"] or docs_folder

        markdown_files = self.get_all_markdown_files(docs_dir, self.config["ignore_files"])
        ordered = self.order_files(
            markdown_files,
            self.config["include_order"],
            self.config["include_unmatched_last"],
            docs_folder,
        )
        log.info(f"[llms_txt] processing {len(ordered)} of {len(markdown_files)} markdown files")

        entries: List[Tuple[str, DocInfo]] = []
        for rel_path in ordered:
            text = (docs_dir / rel_path).read_text(encoding="utf-8")
            doc = self.build_doc_info(
                rel_path, text, docs_folder, site_url, use_directory_urls
            )
            entries.append((rel_path, doc))

        if self.config["generate_markdown_files"]:
            updated = generate_individual_markdown_files(
                [doc for _, doc in entries],
                site_dir,
                site_url,
                root_folder,
                self.config["keep_front_matter"],
                self.path_transformation,
            )
            entries = [(rel, doc) for (rel, _), doc in zip(entries, updated)]

        # Output paths carry no docs folder; source paths start with it
        header_root = "" if self.config["generate_markdown_files"] else docs_folder

        docs = [doc for _, doc in entries]
        title = self.config["title"] or config.get("site_name") or "Documentation"
        description = self.config["description"] or config.get("site_description") or ""
        version = self.config["version"]

        if self.config["generate_llms_txt"]:
            llm_file = CustomLLMFile(
                filename=self.config["llms_txt_filename"],
                title=title,
                description=description,
                full_content=False,
                version=version,
            )
            write_llm_file(
                docs,
                site_dir / llm_file.filename,
                llm_file,
                self.config["root_content"],
                header_root,
            )

        if self.config["generate_llms_full_txt"]:
            llm_file = CustomLLMFile(
                filename=self.config["llms_full_txt_filename"],
                title=title,
                description=description,
                full_content=True,
                version=version,
            )
            write_llm_file(
                docs,
                site_dir / llm_file.filename,
                llm_file,
                self.config["full_root_content"],
                header_root,
            )

        for custom in self.custom_files:
            selected = [
                doc
                for rel, doc in entries
                if any(
                    self.matches_pattern(rel, pattern, docs_folder)
                    for pattern in custom.include_patterns
                )
            ]
            if not selected:
                log.info(f"[llms_txt] no documents matched custom file {custom.filename}")
            if not custom.version and version:
                custom = dataclasses.replace(custom, version=version)
            write_llm_file(
                selected, site_dir / custom.filename, custom, root_folder=header_root
            )

    # ----- Helper functions -------

    # File discovery, filtering and ordering

    @staticmethod
    def matches_pattern(rel_path: str, pattern: str, docs_folder: str = "") -> bool:
        """Glob-match ``rel_path`` with or without the docs folder prefix.

        Matching is per path segment: ``*`` stays inside one folder and a
        ``**`` segment spans zero or more folders.
        """
        targets = [rel_path]
        if docs_folder:
            targets.append(f"{docs_folder}/{rel_path}")
        pattern_parts = pattern.strip("/").split("/")
        return any(
            LlmsTxtPlugin.match_segments(t.split("/"), pattern_parts) for t in targets
        )

    @staticmethod
    def match_segments(parts: List[str], pattern_parts: List[str]) -> bool:
        if not pattern_parts:
            return not parts
        head, rest = pattern_parts[0], pattern_parts[1:]
        if head == "**":
            return any(
                LlmsTxtPlugin.match_segments(parts[i:], rest) for i in range(len(parts) + 1)
            )
        return (
            bool(parts)
            and fnmatch.fnmatch(parts[0], head)
            and LlmsTxtPlugin.match_segments(parts[1:], rest)
        )

    @staticmethod
    def is_partial(rel_path: str) -> bool:
        return any(part.startswith("_") for part in rel_path.split("/"))

    @staticmethod
    def get_all_markdown_files(docs_dir: Path, ignore_files: List[str]) -> List[str]:
        """Collect docs-relative *.md|*.mdx paths, skipping partials and ignored globs."""
        results = []
        for root, _, files in os.walk(docs_dir):
            for file in files:
                if not file.endswith((".md", ".mdx")):
                    continue
                rel_path = Path(root, file).relative_to(docs_dir).as_posix()
                if LlmsTxtPlugin.is_partial(rel_path):
                    log.debug(f"[llms_txt] skipping partial {rel_path}")
                    continue
                if any(
                    LlmsTxtPlugin.matches_pattern(rel_path, pattern, docs_dir.name)
                    for pattern in ignore_files
                ):
                    log.debug(f"[llms_txt] ignoring {rel_path}")
                    continue
                results.append(rel_path)
        return sorted(results)

    @staticmethod
    def order_files(
        files: List[str],
        include_order: List[str],
        include_unmatched_last: bool = True,
        docs_folder: str = "",
    ) -> List[str]:
        """Order files by the first ``include_order`` pattern they match."""
        if not include_order:
            return list(files)
        ordered: List[str] = []
        matched = set()
        for pattern in include_order:
            for rel_path in files:
                if rel_path in matched:
                    continue
                if LlmsTxtPlugin.matches_pattern(rel_path, pattern, docs_folder):
                    ordered.append(rel_path)
                    matched.add(rel_path)
        if include_unmatched_last:
            ordered.extend(f for f in files if f not in matched)
        return ordered

    # Front-matter and content helpers

    @staticmethod
    def split_front_matter(source_text: str) -> Tuple[Dict[str, Any], str]:
        """
        Return (front_matter_dict, body_text). If no FM, dict={} and body=source_text.
        """
        m = FM_PATTERN.match(source_text)
        if not m:
            return {}, source_text
        try:
            fm = yaml.safe_load(m.group(1)) or {}
        except yaml.YAMLError as exc:
            log.warning(f"[llms_txt] unable to parse front matter: {exc}")
            fm = {}
        if not isinstance(fm, dict):
            fm = {}
        return fm, source_text[m.end() :]

    @staticmethod
    def remove_imports(content: str) -> str:
        """Remove MDX import/export statements."""
        return IMPORT_LINE_RE.sub("", content)

    @staticmethod
    def remove_duplicate_heading(content: str, title: str) -> str:
        """Drop the first line when it is a heading repeating ``title``."""
        trimmed = content.strip()
        if extract_first_heading(trimmed) != title:
            return content
        return "\n".join(trimmed.split("\n")[1:]).lstrip("\n")

    @staticmethod
    def first_h1(body: str) -> str:
        """Text of the first ``# `` heading outside fenced code blocks."""
        fence = ""
        for line in body.splitlines():
            m = FENCE_RE.match(line)
            if m:
                marker = m.group(1)
                if not fence:
                    fence = marker
                elif marker[0] == fence[0] and len(marker) >= len(fence):
                    fence = ""
                continue
            if fence:
                continue
            heading = H1_RE.match(line)
            if heading:
                return heading.group(1)
        return ""

    @staticmethod
    def clean_description(description: str) -> str:
        """Strip a leading heading marker (``### Foo`` -> ``Foo``) and join lines."""
        description = HEADING_MARKER_RE.sub("", (description or "").strip(), count=1)
        return " ".join(description.split())

    @staticmethod
    def first_paragraph(body: str) -> str:
        """Return the first prose paragraph of ``body``."""
        for block in re.split(r"\n\s*\n", body.strip()):
            block = block.strip()
            if not block or block.startswith(("```", "~~~", "<", "!!!", "import ")):
                continue
            # A lone heading line is never a summary
            if extract_first_heading(block) and "\n" not in block:
                continue
            return block
        return ""

    @staticmethod
    def compute_route(rel_path: str, use_directory_urls: bool = True) -> str:
        """Docs-relative source path to the page route (``api/ref.md`` -> ``api/ref/``)."""
        route = re.sub(r"\.mdx?$", "", rel_path)
        if not use_directory_urls:
            return f"{route}.html"
        if route == "index" or route.endswith("/index"):
            return route[: -len("index")]
        return f"{route}/"

    def build_doc_info(
        self,
        rel_path: str,
        text: str,
        docs_folder: str,
        site_url: str,
        use_directory_urls: bool = True,
    ) -> DocInfo:
        """Turn one source file into a :class:`DocInfo`."""
        front_matter, body = self.split_front_matter(text)

        if self.config["exclude_imports"]:
            body = self.remove_imports(body)

        title = str(
            front_matter.get("title")
            or self.first_h1(body)
            or title_from_filename(rel_path)
        )

        if self.config["remove_duplicate_headings"]:
            body = self.remove_duplicate_heading(body, title)

        description = front_matter.get("description") or self.first_paragraph(body)
        description = self.clean_description(str(description))

        route = self.compute_route(rel_path, use_directory_urls)
        trailing = "/" if route.endswith("/") else ""
        transformed = apply_path_transformations(route.strip("/"), self.path_transformation)
        route = f"{transformed}{trailing}" if transformed else ""
        url = f"{site_url}/{route}"

        log.debug(f"[llms_txt] {rel_path}: title={title!r} url={url}")
        return DocInfo(
            content=body.strip(),
            title=title,
            description=description,
            path=f"{docs_folder}/{rel_path}",
            url=url,
            front_matter=front_matter,
        )
