import logging
import re

import pytest
import yaml

from llms_plugins.llms_utils.documents import CustomLLMFile, DocInfo, PathTransformation
from llms_plugins.llms_utils.generator import (
    DEFAULT_FULL_INTRO,
    DEFAULT_LINKS_INTRO,
    generate_individual_markdown_files,
    generate_llm_file,
    render_markdown_file,
    select_front_matter,
    write_llm_file,
)

SITE_URL = "https://example.com"


def make_doc(path, title, content=None, description="", front_matter=None) -> DocInfo:
    return DocInfo(
        content=content if content is not None else f"{title} content.",
        title=title,
        description=description,
        path=path,
        url=f"{SITE_URL}/{path}",
        front_matter=front_matter or {},
    )


def parse_front_matter(text: str) -> dict:
    match = re.match(r"^---\n(.*?)\n---\n", text, re.DOTALL)
    assert match, "expected a front matter block"
    return yaml.safe_load(match.group(1))


class TestIndividualMarkdownFiles:
    @pytest.mark.parametrize(
        "docs, expected_paths",
        [
            (
                [make_doc("docs/getting-started.md", "Getting Started", description="Intro")],
                ["getting-started.md"],
            ),
            (
                [make_doc("docs/api/reference.md", "API Reference: v2.0 (Beta)")],
                ["api/reference.md"],
            ),
            (
                [
                    make_doc("docs/basic/configuration.md", "Configuration"),
                    make_doc("docs/basic/configuration.md", "Different Configuration"),
                ],
                ["basic/configuration.md", "basic/configuration-2.md"],
            ),
            (
                [make_doc("", "Troubleshooting Guide")],
                ["troubleshooting-guide.md"],
            ),
            (
                [
                    make_doc("docs/quick-start.md", "Quick Start"),
                    make_doc("docs/tutorials/tutorial-1.md", "Tutorial #1"),
                    make_doc("guides/advanced/tutorial-2.md", "Tutorial #2"),
                ],
                ["quick-start.md", "tutorials/tutorial-1.md", "guides/advanced/tutorial-2.md"],
            ),
            (
                [make_doc("docs/level1/level2/level3/document.mdx", "Deep Nested Document")],
                ["level1/level2/level3/document.md"],
            ),
            (
                [make_doc("docs/special-chars/file.with.dots.md", "Special Path")],
                ["special-chars/file.with.dots.md"],
            ),
        ],
    )
    def test_paths_urls_and_contents(self, tmp_path, docs, expected_paths):
        result = generate_individual_markdown_files(docs, tmp_path, SITE_URL, "docs", [])

        assert len(result) == len(docs)
        for doc, updated, expected in zip(docs, result, expected_paths):
            out_file = tmp_path / expected
            assert out_file.exists(), f"missing {expected}"
            assert updated.path == f"/{expected}"
            assert updated.url == f"{SITE_URL}/{expected}"

            text = out_file.read_text(encoding="utf-8")
            assert f"# {doc.title}" in text
            assert doc.content in text
            if doc.description:
                assert f"> {doc.description}" in text

    def test_input_documents_are_not_modified(self, tmp_path):
        doc = make_doc("docs/page.md", "Page")
        generate_individual_markdown_files([doc], tmp_path, SITE_URL)
        assert doc.path == "docs/page.md"
        assert doc.url == f"{SITE_URL}/docs/page.md"

    def test_slug_file_written_instead_of_source_name(self, tmp_path):
        doc = make_doc(
            "docs/guides/config.md", "Config", front_matter={"slug": "custom-config-slug"}
        )
        result = generate_individual_markdown_files([doc], tmp_path, SITE_URL, "docs", [])
        assert (tmp_path / "guides" / "custom-config-slug.md").exists()
        assert not (tmp_path / "guides" / "config.md").exists()
        assert result[0].url == f"{SITE_URL}/guides/custom-config-slug.md"

    def test_trailing_slash_in_site_url(self, tmp_path):
        doc = make_doc("docs/page.md", "Page")
        result = generate_individual_markdown_files([doc], tmp_path, f"{SITE_URL}/")
        assert result[0].url == f"{SITE_URL}/page.md"

    def test_path_transformation(self, tmp_path):
        doc = make_doc("docs/api/method.md", "Method")
        result = generate_individual_markdown_files(
            [doc],
            tmp_path,
            SITE_URL,
            "docs",
            [],
            PathTransformation(add_paths=("reference",)),
        )
        assert (tmp_path / "reference" / "api" / "method.md").exists()
        assert result[0].path == "/reference/api/method.md"

    def test_empty_docs(self, tmp_path):
        assert generate_individual_markdown_files([], tmp_path, SITE_URL) == []
        assert list(tmp_path.iterdir()) == []

    def test_no_description_omits_quote(self, tmp_path):
        doc = make_doc("docs/no-desc.md", "No Description", content="Content without description")
        generate_individual_markdown_files([doc], tmp_path, SITE_URL)
        text = (tmp_path / "no-desc.md").read_text(encoding="utf-8")
        assert text == "# No Description\n\nContent without description"

    def test_file_layout(self):
        doc = make_doc("docs/a.md", "A", content="Body", description="Summary")
        assert render_markdown_file(doc) == "# A\n\n> Summary\n\nBody"

    def test_write_failure_propagates_and_keeps_earlier_files(self, tmp_path):
        # A regular file where a directory is needed makes the second write fail
        (tmp_path / "blocked").write_text("not a directory", encoding="utf-8")
        docs = [
            make_doc("docs/first.md", "First"),
            make_doc("docs/blocked/second.md", "Second"),
        ]
        with pytest.raises(OSError):
            generate_individual_markdown_files(docs, tmp_path, SITE_URL)
        assert (tmp_path / "first.md").exists()

    def test_logs_summary(self, tmp_path, caplog):
        caplog.set_level(logging.INFO, logger="mkdocs.plugins.llms_txt")
        generate_individual_markdown_files([make_doc("docs/a.md", "A")], tmp_path, SITE_URL)
        assert "generated 1 individual markdown files" in caplog.text


class TestKeepFrontMatter:
    FRONT_MATTER = {
        "author": "API Team",
        "custom_field": "custom_value",
        "draft": False,
        "keywords": ["api", "reference", "documentation"],
        "sidebar_label": "API Reference",
        "tags": ["guide", "api"],
    }

    def write(self, tmp_path, keep, front_matter=None):
        doc = make_doc(
            "docs/api-guide.md",
            "API Guide",
            description="Complete API guide",
            front_matter=self.FRONT_MATTER if front_matter is None else front_matter,
        )
        generate_individual_markdown_files([doc], tmp_path, SITE_URL, "docs", keep)
        return (tmp_path / "api-guide.md").read_text(encoding="utf-8")

    def test_empty_list_emits_no_block(self, tmp_path):
        text = self.write(tmp_path, [])
        assert not text.startswith("---")

    def test_selected_keys_only(self, tmp_path):
        text = self.write(tmp_path, ["sidebar_label", "keywords", "tags"])
        assert parse_front_matter(text) == {
            "sidebar_label": "API Reference",
            "keywords": ["api", "reference", "documentation"],
            "tags": ["guide", "api"],
        }

    def test_configured_order_is_kept(self, tmp_path):
        text = self.write(tmp_path, ["tags", "author", "draft"])
        block = text.split("---")[1]
        assert block.index("tags:") < block.index("author:") < block.index("draft:")

    def test_missing_keys_are_ignored(self, tmp_path):
        text = self.write(tmp_path, ["sidebar_label", "non_existent_field"])
        assert parse_front_matter(text) == {"sidebar_label": "API Reference"}

    def test_only_missing_keys_emits_no_block(self, tmp_path):
        text = self.write(tmp_path, ["tags"], front_matter={"author": "Someone"})
        assert not text.startswith("---")

    def test_mixed_value_types(self, tmp_path):
        front_matter = {
            "is_published": True,
            "metadata": {"author_email": "test@example.com", "version": "1.0.0"},
            "position": 42,
            "tags": ["array", "values"],
            "title_override": "String Value",
        }
        text = self.write(tmp_path, list(front_matter), front_matter=front_matter)
        assert parse_front_matter(text) == front_matter

    def test_source_front_matter_not_mutated(self):
        source = {"a": 1, "b": 2}
        doc = make_doc("docs/x.md", "X", front_matter=source)
        assert select_front_matter(doc, ["b"]) == {"b": 2}
        assert source == {"a": 1, "b": 2}
        with pytest.raises(TypeError):
            doc.front_matter["c"] = 3


class TestGenerateLLMFile:
    def docs(self):
        return [
            DocInfo(
                content="# Configuration\n\nBasic.",
                title="Configuration",
                path="/basic/configuration.md",
                url=f"{SITE_URL}/basic/configuration.md",
            ),
            DocInfo(
                content="# Configuration\n\nAdvanced.",
                title="Configuration",
                path="/advanced/configuration.md",
                url=f"{SITE_URL}/advanced/configuration.md",
            ),
        ]

    def test_link_only(self):
        llm_file = CustomLLMFile(
            filename="llms.txt", title="Docs", description="All docs", full_content=False
        )
        text = generate_llm_file(self.docs(), llm_file)
        assert text.startswith("# Docs\n\n> All docs\n\n")
        assert DEFAULT_LINKS_INTRO in text
        assert "## Table of Contents" in text
        assert text.strip().endswith(
            f"- [Configuration]({SITE_URL}/basic/configuration.md)\n"
            f"- [Configuration]({SITE_URL}/advanced/configuration.md)"
        )
        assert "Basic." not in text

    def test_full_content(self):
        llm_file = CustomLLMFile(filename="llms-full.txt", title="Docs", description="All docs")
        text = generate_llm_file(self.docs(), llm_file)
        assert DEFAULT_FULL_INTRO in text
        assert re.findall(r"^## .+$", text, flags=re.MULTILINE) == [
            "## Configuration",
            "## Configuration (Advanced)",
        ]
        assert "\n\n---\n\n" in text
        assert "\n# Configuration\n" not in text

    def test_version_and_root_content(self):
        llm_file = CustomLLMFile(
            filename="llms.txt", title="Docs", description="D", full_content=False, version="2.1"
        )
        text = generate_llm_file([], llm_file, root_content="Custom intro.")
        assert "> D\n\nVersion: 2.1\n" in text
        assert "Custom intro." in text
        assert DEFAULT_LINKS_INTRO not in text

    def test_empty_docs_gives_preamble(self):
        llm_file = CustomLLMFile(filename="x.txt", title="Nothing", full_content=True)
        text = generate_llm_file([], llm_file)
        assert text.startswith("# Nothing\n\n")
        assert "## " not in text

    def test_write_llm_file(self, tmp_path, caplog):
        caplog.set_level(logging.INFO, logger="mkdocs.plugins.llms_txt")
        llm_file = CustomLLMFile(filename="nested/llms.txt", title="Docs", full_content=False)
        out = write_llm_file(self.docs(), tmp_path / llm_file.filename, llm_file)
        assert out.exists()
        assert out.read_text(encoding="utf-8").startswith("# Docs")
        assert "index file written" in caplog.text

    def test_root_folder_hidden_from_headers(self):
        docs = [
            DocInfo(content="# Tutorial\n\nOne.", title="Tutorial", path="docs/tutorial1.md"),
            DocInfo(content="# Tutorial\n\nTwo.", title="Tutorial", path="docs/tutorial2.md"),
        ]
        llm_file = CustomLLMFile(filename="llms-full.txt", title="Docs")
        text = generate_llm_file(docs, llm_file, root_folder="docs")
        assert re.findall(r"^## .+$", text, flags=re.MULTILINE) == [
            "## Tutorial",
            "## Tutorial (2)",
        ]

    def test_wrapped_description_is_one_quoted_line(self):
        llm_file = CustomLLMFile(
            filename="llms.txt",
            title="Docs",
            description="First line\nsecond line.",
            full_content=False,
        )
        text = generate_llm_file([], llm_file)
        assert text.startswith("# Docs\n\n> First line second line.\n\n")


class TestWrappedDescription:
    def test_individual_file_quotes_one_line(self):
        doc = make_doc(
            "docs/page.md",
            "Page",
            content="Body.",
            description="A summary that is\nsoft wrapped here.",
        )
        assert render_markdown_file(doc) == (
            "# Page\n\n> A summary that is soft wrapped here.\n\nBody."
        )
