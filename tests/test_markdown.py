import pytest

from content_layer.config import MarkdownConfig
from content_layer.core.errors import FrontmatterError
from content_layer.loaders import split_frontmatter
from content_layer.markdown import PythonMarkdownRenderer

SOURCE = """---
title: Hello
tags: [a, b]
---
# Heading One

Intro text.

## Sub & Section

![local](./images/cat.png)
![remote](https://example.com/dog.png)
"""


@pytest.fixture
def renderer():
    return PythonMarkdownRenderer()


@pytest.mark.asyncio
async def test_render_collects_headings(renderer):
    rendered = await renderer.render(SOURCE)

    headings = rendered.metadata.headings
    assert [(h.depth, h.slug, h.text) for h in headings] == [
        (1, "heading-one", "Heading One"),
        (2, "sub-section", "Sub & Section"),
    ]
    assert '<h1 id="heading-one">Heading One</h1>' in rendered.html


@pytest.mark.asyncio
async def test_render_splits_frontmatter(renderer):
    rendered = await renderer.render(SOURCE)

    assert rendered.metadata.frontmatter == {"title": "Hello", "tags": ["a", "b"]}
    assert "title: Hello" not in rendered.html


@pytest.mark.asyncio
async def test_render_collects_images(renderer):
    rendered = await renderer.render(SOURCE, file_url="post.md")

    assert rendered.metadata.local_image_paths == ["./images/cat.png"]
    assert rendered.metadata.remote_image_paths == ["https://example.com/dog.png"]


@pytest.mark.asyncio
async def test_given_frontmatter_skips_splitting(renderer):
    rendered = await renderer.render("---\n- a\n---\ntext\n", frontmatter={"title": "Split"})

    assert rendered.metadata.frontmatter == {"title": "Split"}
    assert "<hr" in rendered.html
    assert "text" in rendered.html


@pytest.mark.asyncio
async def test_configured_extensions_are_used():
    renderer = PythonMarkdownRenderer.from_config(MarkdownConfig(extensions=("tables",)))

    rendered = await renderer.render("| a | b |\n|---|---|\n| 1 | 2 |\n")

    assert "<table>" in rendered.html


class TestFrontmatter:

    def test_no_frontmatter(self):
        assert split_frontmatter("# Just a body\n") == ({}, "# Just a body\n")

    def test_unterminated_fence_is_body(self):
        text = "---\ntitle: x\n"
        assert split_frontmatter(text) == ({}, text)

    def test_empty_frontmatter(self):
        assert split_frontmatter("---\n---\nbody\n") == ({}, "body\n")

    def test_non_mapping_frontmatter_raises(self):
        with pytest.raises(FrontmatterError):
            split_frontmatter("---\n- a\n- b\n---\nbody\n")

    def test_invalid_yaml_raises(self):
        with pytest.raises(FrontmatterError):
            split_frontmatter("---\ntitle: [unclosed\n---\n")
