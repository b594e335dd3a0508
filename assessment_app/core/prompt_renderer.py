"""Markdown rendering of prompt text for presentation clients.

Prompts are authored as short Markdown snippets (emphasis on the target word is
common, e.g. ``Show me the **cat**``). The API ships both the raw text, which is
what gets narrated, and the rendered fragment.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class PromptRenderer:
    """Converts prompt markdown into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = MarkdownIt("commonmark", {"html": self.enable_html}).enable("strikethrough")

    def render_fragment(self, markdown_text: str | None) -> str:
        """Render a prompt into an HTML fragment."""

        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return "<p><em>No prompt.</em></p>"
        return self._markdown.render(sanitized)


# Shared by the FastAPI worker threads; rendering does not mutate the parser.
renderer = PromptRenderer()
