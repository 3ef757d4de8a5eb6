"""Tests for Stage 3: Simplify."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from mailsift.core.config import Config
from mailsift.core.types import Attachment, ParsedEmail
from mailsift.pipeline.context import ItemContext
from mailsift.pipeline.stages import stage_03_simplify
from mailsift.pipeline.stages.base import StageServices

HEADERS = {
    "Subject": "Hi",
    "From": "a@example.com",
    "X-Mailer": "Sample",
    "DKIM-Signature": "v=1",
    "GmExport-Label": "Inbox",
}


def context_for(eml: ParsedEmail, tmp_path: Path) -> ItemContext:
    return ItemContext(data={"eml": eml, "detail_path": tmp_path, "filename": "15-ab-Hi-output"})


class TestPruneHeaders:
    """Tests for prune_headers function."""

    def test_keeps_matching(self) -> None:
        """Test only headers matching a pattern survive."""
        result = stage_03_simplify.prune_headers(HEADERS, ["^subject$", "^GmExport-.*$"])
        assert result == {"Subject": "Hi", "GmExport-Label": "Inbox"}

    def test_no_patterns_keeps_all(self) -> None:
        """Test an empty pattern list keeps everything."""
        assert stage_03_simplify.prune_headers(HEADERS, []) == HEADERS


class TestSimplifyPhase:
    """Tests for SimplifyPhase."""

    @pytest.mark.asyncio
    async def test_text_message(
        self, services: StageServices, stub_client: Any, tmp_path: Path
    ) -> None:
        """Test plain text messages lose extra headers and attachments only."""
        eml = ParsedEmail(
            headers=HEADERS,
            text="Hello",
            attachments=(Attachment(filename="a.pdf", content_type="application/pdf"),),
        )

        output = await stage_03_simplify.SimplifyPhase(services).execute(
            context_for(eml, tmp_path)
        )

        simplified = output["eml"]
        assert set(simplified.headers) == {"Subject", "From", "GmExport-Label"}
        assert simplified.text == "Hello"
        assert simplified.attachments == ()
        assert stub_client.call_count == 0

    @pytest.mark.asyncio
    async def test_html_only_converted_and_cached(
        self, services: StageServices, stub_client: Any, tmp_path: Path
    ) -> None:
        """Test html-only bodies are converted once and then read from cache."""
        eml = ParsedEmail(headers=HEADERS, html="<p>Hello</p>", html_headers={"Content-Type": "x"})
        phase = stage_03_simplify.SimplifyPhase(services)

        first = await phase.execute(context_for(eml, tmp_path))
        second = await phase.execute(context_for(eml, tmp_path))

        assert first["eml"].text == "Plain text version"
        assert first["eml"].html is None
        assert first["eml"].html_headers is None
        assert second["eml"] == first["eml"]
        assert stub_client.calls == [("text", "gpt-4o")]
        assert (tmp_path / "15-ab-Hi-text_response.json").exists()

    @pytest.mark.asyncio
    async def test_keeps_html_when_configured(
        self,
        config: Config,
        make_services: Any,
        tmp_path: Path,
    ) -> None:
        """Test text_only and skip_attachments can be turned off."""
        config.simplify.text_only = False
        config.simplify.skip_attachments = False
        services = make_services(config)
        eml = ParsedEmail(
            text="Hello",
            html="<p>Hello</p>",
            attachments=(Attachment(filename="a.pdf", content_type="application/pdf"),),
        )

        output = await stage_03_simplify.SimplifyPhase(services).execute(
            context_for(eml, tmp_path)
        )

        assert output["eml"].html == "<p>Hello</p>"
        assert len(output["eml"].attachments) == 1
