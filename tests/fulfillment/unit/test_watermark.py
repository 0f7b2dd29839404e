"""
Unit Tests: WatermarkService

Font scaling, watermark text and stamping of real PDF documents.
"""

import fitz  # PyMuPDF
import pytest

from exceptions.download import WatermarkFailedException
from models.user import RequesterDTO
from services.watermark import WatermarkService


class TestFontSizes:

    def test_a4_uses_base_sizes(self):
        assert WatermarkService.font_sizes(595, 842) == (16, 10)

    def test_tiny_page_clamped_to_minimum(self):
        assert WatermarkService.font_sizes(100, 100) == (12, 8)

    def test_huge_page_clamped_to_maximum(self):
        assert WatermarkService.font_sizes(2384, 3370) == (32, 16)


class TestText:

    def test_center_and_corner_text(self):
        center, corner = WatermarkService.build_text("Jane Buyer", "buyer@example.com")

        assert center.splitlines() == ["Jane Buyer - buyer@example.com", WatermarkService.NOTICE]
        assert corner == "buyer"


class TestStamp:

    def test_every_page_marked(self, pdf_bytes):
        stamped = WatermarkService.stamp(pdf_bytes, "Jane Buyer", "buyer@example.com")

        doc = fitz.open(stream=stamped, filetype="pdf")
        try:
            assert doc.page_count == 2
            for page in doc:
                text = page.get_text()
                assert text.count("buyer") >= 2
                assert "Sample content" in text
        finally:
            doc.close()

    def test_source_untouched(self, pdf_bytes):
        original = bytes(pdf_bytes)
        WatermarkService.stamp(pdf_bytes, "Jane Buyer", "buyer@example.com")
        assert pdf_bytes == original

    @pytest.mark.asyncio
    async def test_stamp_to_file(self, pdf_bytes, tmp_path):
        requester = RequesterDTO(user_id=1, name="Jane Buyer", email="buyer@example.com")
        output = tmp_path / "copy.pdf"

        await WatermarkService.stamp_to_file(pdf_bytes, requester, 5, output)

        assert output.read_bytes().startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_unreadable_source(self, tmp_path):
        requester = RequesterDTO(user_id=1, name="Jane Buyer", email="buyer@example.com")

        with pytest.raises(WatermarkFailedException) as exc_info:
            await WatermarkService.stamp_to_file(b"not a pdf", requester, 5, tmp_path / "copy.pdf")
        assert exc_info.value.item_id == 5
