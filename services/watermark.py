import asyncio
import logging
import math
from pathlib import Path

import fitz  # PyMuPDF

import config
from exceptions.download import WatermarkFailedException
from models.user import RequesterDTO

logger = logging.getLogger(__name__)


class WatermarkService:
    """
    Stamps every page of a PDF with the buyer's identity.

    Each page gets a semi-transparent diagonal mark in the centre
    ("<name> - <email>" plus a personal-use notice) and the email's local part
    in the top-right and bottom-left corners. Sizes follow the page area
    relative to A4 (595 x 842 pt) so tiny and huge pages stay legible.
    """

    REFERENCE_AREA = 595 * 842

    CENTER_FONT_BASE = 16
    CENTER_FONT_MIN = 12
    CENTER_FONT_MAX = 32

    CORNER_FONT_BASE = 10
    CORNER_FONT_MIN = 8
    CORNER_FONT_MAX = 16

    # Rough width of one Helvetica glyph relative to the font size
    CHAR_WIDTH_RATIO = 0.6

    CENTER_COLOR = (0.5, 0.5, 0.5)
    CORNER_COLOR = (0.7, 0.7, 0.7)
    NOTICE = "Personal Use Only - Do Not Share or Distribute"

    @staticmethod
    def _round_half_up(value: float) -> int:
        return int(math.floor(value + 0.5))

    @staticmethod
    def font_sizes(width: float, height: float) -> tuple[int, int]:
        """Centre and corner font sizes for a page of the given size."""
        scale = math.sqrt((width * height) / WatermarkService.REFERENCE_AREA)
        center = WatermarkService._round_half_up(WatermarkService.CENTER_FONT_BASE * scale)
        corner = WatermarkService._round_half_up(WatermarkService.CORNER_FONT_BASE * scale)
        return (
            max(WatermarkService.CENTER_FONT_MIN, min(WatermarkService.CENTER_FONT_MAX, center)),
            max(WatermarkService.CORNER_FONT_MIN, min(WatermarkService.CORNER_FONT_MAX, corner)),
        )

    @staticmethod
    def build_text(name: str, email: str) -> tuple[str, str]:
        """Return (centre text, corner text)."""
        return f"{name} - {email}\n{WatermarkService.NOTICE}", email.split("@")[0]

    @staticmethod
    def _stamp_page(page: "fitz.Page", center_text: str, corner_text: str,
                    opacity: float, rotation: int) -> None:
        width, height = page.rect.width, page.rect.height
        center_size, corner_size = WatermarkService.font_sizes(width, height)

        first_line = center_text.split("\n")[0]
        text_width = len(first_line) * center_size * WatermarkService.CHAR_WIDTH_RATIO
        origin = fitz.Point((width - text_width) / 2, height / 2)
        page.insert_text(
            origin,
            center_text,
            fontsize=center_size,
            fontname="helv",
            color=WatermarkService.CENTER_COLOR,
            fill_opacity=opacity,
            morph=(origin, fitz.Matrix(-rotation)),
        )

        # PDF user space grows upwards, PyMuPDF's grows downwards
        corner_width = len(corner_text) * corner_size * WatermarkService.CHAR_WIDTH_RATIO
        for point in (
            fitz.Point(width - corner_width - 20, corner_size + 10),  # top-right
            fitz.Point(10, height - 10),                              # bottom-left
        ):
            page.insert_text(
                point,
                corner_text,
                fontsize=corner_size,
                fontname="helv",
                color=WatermarkService.CORNER_COLOR,
                fill_opacity=opacity,
            )

    @staticmethod
    def stamp(pdf_bytes: bytes, name: str, email: str,
              opacity: float | None = None, rotation: int | None = None) -> bytes:
        """Return a watermarked copy of pdf_bytes. The input is not modified."""
        opacity = config.WATERMARK_OPACITY if opacity is None else opacity
        rotation = config.WATERMARK_ROTATION if rotation is None else rotation
        center_text, corner_text = WatermarkService.build_text(name, email)

        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        try:
            for page in doc:
                WatermarkService._stamp_page(page, center_text, corner_text, opacity, rotation)
            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

    @staticmethod
    async def stamp_to_file(pdf_bytes: bytes, requester: RequesterDTO, item_id: int, output_path: Path) -> Path:
        """
        Watermark in a worker thread and write the result to output_path.

        Raises:
            WatermarkFailedException: The source is not a readable PDF or writing failed
        """
        def _render() -> None:
            stamped = WatermarkService.stamp(pdf_bytes, requester.name, requester.email)
            output_path.write_bytes(stamped)

        try:
            await asyncio.to_thread(_render)
        except Exception as e:
            logger.error(f"Watermarking item {item_id} for user {requester.user_id} failed: {e}", exc_info=True)
            raise WatermarkFailedException(item_id, str(e)) from e
        return output_path
