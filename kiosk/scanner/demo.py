"""Placeholder document rendered for simulated scans."""

import io
from datetime import datetime

from PIL import Image, ImageDraw, ImageFont

_WIDTH = 1080
_HEIGHT = 1528
_MARGIN_X = 120
_MARGIN_Y = 140


def render_demo_scan(file_name: str, generated_at: datetime | None = None) -> bytes:
    """Render a labelled demo page and return it as PNG bytes."""
    generated_at = generated_at or datetime.now()
    image = Image.new("RGB", (_WIDTH, _HEIGHT), "#f3f4f6")
    draw = ImageDraw.Draw(image)

    # Paper sheet
    draw.rectangle(
        (_MARGIN_X, _MARGIN_Y, _WIDTH - _MARGIN_X, _HEIGHT - _MARGIN_Y),
        fill="#ffffff",
        outline="#111827",
        width=4,
    )

    title_font = ImageFont.load_default(size=46)
    body_font = ImageFont.load_default(size=24)
    preview_font = ImageFont.load_default(size=36)

    draw.text(
        (_WIDTH // 2, 230), "DEMO SCAN", font=title_font, fill="#111827", anchor="mm"
    )
    draw.text(
        (_WIDTH // 2, 285),
        "Simulated document",
        font=body_font,
        fill="#6b7280",
        anchor="mm",
    )

    lines = [
        "Status: completed",
        f"File: {file_name}",
        "Mode: simulated",
        f"Generated: {generated_at:%Y-%m-%d %H:%M:%S}",
    ]
    for idx, line in enumerate(lines):
        draw.text((180, 380 + idx * 44), line, font=body_font, fill="#1f2937")

    # Preview area
    preview = (180, 840, _WIDTH - 180, 1200)
    draw.rectangle(preview, fill="#e5e7eb", outline="#9ca3af", width=3)
    draw.text(
        (_WIDTH // 2, (preview[1] + preview[3]) // 2),
        "PREVIEW",
        font=preview_font,
        fill="#6b7280",
        anchor="mm",
    )

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
