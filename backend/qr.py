"""
QR code rendering for public survey links.

`render_png` returns the bare code; `render_card` lays it out on a printable
card with a heading, the survey title and the URL underneath.
"""

import io

import qrcode
from PIL import Image, ImageDraw, ImageFont

CARD_WIDTH = 600
CARD_HEIGHT = 750
QR_SIZE = 350
QR_TOP = 200
MARGIN = 40

HEADING = ("Scan the QR code to", "answer the survey:")
DARK = (31, 41, 55)
ACCENT = (37, 99, 235)
MUTED = (107, 114, 128)
BORDER = (229, 231, 235)


def _qr_image(url: str) -> Image.Image:
    return qrcode.make(url).get_image().convert("RGB")


def render_png(url: str) -> bytes:
    buf = io.BytesIO()
    _qr_image(url).save(buf, format="PNG")
    return buf.getvalue()


def wrap_text(draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> list[str]:
    """Greedy word wrap by rendered width."""
    lines, line = [], ""
    for word in text.split():
        candidate = f"{line} {word}".strip()
        if line and draw.textlength(candidate, font=font) > max_width:
            lines.append(line)
            line = word
        else:
            line = candidate
    if line:
        lines.append(line)
    return lines


def _centered(draw: ImageDraw.ImageDraw, y: int, text: str, font, fill) -> None:
    width = draw.textlength(text, font=font)
    draw.text(((CARD_WIDTH - width) / 2, y), text, font=font, fill=fill)


def render_card(title: str, url: str) -> bytes:
    card = Image.new("RGB", (CARD_WIDTH, CARD_HEIGHT), "white")
    draw = ImageDraw.Draw(card)
    font = ImageFont.load_default()

    y = 50
    for line in HEADING:
        _centered(draw, y, line, font, DARK)
        y += 35

    y = 125
    for line in wrap_text(draw, title, font, CARD_WIDTH - 2 * MARGIN):
        _centered(draw, y, line, font, ACCENT)
        y += 30

    code = _qr_image(url).resize((QR_SIZE, QR_SIZE), Image.NEAREST)
    card.paste(code, ((CARD_WIDTH - QR_SIZE) // 2, QR_TOP))
    _centered(draw, QR_TOP + QR_SIZE + 40, url, font, MUTED)
    draw.rectangle([20, 20, CARD_WIDTH - 20, CARD_HEIGHT - 20], outline=BORDER, width=2)

    buf = io.BytesIO()
    card.save(buf, format="PNG")
    return buf.getvalue()
