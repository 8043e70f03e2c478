"""
Home-screen icon rendering for the installable web app.
"""

from __future__ import annotations

from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

BACKGROUND = "#bafa64"
FOREGROUND = "#121311"
ICON_SIZES = (192, 512)
FONT_PATH = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"


def _label_font(size: int) -> ImageFont.ImageFont:
    font_size = int(size * 0.15)
    try:
        return ImageFont.truetype(FONT_PATH, font_size)
    except OSError:
        return ImageFont.load_default(size=font_size)


def render_icon(size: int) -> Image.Image:
    """Draw a tree (trunk plus round canopy) over an "AI" label."""
    img = Image.new("RGB", (size, size), BACKGROUND)
    draw = ImageDraw.Draw(img)

    trunk_width = size * 0.1
    trunk_height = size * 0.3
    draw.rectangle(
        [
            size / 2 - trunk_width / 2,
            size - trunk_height,
            size / 2 + trunk_width / 2,
            size,
        ],
        fill=FOREGROUND,
    )

    radius = size * 0.25
    cx, cy = size / 2, size * 0.4
    draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], fill=FOREGROUND)

    # "ms" anchor: horizontally centred, baseline at 85% height.
    draw.text((size / 2, size * 0.85), "AI", fill=FOREGROUND, font=_label_font(size), anchor="ms")
    return img


def write_icons(output_dir: Path, sizes: tuple[int, ...] = ICON_SIZES) -> list[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for size in sizes:
        path = output_dir / f"icon-{size}.png"
        render_icon(size).save(path, format="PNG")
        written.append(path)
    return written
