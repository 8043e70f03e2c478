import tempfile
import unittest
from pathlib import Path

from PIL import Image

from treeops.icons import BACKGROUND, render_icon, write_icons


class IconTests(unittest.TestCase):
    def test_render_icon_colours(self):
        img = render_icon(192)
        self.assertEqual(img.size, (192, 192))
        # Corner is background, canopy centre and trunk base are foreground.
        self.assertEqual(img.getpixel((0, 0)), (0xBA, 0xFA, 0x64))
        self.assertEqual(img.getpixel((96, int(192 * 0.4))), (0x12, 0x13, 0x11))
        self.assertEqual(img.getpixel((96, 191)), (0x12, 0x13, 0x11))
        self.assertEqual(BACKGROUND, "#bafa64")

    def test_write_icons(self):
        with tempfile.TemporaryDirectory() as tmp:
            out = Path(tmp) / "public" / "icons"
            written = write_icons(out)
            self.assertEqual([p.name for p in written], ["icon-192.png", "icon-512.png"])
            with Image.open(out / "icon-512.png") as img:
                self.assertEqual(img.format, "PNG")
                self.assertEqual(img.size, (512, 512))


if __name__ == "__main__":
    unittest.main()
