"""
CLI helper to render the web app's home-screen icons.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from treeops.icons import ICON_SIZES, write_icons


def main() -> int:
    parser = argparse.ArgumentParser(description="Create web app icons")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("public/icons"),
        help="Directory to write icon-<size>.png files into",
    )
    parser.add_argument(
        "--sizes",
        type=int,
        nargs="+",
        default=list(ICON_SIZES),
        help="Icon edge lengths in pixels",
    )
    args = parser.parse_args()

    for path in write_icons(args.output_dir, tuple(args.sizes)):
        print(f"Created {path}")
    print("Icons created successfully!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
