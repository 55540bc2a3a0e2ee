from __future__ import annotations

import argparse
import logging
from pathlib import Path

from stickerbot.application.make_sticker_use_case import build_use_case
from stickerbot.config import settings
from stickerbot.domain.removal_strategy import strategy_from_settings, with_overrides


def main() -> None:
    parser = argparse.ArgumentParser(description='Turn a local image into a WebP sticker.')
    parser.add_argument('source', type=Path)
    parser.add_argument('--output', type=Path, default=None)
    parser.add_argument('--tolerance', type=float, default=None)
    parser.add_argument('--no-erode', action='store_true')
    parser.add_argument('--cutout', action='store_true', help='write the background-removed PNG instead')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    strategy = with_overrides(
        strategy_from_settings(settings),
        tolerance=args.tolerance,
        erode=False if args.no_erode else None,
    )
    use_case = build_use_case(settings, strategy)
    image_bytes = args.source.read_bytes()

    if args.cutout:
        output = args.output or args.source.with_name(f"{args.source.stem}_nobg.png")
        output.write_bytes(use_case.remove_background(image_bytes))
    else:
        output = args.output or args.source.with_name(f"{args.source.stem}_sticker.webp")
        output.write_bytes(use_case.execute(image_bytes))
    print(f"wrote {output} ({output.stat().st_size} bytes)")


if __name__ == '__main__':
    main()
