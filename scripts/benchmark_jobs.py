from __future__ import annotations

import argparse
import io
import time

import requests
from PIL import Image, ImageDraw


def make_image() -> bytes:
    img = Image.new('RGB', (768, 768), (0, 255, 0))
    draw = ImageDraw.Draw(img)
    draw.ellipse((160, 160, 608, 608), fill=(220, 30, 30), outline='white', width=12)
    out = io.BytesIO()
    img.save(out, format='PNG')
    return out.getvalue()


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument('--url', default='http://127.0.0.1:8000')
    parser.add_argument('--count', type=int, default=10)
    parser.add_argument('--tolerance', type=float, default=None)
    args = parser.parse_args()

    image = make_image()
    data = {} if args.tolerance is None else {'tolerance': str(args.tolerance)}
    started = time.time()

    for _ in range(args.count):
        resp = requests.post(
            f"{args.url}/api/jobs/sticker",
            files={'file': ('bench.png', image, 'image/png')},
            data=data,
            timeout=30,
        )
        resp.raise_for_status()

    elapsed = time.time() - started
    print({'submitted': args.count, 'elapsed_sec': round(elapsed, 2), 'rps': round(args.count / elapsed, 2)})


if __name__ == '__main__':
    main()
