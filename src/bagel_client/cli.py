"""Command-line interface for the BAGEL client."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from bagel_client.client import BagelClient
from bagel_client.exceptions import BagelClientError
from bagel_client.models import (
    IMAGE_RATIOS,
    CaptionOptions,
    EditImageOptions,
    TextToImageOptions,
)
from bagel_client.operations import caption_image, edit_image, text_to_image
from bagel_client.settings import BagelSettings


def default_output_path() -> Path:
    """Timestamped output filename in the current directory."""
    timestamp = datetime.now(tz=UTC).strftime("%Y%m%d_%H%M%S")
    return Path(f"output_{timestamp}.png")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bagel-client",
        description="Generate, edit and caption images with a BAGEL server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s generate "A beautiful sunset over a mountain range" --ratio 16:9 --seed 42
  %(prog)s edit women.jpg "She boards a modern subway" -o edited.png
  %(prog)s caption meme.jpg "Explain what's funny about this meme" --show-thinking
        """,
    )
    parser.add_argument(
        "--url",
        help="Server base URL (default: $BAGEL_URL or http://localhost:7865)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log protocol details",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Text-to-image generation")
    generate.add_argument("prompt", help="Text prompt describing the image")
    generate.add_argument(
        "--ratio",
        choices=IMAGE_RATIOS,
        default="1:1",
        help="Image aspect ratio (default: 1:1)",
    )

    edit = subparsers.add_parser("edit", help="Edit an image from an instruction")
    edit.add_argument("image", type=Path, help="Image to edit")
    edit.add_argument("prompt", help="Editing instruction")

    for sub in (generate, edit):
        sub.add_argument("--seed", type=int, default=0, help="Random seed (default: 0)")
        sub.add_argument(
            "-o",
            "--output",
            type=Path,
            help="Output file path (default: output_TIMESTAMP.png)",
        )

    caption = subparsers.add_parser("caption", help="Ask a question about an image")
    caption.add_argument("image", type=Path, help="Image to describe")
    caption.add_argument("prompt", help="Question or captioning instruction")
    caption.add_argument(
        "--max-new-tokens",
        type=int,
        default=2048,
        help="Maximum number of generated tokens (default: 2048)",
    )

    for sub in (generate, edit):
        sub.add_argument(
            "--cfg-text-scale",
            type=float,
            default=4.0,
            help="Text guidance scale (default: 4.0)",
        )
        sub.add_argument(
            "--timesteps",
            type=int,
            default=50,
            help="Number of denoising steps (default: 50)",
        )
    edit.add_argument(
        "--cfg-img-scale",
        type=float,
        default=2.0,
        help="Image guidance scale (default: 2.0)",
    )

    for sub in (generate, edit, caption):
        sub.add_argument(
            "--show-thinking",
            action="store_true",
            help="Let the model reason before answering",
        )
        sub.add_argument(
            "--do-sample",
            action="store_true",
            help="Sample text tokens instead of greedy decoding",
        )
        sub.add_argument(
            "--temperature",
            type=float,
            default=0.3,
            help="Text sampling temperature (default: 0.3)",
        )

    return parser


async def run(args: argparse.Namespace) -> int:
    """Run one command and return the exit status."""
    settings = BagelSettings(base_url=args.url) if args.url else BagelSettings()

    async with BagelClient(settings=settings) as client:
        if args.command == "caption":
            result = await caption_image(
                client,
                args.image,
                args.prompt,
                CaptionOptions(
                    show_thinking=args.show_thinking,
                    do_sample=args.do_sample,
                    text_temperature=args.temperature,
                    max_new_tokens=args.max_new_tokens,
                ),
            )
            if result.think:
                print(f"Thinking:\n{result.think}\n")
            print(result.text)
            return 0

        if args.command == "generate":
            image = await text_to_image(
                client,
                args.prompt,
                TextToImageOptions(
                    show_thinking=args.show_thinking,
                    cfg_text_scale=args.cfg_text_scale,
                    num_timesteps=args.timesteps,
                    do_sample=args.do_sample,
                    text_temperature=args.temperature,
                    seed=args.seed,
                    image_ratio=args.ratio,
                ),
            )
        else:
            image = await edit_image(
                client,
                args.image,
                args.prompt,
                EditImageOptions(
                    show_thinking=args.show_thinking,
                    cfg_text_scale=args.cfg_text_scale,
                    cfg_img_scale=args.cfg_img_scale,
                    num_timesteps=args.timesteps,
                    do_sample=args.do_sample,
                    text_temperature=args.temperature,
                    seed=args.seed,
                ),
            )

        output_path = args.output or default_output_path()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(await client.download(image.image_url))
        print(f"Image saved to: {output_path}")
        return 0


def main() -> None:
    """Main entry point for CLI."""
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        sys.exit(asyncio.run(run(args)))
    except (BagelClientError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
