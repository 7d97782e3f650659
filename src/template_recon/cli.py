#!/usr/bin/env python
"""
Command-line interface for the template reconstruction pipeline.

Usage:
    template-recon --input <text_layers.json> --output <output_dir> [options]

Examples:
    # Skeleton only, fields from a previous scan
    template-recon -i layers.json -f fields.json -o ./out --no-refine

    # Refine with the page image using the configured provider
    template-recon -i layers.json -f fields.json --image page1.png -o ./out

    # Extract fields from the image first, then build the template
    template-recon -i layers.json --image page1.png --extract-fields -o ./out
"""

import sys
import argparse
import logging
import time
from pathlib import Path

from . import __version__
from .config import setup_logging

logger = logging.getLogger("template_recon")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="template-recon",
        description="Rebuild an editable HTML template from positioned page text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Skeleton only:
    template-recon -i layers.json -f fields.json -o ./out --no-refine

  Refine with a vision provider:
    template-recon -i layers.json -f fields.json --image page1.png -o ./out --provider gemini

  Extract fields from the page image first:
    template-recon -i layers.json --image page1.png --extract-fields -o ./out
        """
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="JSON file with page text layers (list of pages with positioned items)"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )

    # Optional arguments
    parser.add_argument(
        "--fields", "-f",
        default=None,
        help="JSON file with extracted fields (list or scan result with 'fields')"
    )

    parser.add_argument(
        "--image",
        default=None,
        help="Page image used for refinement and field extraction"
    )

    parser.add_argument(
        "--name",
        default=None,
        help="Output file stem (default: input file stem)"
    )

    parser.add_argument(
        "--settings",
        default=None,
        help="JSON settings file (layout, theme, refinement sections)"
    )

    parser.add_argument(
        "--memory",
        default=None,
        help="JSON memory store embedded in AI prompts"
    )

    parser.add_argument(
        "--provider",
        default=None,
        help="Refinement provider (openai, anthropic, gemini, openrouter, ...)"
    )

    parser.add_argument(
        "--model",
        default=None,
        help="Vision model override"
    )

    parser.add_argument(
        "--no-refine",
        action="store_true",
        help="Skip AI refinement and keep the deterministic skeleton"
    )

    parser.add_argument(
        "--extract-fields",
        action="store_true",
        help="Extract fields from --image with the configured provider"
    )

    parser.add_argument(
        "--save-skeleton",
        action="store_true",
        help="Also write the pre-refinement skeleton"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Re-raise errors with tracebacks"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def build_config(args):
    """Configuration from environment, settings file and CLI overrides."""
    from .config import get_config, load_settings, set_provider

    config = load_settings(args.settings) if args.settings else get_config()

    if args.provider:
        set_provider(config.refinement, args.provider)
    if args.model:
        config.refinement.model = args.model
    if args.no_refine:
        config.refinement.enabled = False
    if args.debug:
        config.debug_mode = True

    return config


def run_pipeline(args) -> int:
    """Run template generation."""
    from .io import load_text_layers, load_fields, load_page_image, save_result
    from .memory import JsonMemoryStore
    from .services import create_service
    from .fields import FieldExtractor
    from .pipeline import TemplateGenerator

    start_time = time.time()

    config = build_config(args)
    input_path = Path(args.input)
    stem = args.name or input_path.stem

    pages = load_text_layers(input_path)
    if not pages:
        logger.warning("No pages found in input, generating an empty template")

    image = load_page_image(args.image) if args.image else None
    memory = JsonMemoryStore(args.memory) if args.memory else None

    service = None
    if config.refinement.enabled or args.extract_fields:
        service = create_service(config.refinement)

    fields = []
    if args.fields:
        fields = load_fields(args.fields)
    elif args.extract_fields:
        if image is None:
            logger.error("--extract-fields requires --image")
            return 1
        if service is None or not service.supports_vision:
            logger.error(f"No vision-capable service for {config.refinement.provider}")
            return 1
        fields = FieldExtractor(service, memory=memory).extract(image)

    generator = TemplateGenerator(
        config=config,
        service=service if config.refinement.enabled else None,
        memory=memory
    )
    result = generator.generate(pages, fields, image=image)

    paths = save_result(result, args.output, stem=stem, save_skeleton=args.save_skeleton)
    for kind, path in paths.items():
        logger.info(f"Saved {kind}: {path}")

    elapsed = time.time() - start_time

    if not args.quiet:
        print("\n" + "=" * 60)
        print("TEMPLATE RECONSTRUCTION COMPLETE")
        print("=" * 60)
        print(f"Source: {input_path}")
        print(f"Output: {paths['html']}")
        print(f"Pages: {result.page_count}")
        print(f"Fields: {len(fields)}")
        print(f"Variables: {len(result.variables)}")
        print(f"Refinement: {result.refinement}")
        print(f"Confidence: {result.confidence:.0%}")
        print(f"Processing time: {elapsed:.2f}s")
        print("=" * 60)

    return 0


def main(argv=None):
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    setup_logging()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
