"""Command-line interface for json-locale-merge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .config import load_settings
from .engine import RunState
from .errors import CommitError, NoChangesError, RunError
from .presenter import ConsoleDiffPresenter
from .runner import plan_json_file, translate_json_file
from .translator import OpenAITranslator
from .utils import get_language_name, load_context


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="json-locale-merge",
        description="Translate the changed strings of a JSON locale file with an LLM "
        "and review the merge before it is written",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Translate what changed in en.json into fr.json, reviewing each chunk
  json-locale-merge messages/en.json messages/fr.json

  # Explicit language, custom context, no confirmation prompt
  json-locale-merge messages/en.json messages/pt-BR.json -l pt -c context.json -y

  # Fixed-size batches, four requests in flight
  json-locale-merge messages/en.json messages/de.json --bulk --parallel 4

  # Show the change set and chunk plan only
  json-locale-merge messages/en.json messages/de.json --dry-run

Environment Variables:
  OPENAI_API_KEY            Your OpenAI API key (required unless OPENAI_BASE_URL is set)
  OPENAI_BASE_URL           OpenAI-compatible endpoint (e.g. http://localhost:11434/v1)
  OPENAI_TRANSLATION_MODEL  Model name (default: gpt-4.1-mini)
  CHUNK_SIZE, BATCH_SIZE, PARALLEL_BATCH_COUNT, MAX_CONCURRENT_REQUESTS
        """,
    )

    parser.add_argument("base_file", type=Path, help="Base-language JSON file (e.g. en.json)")
    parser.add_argument("target_file", type=Path, help="Target-language JSON file to update")
    parser.add_argument(
        "-l",
        "--language",
        type=str,
        default=None,
        metavar="CODE",
        help="Target language code (default: the target file name, e.g. 'fr' for fr.json)",
    )
    parser.add_argument(
        "-c",
        "--context-file",
        type=Path,
        default=None,
        help="Path to JSON file containing translation context and glossary",
    )
    parser.add_argument("--model", type=str, default=None, help="Override OPENAI_TRANSLATION_MODEL")
    parser.add_argument(
        "--chunk-size", type=int, default=None, help="Maximum characters per chunk (default: 3000)"
    )
    parser.add_argument(
        "--bulk",
        action="store_true",
        help="Translate fixed-size key batches concurrently instead of incremental chunks",
    )
    parser.add_argument("--batch-size", type=int, default=None, help="Keys per batch with --bulk")
    parser.add_argument(
        "--parallel", type=int, default=None, help="Batches translated in parallel with --bulk"
    )
    parser.add_argument(
        "--no-structured-output",
        action="store_true",
        help="Send a free-form prompt instead of a JSON schema (for servers without json_schema)",
    )
    parser.add_argument("-y", "--yes", action="store_true", help="Commit without asking")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be translated without making API calls",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _print_plan(args, settings, mode: str) -> None:
    changes, chunks = plan_json_file(
        args.base_file,
        args.target_file,
        chunk_size=settings.chunk_size,
        batch_size=settings.batch_size,
        mode=mode,
    )
    deletions = sum(1 for value in changes.values() if value is None)
    print("Dry run mode - no translations will be performed.")
    print(f"Keys to translate: {len(changes) - deletions}")
    print(f"Keys to delete: {deletions}")
    print(f"Chunks: {len(chunks)}")
    for chunk in chunks:
        print(f"  - {chunk.chunk_id}: {len(chunk)} keys, {chunk.size} chars")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.base_file.is_file():
        print(f"Error: Base locale file not found: {args.base_file}", file=sys.stderr)
        return 1
    if args.target_file.resolve() == args.base_file.resolve():
        print("This is the base language file, no translation needed.")
        return 0

    # Determine context file: use explicit argument, or default to translation-context.json beside the base file
    context_file = args.context_file
    if context_file is None:
        default_context = args.base_file.parent / "translation-context.json"
        if default_context.exists():
            context_file = default_context
            print(f"Using default context file: {context_file}")

    if context_file and not context_file.exists():
        print(f"Error: Context file not found: {context_file}", file=sys.stderr)
        return 1

    mode = "bulk" if args.bulk else "incremental"
    try:
        settings = load_settings(
            model=args.model,
            chunk_size=args.chunk_size,
            batch_size=args.batch_size,
            parallel_batch_count=args.parallel,
        )
        language_code = args.language or args.target_file.stem
        target_language = get_language_name(language_code)

        print(f"Base file: {args.base_file}")
        print(f"Target file: {args.target_file} ({target_language})")
        print(f"Mode: {mode}")
        print()

        if args.dry_run:
            _print_plan(args, settings, mode)
            return 0

        translator = OpenAITranslator.from_settings(
            settings,
            context=load_context(context_file),
            structured=not args.no_structured_output,
        )
        presenter = ConsoleDiffPresenter(assume_yes=args.yes)
        result = asyncio.run(
            translate_json_file(
                translator,
                args.base_file,
                args.target_file,
                target_language,
                presenter,
                chunk_size=settings.chunk_size,
                batch_size=settings.batch_size,
                parallel=settings.parallel_batch_count,
                mode=mode,
                handle_interrupts=True,
            )
        )
    except NoChangesError as e:
        print(str(e))
        return 0
    except CommitError as e:
        print(f"Error: Translation finished but was not saved: {e}", file=sys.stderr)
        return 2
    except (FileNotFoundError, RunError, ValueError) as e:
        # ConfigError, InvalidTreeError and JSON decode errors are ValueErrors
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    if result["committed"]:
        print(f"Written to {result['output_file']}")
    elif result["state"] == RunState.FAILED:
        print("Translation failed! All chunks failed to translate. Nothing was written.")
        return 1
    else:
        print("Changes discarded. Nothing was written.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
