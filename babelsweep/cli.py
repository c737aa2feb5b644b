"""Command line interface for BabelSweep."""

from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib
import re
import sys
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .client import TranslationClient, build_client
from .configuration import get_settings
from .documents import HtmlDocument, load_document
from .errors import (
    BabelSweepError,
    OverwriteRefusedError,
    TranslationProviderConfigurationError,
    UnsupportedFileTypeError,
)
from .policy import FailurePolicy
from .providers import build_provider_from_settings
from .sweep import SweepOrchestrator


@dataclass
class DocumentSummary:
    """Report returned after translating a document."""

    input_path: pathlib.Path
    output_path: pathlib.Path
    target_language: str
    source_language: str
    scanned_nodes: int
    applied_nodes: int
    cached_translations: int
    provider_name: str
    elapsed_seconds: float
    error_messages: List[str] = field(default_factory=list)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="babelsweep",
        description="Translate the visible text of HTML pages in place.",
    )
    parser.add_argument(
        "input_file",
        nargs="?",
        help="Path to the .html file to translate.",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        help="Destination language code (for example fr or de).",
    )
    parser.add_argument(
        "-s",
        "--source-language",
        help="Base language of the page (default: BABELSWEEP_BASE_LANGUAGE).",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language code.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider: backend, google, openai or echo.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the translation proxy instead of translating a file.",
    )
    parser.add_argument("--host", help="Proxy bind address (default: SERVER_HOST).")
    parser.add_argument("--port", type=int, help="Proxy port (default: SERVER_PORT).")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language code."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(input_path: pathlib.Path, language: str) -> pathlib.Path:
    addition = sanitise_language_for_filename(language)
    return input_path.with_name(f"{input_path.stem}_{addition}{input_path.suffix}")


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable .html file."
        )
    if not input_path.is_file():
        raise BabelSweepError("Input path must be a file.")

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input document. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )


async def _sweep_document(
    document: HtmlDocument,
    client: TranslationClient,
    target_language: str,
):
    orchestrator = SweepOrchestrator(
        document,
        client,
        base_language=client.source_language,
        watch_mutations=False,
        debug_hook=False,
    )
    try:
        return await orchestrator.sweep_to(target_language)
    finally:
        orchestrator.close()
        await client.aclose()


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    target_language: str,
    client: TranslationClient,
    force_overwrite: bool,
) -> tuple[int, DocumentSummary | None, str | None]:
    """Translate one file and return the exit code, summary, and message."""

    started = time.time()
    input_path = pathlib.Path(input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_path, target_language)
    )

    try:
        validate_paths(input_path, output_path, force_overwrite=force_overwrite)
        document = load_document(input_path)
    except (FileNotFoundError, UnsupportedFileTypeError, BabelSweepError) as exc:
        return 1, None, str(exc)
    except (OSError, UnicodeDecodeError) as exc:
        return 1, None, f"Could not read {input_path}: {exc}"

    try:
        report = asyncio.run(_sweep_document(document, client, target_language))
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        document.save(output_path)
        if client.cache.path is not None:
            client.cache.save()
    except OSError as exc:
        return 1, None, f"Could not write output: {exc}"

    summary = DocumentSummary(
        input_path=input_path,
        output_path=output_path,
        target_language=target_language,
        source_language=client.source_language,
        scanned_nodes=report.scanned_nodes if report else 0,
        applied_nodes=report.applied_nodes if report else 0,
        cached_translations=len(client.cache),
        provider_name=client.provider.name,
        elapsed_seconds=time.time() - started,
        error_messages=[
            f"{record.message} ({record.details})" if record.details else record.message
            for record in client.policy.records
        ],
    )
    return 0, summary, None


def print_summary(summary: DocumentSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nTranslation complete.")
    print(f"  Input file:      {summary.input_path}")
    print(f"  Output file:     {summary.output_path}")
    print(
        "  Text nodes:      "
        f"{summary.applied_nodes} translated / {summary.scanned_nodes} eligible"
    )
    print(f"  Provider:        {summary.provider_name}")
    print(f"  Languages:       {summary.source_language} -> {summary.target_language}")
    print(f"  Cache entries:   {summary.cached_translations}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.error_messages:
        print("  Notes:")
        for message in summary.error_messages:
            print(f"    - {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(args.verbose)

    try:
        settings = get_settings()
    except TranslationProviderConfigurationError as exc:
        print(exc)
        return 1

    if args.serve:
        from .server import run_server

        try:
            provider = build_provider_from_settings(
                settings, args.provider, debug=args.debug_provider
            )
        except TranslationProviderConfigurationError as exc:
            print(exc)
            return 1
        if provider.name == "backend":
            print("The proxy needs a direct provider: use google, openai or echo.")
            return 1
        run_server(
            provider,
            host=args.host or settings.SERVER_HOST,
            port=args.port or settings.SERVER_PORT,
        )
        return 0

    if args.input_file is None:
        parser.error("the following arguments are required: input_file")
    if not args.target_language:
        parser.error("the following arguments are required: -t/--target-language")

    try:
        client = build_client(
            settings,
            provider_name=args.provider,
            source_language=args.source_language,
            policy=FailurePolicy(),
            debug=args.debug_provider,
        )
    except TranslationProviderConfigurationError as exc:
        print(exc)
        return 1

    exit_code, summary, message = execute_translation(
        input_file=args.input_file,
        output_file=args.output,
        target_language=args.target_language,
        client=client,
        force_overwrite=args.force,
    )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
