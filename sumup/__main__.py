"""
Command-line interface: summarize one document.

    python -m sumup report.pdf --persona business
    python -m sumup notes.txt --strategy single
    DEBUG=true python -m sumup scan.png
"""

import argparse
import asyncio
import sys

from sumup.config import QUOTA_STORE_FILE
from sumup.errors import user_message
from sumup.extraction import Document
from sumup.logging_config import close_debug_log, info
from sumup.processing_strategy import ProcessingOption, ProcessingStrategy
from sumup.quota import QuotaTracker
from sumup.storage import JsonFileStore
from sumup.summarization import (
    OllamaBackend,
    PipelineState,
    SummarizationPipeline,
    SummaryPersona,
    choose_recommended,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sumup",
        description="SumUp - Summarize a text, PDF, Word or scanned image file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Balanced summary of a PDF
  python -m sumup report.pdf

  # Study notes, forcing a single request
  python -m sumup chapter.docx --persona study --strategy single
        """,
    )
    parser.add_argument('file', help='File to summarize (.txt, .md, .pdf, .docx, .png, .jpg, .tif)')
    parser.add_argument(
        '--persona',
        default='general',
        choices=[p.name.lower() for p in SummaryPersona],
        help='Summary style (default: general)',
    )
    parser.add_argument(
        '--strategy',
        choices=[s.value for s in ProcessingStrategy],
        help='Force a processing strategy instead of the recommended one',
    )
    parser.add_argument('--show-progress', action='store_true', help='Print pipeline state changes')
    return parser


def _chooser(pipeline: SummarizationPipeline, strategy_name: str | None):
    def choose(options: list[ProcessingOption]) -> ProcessingOption:
        if strategy_name is None:
            return choose_recommended(options)
        wanted = ProcessingStrategy(strategy_name)
        for option in options:
            if option.strategy == wanted:
                return option
        structured = pipeline.last_analysis.structured if pipeline.last_analysis else None
        return pipeline.selector.build_option(wanted, pipeline.last_text_length, structured)
    return choose


async def run_cli(args: argparse.Namespace) -> int:
    try:
        document = Document.from_path(args.file)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    quota = QuotaTracker(JsonFileStore(QUOTA_STORE_FILE))
    status = await quota.load()
    info(f"[CLI] Quota {status.requests_used}/{status.daily_cap}, resets {status.reset_at.isoformat()}")

    pipeline = SummarizationPipeline(OllamaBackend(), quota)

    progress_task = None
    if args.show_progress:
        updates = pipeline.state_stream.subscribe()

        async def print_progress():
            async for update in updates:
                print(f"[{update.progress:4.0%}] {update.state.value}: {update.message}", file=sys.stderr)

        progress_task = asyncio.create_task(print_progress())

    persona = SummaryPersona[args.persona.upper()]
    result = await pipeline.run(document, persona, choose=_chooser(pipeline, args.strategy))

    if progress_task is not None:
        await progress_task

    if result.state == PipelineState.COMPLETE:
        print(result.summary)
        return 0

    print(user_message(result.error, partial=result.is_partial), file=sys.stderr)
    if result.is_partial:
        print(result.summary)
    return 1


def main() -> int:
    args = build_parser().parse_args()
    try:
        return asyncio.run(run_cli(args))
    finally:
        close_debug_log()


if __name__ == "__main__":
    sys.exit(main())
