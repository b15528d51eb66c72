"""
Command-line interface for the Markdown exporter.

Exports the current Logseq page (or a named page, or the results of a
query) through the Logseq HTTP API server or from a graph snapshot.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import ConfigManager, get_config
from .exceptions import NoActivePageError
from .exporter import MarkdownExporter
from .host import BaseHost, LogseqAPIHost, SnapshotHost
from .models import Page
from .output import write_export


def setup_logging(config: ConfigManager, debug: bool = False):
    """Configure logging for the application."""
    level = logging.DEBUG if debug else getattr(logging, str(config.get("logging.level", "INFO")).upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = config.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file)
        ]
    )


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Export Logseq pages as clean Markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                   # Export the page open in Logseq
  python main.py --page "Project Notes"            # Export a page by name
  python main.py --snapshot graph.json --stdout    # Export from a snapshot, print to stdout
  python main.py --query '[:find (pull ?b [*]) :where [?b :block/marker "TODO"]]'
        """
    )

    parser.add_argument("--config", type=str, help="Path to the YAML configuration file (default: config.yaml)")
    parser.add_argument("--snapshot", type=str, help="Read the graph from a JSON or EDN snapshot instead of Logseq")
    parser.add_argument("--page", type=str, help="Export this page instead of the current one")
    parser.add_argument("--query", type=str, help="Export the results of a Datalog query")
    parser.add_argument("--output", type=str, help="Output directory (default: paths.output_dir)")
    parser.add_argument("--stdout", action="store_true", help="Print the Markdown instead of writing files")

    options = parser.add_argument_group("export options (default: the export section of the config)")
    options.add_argument("--include-tags", dest="include_tags", action="store_const", const=True,
                         help="Keep #hashtags")
    options.add_argument("--include-properties", dest="include_properties", action="store_const", const=True,
                         help="Emit YAML frontmatter from page properties")
    options.add_argument("--no-block-refs", dest="preserve_block_refs", action="store_const", const=False,
                         help="Leave identifier references unresolved")
    options.add_argument("--nested", dest="flatten_nested", action="store_const", const=False,
                         help="Render children as nested list items")
    options.add_argument("--keep-syntax", dest="remove_logseq_syntax", action="store_const", const=False,
                         help="Keep task keywords, priorities and macros")
    options.add_argument("--no-plain-uuids", dest="resolve_plain_uuids", action="store_const", const=False,
                         help="Only resolve bracketed references")
    options.add_argument("--no-page-name", dest="include_page_name", action="store_const", const=False,
                         help="Do not emit the page title as a heading")
    options.add_argument("--asset-path", dest="asset_path", type=str,
                         help="Directory prefix for exported attachments")
    options.add_argument("--debug", action="store_const", const=True,
                         help="Trace every resolution step")

    parser.add_argument("--version", action="version", version=f"Logseq Markdown {__version__}")

    return parser.parse_args(argv)


def create_host(args: argparse.Namespace) -> BaseHost:
    if args.snapshot:
        return SnapshotHost.from_file(args.snapshot)
    return LogseqAPIHost()


async def run(args: argparse.Namespace, config: ConfigManager) -> int:
    """
    Run one export.

    Returns:
        Process exit status
    """
    options = config.export_options(
        include_tags=args.include_tags,
        include_properties=args.include_properties,
        preserve_block_refs=args.preserve_block_refs,
        flatten_nested=args.flatten_nested,
        remove_logseq_syntax=args.remove_logseq_syntax,
        resolve_plain_uuids=args.resolve_plain_uuids,
        include_page_name=args.include_page_name,
        asset_path=args.asset_path,
        debug=args.debug,
    )

    try:
        host = create_host(args)
    except (OSError, ValueError) as e:
        logging.error(f"Could not load snapshot: {e}")
        return 1

    exporter = MarkdownExporter(host, config.tag_properties, config.system_properties)

    try:
        if args.query:
            markdown = await exporter.export_query_results(args.query)
            print(markdown)
            return 0

        result = await exporter.export(options, page_id=args.page)
        if args.stdout:
            print(result.markdown)
            return 0

        page_name = args.page or await _current_page_name(host)
        report = await write_export(
            result, host, args.output or config.output_directory, page_name, options.asset_path
        )
        return 0 if report.markdown_path else 1

    except NoActivePageError:
        logging.error("No active page to export")
        await host.show_message("No active page to export", "warning")
        return 1

    except Exception as e:
        logging.error(f"Export failed: {e}")
        await host.show_message(f"Export failed: {e}", "error")
        return 1

    finally:
        if isinstance(host, LogseqAPIHost):
            await host.client.aclose()


async def _current_page_name(host: BaseHost) -> str:
    page = await host.get_current_page()
    return (Page.from_entity(page).name if page else None) or "export"


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_arguments(argv)
    config = get_config(args.config)
    setup_logging(config, debug=bool(args.debug))

    logging.info("Logseq Markdown exporter")

    try:
        status = asyncio.run(run(args, config))
    except KeyboardInterrupt:
        logging.info("Export interrupted by user")
        status = 1

    sys.exit(status)
