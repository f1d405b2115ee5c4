"""
Command-line front ends.

`tabstack` wraps the extraction API:

    tabstack test
    tabstack markdown <url>
    tabstack json <url> <schema-file>
    tabstack json-retry <url> <schema-file>
    tabstack json-cache <url> <schema-file>
    tabstack batch <urls-file> <schema-file>

Without a command it prints usage and does nothing. A command that produces
no result exits with status 1.

`tabstack-search "query" [options-json]` queries a SearXNG instance and
exits with status 1 on any error.
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from . import __version__
from .batch import batch_extract, read_urls_file
from .cache import ResultCache, extract_with_cache
from .client import ExtractionClient, load_schema
from .config import (
    LOG_FORMAT,
    TabstackConfig,
    generate_example_config,
    load_config,
    validate_urls,
)
from .credentials import check_api_key
from .error_handler import ExtractionFailure, SearchError, always_retry, is_retryable
from .mock_api import default_mock_session
from .retry import extract_with_retry
from .search import format_results, parse_options, search
from .terminal_utils import console, detect_emoji_support, echo

logger = logging.getLogger(__name__)

MOCK_API_KEY = "mock-key"

EXTRACT_EPILOG = """
EXAMPLES:
  tabstack test
  tabstack markdown https://example.com
  tabstack json https://example.com/product schema.json
  tabstack json-retry https://example.com/product schema.json --max-retries 5
  tabstack json-cache https://example.com/product schema.json
  tabstack batch urls.txt schema.json --concurrency 5

The API key is read from TABSTACK_API_KEY or ~/.config/tabstack/config.edn
({:api-key "..."}).
"""


def configure_logging(level: str) -> None:
    """Route log records to stderr with the shared format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        force=True,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tabstack",
        description="Extract markdown or schema-shaped JSON from web pages via Tabstack",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EXTRACT_EPILOG,
    )
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        default=None,
        help="Path to YAML/JSON configuration file (see --generate-config)",
        metavar="FILE",
    )
    parser.add_argument(
        "--generate-config",
        action="store_true",
        default=False,
        help="Generate example configuration file (tabstack_config.yaml) and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        default=False,
        help="Use a local mock API instead of Tabstack (development only)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"tabstack version {__version__}",
    )

    timeout_opts = argparse.ArgumentParser(add_help=False)
    timeout_opts.add_argument(
        "--timeout-ms", type=int, default=None, metavar="MS", help="Request timeout"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.add_parser("test", help="Test API connection")

    markdown = subparsers.add_parser(
        "markdown", parents=[timeout_opts], help="Extract markdown from URL"
    )
    markdown.add_argument("url")

    json_cmd = subparsers.add_parser(
        "json", parents=[timeout_opts], help="Extract JSON using schema file"
    )
    json_cmd.add_argument("url")
    json_cmd.add_argument("schema_file")

    retry_cmd = subparsers.add_parser(
        "json-retry", parents=[timeout_opts], help="Extract with retry logic"
    )
    retry_cmd.add_argument("url")
    retry_cmd.add_argument("schema_file")
    retry_cmd.add_argument("--max-retries", type=int, default=None, metavar="N")
    retry_cmd.add_argument("--delay-ms", type=int, default=None, metavar="MS")
    retry_cmd.add_argument(
        "--retry-all",
        action="store_true",
        default=False,
        help="Retry every failure, including permanent 4xx API errors",
    )

    cache_cmd = subparsers.add_parser(
        "json-cache", parents=[timeout_opts], help="Extract with caching"
    )
    cache_cmd.add_argument("url")
    cache_cmd.add_argument("schema_file")
    cache_cmd.add_argument("--cache-ttl-ms", type=int, default=None, metavar="MS")

    batch_cmd = subparsers.add_parser(
        "batch", parents=[timeout_opts], help="Batch extract from URLs file"
    )
    batch_cmd.add_argument("urls_file")
    batch_cmd.add_argument("schema_file")
    batch_cmd.add_argument("--concurrency", type=int, default=None, metavar="N")
    batch_cmd.add_argument("--batch-size", type=int, default=None, metavar="N")

    return parser


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides = {
        "timeout_ms": getattr(args, "timeout_ms", None),
        "max_retries": getattr(args, "max_retries", None),
        "retry_delay_ms": getattr(args, "delay_ms", None),
        "cache_ttl_ms": getattr(args, "cache_ttl_ms", None),
        "concurrency": getattr(args, "concurrency", None),
        "batch_size": getattr(args, "batch_size", None),
        "log_level": "DEBUG" if args.verbose else None,
    }
    return {k: v for k, v in overrides.items() if v is not None}


def _make_client(config: TabstackConfig, mock: bool) -> ExtractionClient:
    if mock:
        return ExtractionClient(
            api_key_resolver=lambda: MOCK_API_KEY,
            session=default_mock_session(),
            base_url=config.base_url,
        )
    return ExtractionClient(api_key_resolver=check_api_key, base_url=config.base_url)


def _print_result(result: Any) -> int:
    if result is None or isinstance(result, ExtractionFailure):
        return 1
    if isinstance(result, str):
        echo(result)
    else:
        console.print_json(data=result)
    return 0


def _run_command(
    args: argparse.Namespace, config: TabstackConfig, client: ExtractionClient
) -> int:
    command = args.command

    if command == "test":
        return 0 if client.test_connection() else 1

    if command == "markdown":
        return _print_result(
            client.extract_markdown(args.url, timeout_ms=config.timeout_ms)
        )

    if command == "json":
        return _print_result(
            client.extract_json_file(
                args.url, args.schema_file, timeout_ms=config.timeout_ms
            )
        )

    if command == "json-retry":
        try:
            schema = load_schema(args.schema_file)
        except (OSError, ValueError) as e:
            echo(f"Error: {e}")
            return 1
        return _print_result(
            extract_with_retry(
                client,
                args.url,
                schema,
                max_retries=config.max_retries,
                delay_ms=config.retry_delay_ms,
                timeout_ms=config.timeout_ms,
                retryable=always_retry if args.retry_all else is_retryable,
            )
        )

    if command == "json-cache":
        return _print_result(
            extract_with_cache(
                client,
                args.url,
                args.schema_file,
                cache_ttl_ms=config.cache_ttl_ms,
                cache=ResultCache(config.cache_path),
                timeout_ms=config.timeout_ms,
            )
        )

    if command == "batch":
        try:
            lines = read_urls_file(args.urls_file)
            schema = load_schema(args.schema_file)
        except (OSError, ValueError) as e:
            echo(f"Error: {e}")
            return 1
        results = batch_extract(
            client,
            validate_urls(lines),
            schema,
            concurrency=config.concurrency,
            batch_size=config.batch_size,
            timeout_ms=config.timeout_ms,
        )
        console.print_json(data=results)
        # Skipped invalid lines count as failures
        return 0 if results or not lines else 1

    raise ValueError(f"Unknown command: {command}")


def run(argv: Optional[List[str]] = None) -> int:
    """Parse `argv` and run the extraction CLI, returning the exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.generate_config:
        generate_example_config("tabstack_config.yaml")
        echo("Generated example configuration: tabstack_config.yaml")
        return 0

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = load_config(config_path=args.config, cli_overrides=_cli_overrides(args))
    except (OSError, ValueError) as e:
        echo(f"Error: {e}")
        return 1

    configure_logging(config.log_level)
    detect_emoji_support()
    logger.debug(f"Running {args.command} with config {config.to_dict()}")

    client = _make_client(config, args.mock)
    return _run_command(args, config, client)


def main() -> None:
    """Entry point for the `tabstack` console script."""
    sys.exit(run())


def run_search(argv: Optional[List[str]] = None) -> int:
    """Run the search CLI with `argv`, returning the exit status."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        echo('Usage: tabstack-search "query" [options-json]')
        echo("Example: tabstack-search \"NixOS\" '{\"category\": \"it\"}'")
        return 1

    configure_logging("WARNING")
    query = args[0]
    try:
        num_results, params = parse_options(args[1] if len(args) > 1 else None)
        data = search(query, params)
    except SearchError as e:
        echo(f"Error: {e.message}")
        return 1

    echo(format_results(data, num_results))
    return 0


def search_main() -> None:
    """Entry point for the `tabstack-search` console script."""
    sys.exit(run_search())


if __name__ == "__main__":
    main()
