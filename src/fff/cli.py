from __future__ import annotations

import json
import logging
import sys
from typing import List, Optional

import typer
from dotenv import load_dotenv

from . import dispatcher
from .workflows.fetch_config import DEFAULT_DELAY_MS, DEFAULT_METHOD, DEFAULT_OUTPUT_DIR, FetchConfig

logger = logging.getLogger(__name__)

app = typer.Typer(add_help_option=False, no_args_is_help=False)


def _usage() -> str:
    return """Request URLs provided on stdin fairly frickin' fast

Options:
  -b, --body <data>         Request body
  -d, --delay <delay>       Delay between issuing requests (ms)
  -H, --header <header>     Add a header to the request (can be specified multiple times)
      --ignore-html         Don't save HTML files; useful when looking non-HTML files only
      --ignore-empty        Don't save empty files
  -k, --keep-alive          Use HTTP Keep-Alive
  -m, --method              HTTP method to use (default: GET, or POST if body is specified)
  -M, --match <string>      Save responses that include <string> in the body
  -o, --output <dir>        Directory to save responses in (will be created)
  -s, --save-status <code>  Save responses with given status code (can be specified multiple times)
  -S, --save                Save all responses
  -x, --proxy <proxyURL>    Use the provided HTTP proxy
  -c, --concurrency <n>     Maximum requests in flight (default: 0, unbounded)
  -v, --verbose             Log skipped lines and save decisions to stderr

Every option except --header and --save-status also reads FFF_<OPTION>
from the environment or a .env file (e.g. FFF_DELAY, FFF_PROXY).
"""


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        stream=sys.stderr,
    )


def _configure_streams():
    """Return stdin as bytes and let stdout/stderr echo undecodable input back verbatim."""

    for stream in (sys.stdout, sys.stderr):
        if hasattr(stream, "reconfigure"):
            stream.reconfigure(errors="surrogateescape")
    return getattr(sys.stdin, "buffer", sys.stdin)


@app.command(add_help_option=False)
def main(
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show usage."),
    body: str = typer.Option("", "--body", "-b", envvar="FFF_BODY", help="Request body."),
    delay: int = typer.Option(DEFAULT_DELAY_MS, "--delay", "-d", envvar="FFF_DELAY", help="Delay between requests (ms)."),
    header: Optional[List[str]] = typer.Option(None, "--header", "-H", help="Request header (repeatable)."),
    ignore_html: bool = typer.Option(False, "--ignore-html", envvar="FFF_IGNORE_HTML", help="Don't save HTML bodies."),
    ignore_empty: bool = typer.Option(False, "--ignore-empty", envvar="FFF_IGNORE_EMPTY", help="Don't save empty bodies."),
    keep_alive: bool = typer.Option(
        False, "--keep-alive", "--keep-alives", "-k", envvar="FFF_KEEP_ALIVE", help="Use HTTP keep-alive."
    ),
    method: str = typer.Option(DEFAULT_METHOD, "--method", "-m", envvar="FFF_METHOD", help="HTTP method."),
    match: str = typer.Option("", "--match", "-M", envvar="FFF_MATCH", help="Save bodies containing this string."),
    output: str = typer.Option(DEFAULT_OUTPUT_DIR, "--output", "-o", envvar="FFF_OUTPUT", help="Output directory."),
    save_status: Optional[List[int]] = typer.Option(None, "--save-status", "-s", help="Status code to save (repeatable)."),
    save: bool = typer.Option(False, "--save", "-S", envvar="FFF_SAVE", help="Save all responses."),
    proxy: str = typer.Option("", "--proxy", "-x", envvar="FFF_PROXY", help="HTTP proxy URL."),
    concurrency: int = typer.Option(0, "--concurrency", "-c", envvar="FFF_CONCURRENCY", help="Max in-flight requests."),
    verbose: bool = typer.Option(False, "--verbose", "-v", envvar="FFF_VERBOSE", help="Debug logging."),
) -> None:
    if help:
        typer.echo(_usage(), err=True)
        raise typer.Exit(code=0)

    _configure_logging(verbose)
    config = FetchConfig.build(
        method=method,
        body=body,
        headers=header or (),
        save_statuses=save_status or (),
        delay_ms=delay,
        output_dir=output,
        save_all=save,
        ignore_html=ignore_html,
        ignore_empty=ignore_empty,
        match=match,
        keep_alive=keep_alive,
        proxy=proxy,
        concurrency=max(0, concurrency),
    )
    stdin = _configure_streams()
    try:
        summary = dispatcher.run(stdin, config)
    except Exception as exc:
        typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=3)
    logger.info("run summary: %s", json.dumps(summary.to_dict(), sort_keys=True))
    raise typer.Exit(code=0)


def run_cli() -> None:
    """Console entrypoint: load ``.env`` before options read their env defaults."""

    load_dotenv()
    app()
