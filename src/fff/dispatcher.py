from __future__ import annotations

import asyncio
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from typing import IO, Any, AsyncIterable, AsyncIterator, Dict, List, Optional, Set, TextIO, Union

from .core.keys import K_FAILED, K_PERSISTED, K_REPORTED, K_SKIPPED
from .workflows.download_utils import persist_response
from .workflows.fetch_config import FetchConfig
from .workflows.prefilters import evaluate_save_decision
from .workflows.web_fetch import FetchError, HTTPClient, build_request

logger = logging.getLogger(__name__)


class LineReporter:
    """Summary lines go to stdout, diagnostics to stderr.

    Every line is written with a single call from the event loop thread and
    flushed immediately, so lines from concurrent tasks never interleave.
    """

    def __init__(self, out: Optional[TextIO] = None, err: Optional[TextIO] = None) -> None:
        self.out = out if out is not None else sys.stdout
        self.err = err if err is not None else sys.stderr

    def summary(self, line: str) -> None:
        self._emit(self.out, line)

    def diagnostic(self, line: str) -> None:
        self._emit(self.err, line)

    @staticmethod
    def _emit(stream: TextIO, line: str) -> None:
        stream.write(line + "\n")
        stream.flush()


@dataclass
class RunSummary:
    dispatched: int = 0
    outcomes: Counter = field(default_factory=Counter)

    def record(self, outcome: str) -> None:
        self.outcomes[outcome] += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dispatched": self.dispatched,
            K_SKIPPED: self.outcomes[K_SKIPPED],
            K_REPORTED: self.outcomes[K_REPORTED],
            K_PERSISTED: self.outcomes[K_PERSISTED],
            K_FAILED: self.outcomes[K_FAILED],
        }


def _strip_line_ending(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def _decode_line(line: Union[bytes, str]) -> str:
    # Undecodable bytes survive as surrogates and are encoded back the same way.
    if isinstance(line, bytes):
        return line.decode("utf-8", "surrogateescape")
    return line


async def aiter_lines(stream: IO) -> AsyncIterator[str]:
    """Yield lines from a blocking stream without stalling the event loop.

    Binary streams are decoded line by line, so stray non-UTF-8 bytes never
    end the run early.
    """

    while True:
        line = await asyncio.to_thread(stream.readline)
        if not line:
            return
        yield _strip_line_ending(_decode_line(line))



async def fetch_one(
    client: HTTPClient,
    config: FetchConfig,
    raw_url: str,
    reporter: LineReporter,
) -> str:
    """Run one input line through build, send, read, decide and report/persist."""

    try:
        spec = build_request(config, raw_url)
        if spec is None:
            logger.debug("skipping invalid URL %r", raw_url)
            return K_SKIPPED

        response = await client.send(spec)

        decision = evaluate_save_decision(
            status=response.status,
            body=response.body,
            save_all=config.save_all,
            save_statuses=config.save_statuses,
            ignore_html=config.ignore_html,
            ignore_empty=config.ignore_empty,
            match=config.match,
        )
        if not decision.keep:
            logger.debug("not saving %s (%s)", raw_url, decision.reason or "no policy matched")
            reporter.summary(f"{raw_url} {response.status}")
            return K_REPORTED

        logger.debug("saving %s (%s)", raw_url, decision.reason)
        path = persist_response(config, spec, response)
    except FetchError as exc:
        reporter.diagnostic(exc.diagnostic)
        return K_FAILED

    reporter.summary(f"{path}: {raw_url} {response.status}")
    return K_PERSISTED


async def _run_task(
    client: HTTPClient,
    config: FetchConfig,
    raw_url: str,
    reporter: LineReporter,
    summary: RunSummary,
    gate: Optional[asyncio.Semaphore],
) -> None:
    try:
        outcome = await fetch_one(client, config, raw_url, reporter)
        summary.record(outcome)
    finally:
        if gate is not None:
            gate.release()


async def run_dispatcher(
    lines: AsyncIterable[str],
    config: FetchConfig,
    reporter: Optional[LineReporter] = None,
) -> RunSummary:
    """Launch one task per line, paced by the configured delay, and wait for all of them.

    With ``config.concurrency`` > 0 a launch also waits for a free slot; the
    default of 0 leaves in-flight tasks unbounded.
    """

    reporter = reporter or LineReporter()
    summary = RunSummary()
    gate = asyncio.Semaphore(config.concurrency) if config.concurrency > 0 else None
    tasks: Set[asyncio.Task] = set()

    async with HTTPClient(config) as client:
        try:
            async for raw_url in lines:
                await asyncio.sleep(config.delay_seconds)
                if gate is not None:
                    await gate.acquire()
                task = asyncio.create_task(_run_task(client, config, raw_url, reporter, summary, gate))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
                summary.dispatched += 1
        finally:
            # Completion barrier: the session stays open until every task is terminal.
            errors: List[BaseException] = []
            if tasks:
                results = await asyncio.gather(*list(tasks), return_exceptions=True)
                errors = [r for r in results if isinstance(r, BaseException)]
            if errors:
                raise errors[0]

    return summary


def run(stream: IO, config: FetchConfig, reporter: Optional[LineReporter] = None) -> RunSummary:
    """Blocking entrypoint: dispatch every line of ``stream``."""

    return asyncio.run(run_dispatcher(aiter_lines(stream), config, reporter))


__all__ = [
    "LineReporter",
    "RunSummary",
    "aiter_lines",
    "fetch_one",
    "run_dispatcher",
    "run",
]
