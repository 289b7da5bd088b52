#!/usr/bin/env python3
"""
Report converter for the kube-bench job runner.

Turns the kube-bench container output into a CISKubeBenchReport. Two kinds
of failure are kept apart:
- ReportReadError: the stream broke, we never got the whole output
- DecodingError: the output arrived but is not a kube-bench JSON report
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

import jsonschema
import urllib3

from ..context import RunContext
from ..errors import DecodingError, ReportReadError
from ..models.report import CISKubeBenchReport, CISKubeBenchSection, CISKubeBenchSummary, ScannerInfo
from .schema import REPORT_SCHEMA


LOGGER = logging.getLogger("kubebench.converter")

CHUNK_SIZE = 64 * 1024

_validator = jsonschema.Draft7Validator(REPORT_SCHEMA)


def read_stream(stream: Any, ctx: Optional[RunContext] = None, chunk_size: int = CHUNK_SIZE) -> bytes:
    """
    Read a stream to the end in a single pass.

    While reading, cancelling the context closes the stream, which aborts a
    read blocked on the network.

    Args:
        stream: Object with read(size) returning bytes (or str)
        ctx: Optional run context, checked between chunks
        chunk_size: Bytes per read

    Returns:
        Everything read from the stream

    Raises:
        ReportReadError: If reading fails
        ScanCancelled: If the context is cancelled while reading
    """
    if ctx is None:
        return _read_chunks(stream, None, chunk_size)

    close = getattr(stream, "close", None)
    remove = ctx.on_cancel(close) if close is not None else None
    try:
        return _read_chunks(stream, ctx, chunk_size)
    finally:
        if remove is not None:
            remove()


def _read_chunks(stream: Any, ctx: Optional[RunContext], chunk_size: int) -> bytes:
    chunks: List[bytes] = []
    while True:
        if ctx is not None:
            ctx.check()
        try:
            chunk = stream.read(chunk_size)
        except (OSError, ValueError, urllib3.exceptions.HTTPError) as e:
            # cancel() closes the stream under a blocked read
            if ctx is not None:
                ctx.check(e)
            raise ReportReadError(f"reading logs: {e}") from e
        if not chunk:
            break
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        chunks.append(chunk)

    if ctx is not None:
        ctx.check()
    return b"".join(chunks)


class Converter:
    """Decodes kube-bench JSON output into a CISKubeBenchReport."""

    def __init__(
        self,
        scanner_version: str = "latest",
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """
        Initialize the converter.

        Args:
            scanner_version: Version recorded in report.scanner, usually the image tag
            clock: Source of the report timestamp
        """
        self.scanner_version = scanner_version
        self.clock = clock

    def convert(self, stream: Any, ctx: Optional[RunContext] = None) -> CISKubeBenchReport:
        """
        Read and decode a kube-bench report.

        Args:
            stream: kube-bench container output
            ctx: Optional run context

        Returns:
            CISKubeBenchReport

        Raises:
            ReportReadError: If the stream could not be read
            DecodingError: If the output is not a valid report
        """
        data = read_stream(stream, ctx)
        LOGGER.debug("Read %d bytes of kube-bench output", len(data))
        return self.decode(data)

    def decode(self, data: bytes) -> CISKubeBenchReport:
        """
        Decode raw kube-bench output.

        Raises:
            DecodingError: If the output is not UTF-8 JSON matching the schema
        """
        try:
            document = json.loads(data.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise DecodingError(f"output is not valid UTF-8: {e}") from e
        except json.JSONDecodeError as e:
            raise DecodingError(f"output is not valid JSON: {e}") from e

        error = jsonschema.exceptions.best_match(_validator.iter_errors(document))
        if error is not None:
            location = "/".join(str(p) for p in error.absolute_path) or "<root>"
            raise DecodingError(f"output does not match kube-bench schema at {location}: {error.message}")

        controls = document if isinstance(document, list) else document["Controls"]
        sections = [CISKubeBenchSection.from_dict(c) for c in controls]

        return CISKubeBenchReport(
            scanner=ScannerInfo(version=self.scanner_version),
            summary=summarize(sections),
            sections=sections,
            update_timestamp=self.clock(),
        )


def summarize(sections: List[CISKubeBenchSection]) -> CISKubeBenchSummary:
    """Sum the per-section totals."""
    summary = CISKubeBenchSummary()
    for section in sections:
        summary.pass_count += section.total_pass
        summary.fail_count += section.total_fail
        summary.warn_count += section.total_warn
        summary.info_count += section.total_info
    return summary


def image_version(image: str) -> str:
    """
    Tag of an image reference, "latest" when untagged.

    >>> image_version("aquasec/kube-bench:v0.6.3")
    'v0.6.3'
    """
    name = image.split("@", 1)[0]
    last = name.rsplit("/", 1)[-1]
    if ":" in last:
        return last.rsplit(":", 1)[1]
    return "latest"

