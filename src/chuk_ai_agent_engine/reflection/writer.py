# chuk_ai_agent_engine/reflection/writer.py
"""Persist reflection reports as ``reflection-<timestamp>.<ext>`` files."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from chuk_ai_agent_engine.reflection.models import ReflectionFormat, ReflectionReport
from chuk_ai_agent_engine.reflection.report import ReflectionReportGenerator

logger = logging.getLogger(__name__)


def reflection_filename(fmt: ReflectionFormat, when: datetime | None = None) -> str:
    """UTC ISO-8601 timestamp in milliseconds with ``:`` and ``.`` replaced by ``-``."""
    when = (when or datetime.now(UTC)).astimezone(UTC)
    stamp = when.strftime("%Y-%m-%dT%H-%M-%S-") + f"{when.microsecond // 1000:03d}Z"
    ext = "json" if fmt == ReflectionFormat.JSON else "md"
    return f"reflection-{stamp}.{ext}"


def save_reflection(
    report: ReflectionReport,
    output_path: Path | str,
    fmt: ReflectionFormat = ReflectionFormat.MARKDOWN,
    generator: ReflectionReportGenerator | None = None,
) -> Path:
    """Write ``report`` under ``output_path`` (created if missing) and return the file path."""
    directory = Path(output_path)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / reflection_filename(fmt)

    if fmt == ReflectionFormat.JSON:
        path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    else:
        path.write_text((generator or ReflectionReportGenerator()).format_markdown(report), encoding="utf-8")

    logger.info(f"Reflection saved to {path}")
    return path
