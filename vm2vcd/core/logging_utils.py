# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""
Shared logging utilities for vm2vcd.

Provides common logging helpers to avoid duplication across modules.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Generator, Optional, Union

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


def safe_logger(logger: Optional[LoggerLike], default_name: str = "vm2vcd") -> LoggerLike:
    """
    Return the given logger, or the project logger when none was passed.

    Components accept an optional logger so they can be built in tests
    without wiring the CLI logging setup.
    """
    if isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        return logger
    return logging.getLogger(default_name)


def emoji_for_level(level: int) -> str:
    if level >= logging.ERROR:
        return "❌"
    if level >= logging.WARNING:
        return "⚠️"
    if level >= logging.INFO:
        return "✅"
    return "🔍"


def log_with_emoji(logger: LoggerLike, level: int, msg: str, *args: Any) -> None:
    logger.log(level, f"{emoji_for_level(level)} {msg}", *args)


@contextmanager
def log_step(logger: LoggerLike, description: str) -> Generator[None, None, None]:
    """
    Context manager for logging and timing operation steps.

    Logs the start of an operation, executes the block, then logs
    completion with elapsed time. Logs error and re-raises on exception.

    Example:
        with log_step(logger, "Relocating web01"):
            executor.run(...)
    """
    t0 = time.time()
    log_with_emoji(logger, logging.INFO, "%s ...", description)
    try:
        yield
        log_with_emoji(logger, logging.INFO, "%s done (%.2fs)", description, time.time() - t0)
    except Exception as e:
        log_with_emoji(logger, logging.ERROR, "%s failed (%.2fs): %s", description, time.time() - t0, e)
        raise
