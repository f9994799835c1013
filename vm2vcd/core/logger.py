# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import datetime as _dt
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from termcolor import colored as _colored

# ---------------------------------------------------------------------------
# TRACE level (additive)
# ---------------------------------------------------------------------------

TRACE = 5
if not hasattr(logging, "TRACE"):
    logging.TRACE = TRACE  # type: ignore[attr-defined]
    logging.addLevelName(TRACE, "TRACE")


def _logger_trace(self: logging.Logger, msg: str, *args, **kwargs) -> None:
    if self.isEnabledFor(TRACE):
        self._log(TRACE, msg, args, **kwargs)


if not hasattr(logging.Logger, "trace"):
    logging.Logger.trace = _logger_trace  # type: ignore[attr-defined]

_LEVEL_EMOJI = {
    "TRACE": "🧬",
    "DEBUG": "🔍",
    "INFO": "✅",
    "WARNING": "⚠️",
    "ERROR": "💥",
    "CRITICAL": "🧨",
}
_LEVEL_COLOR = {
    "TRACE": "cyan",
    "DEBUG": "blue",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red",
}


def is_tty(stream=None) -> bool:
    """Check if the stream (stdout by default) is a TTY."""
    if stream is None:
        stream = sys.stdout
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _supports_unicode() -> bool:
    """
    Best-effort check: if the stream encoding can't handle emoji, degrade gracefully.
    """
    enc = getattr(sys.stderr, "encoding", None) or "utf-8"
    try:
        "✅".encode(enc)
        return True
    except (UnicodeEncodeError, LookupError):
        return False


def c(
    text: str,
    color: Optional[str] = None,
    attrs: Optional[List[str]] = None,
    *,
    enable: bool = True,
) -> str:
    """Colorize text with termcolor when enabled."""
    if not enable or not color:
        return text
    return _colored(text, color=color, attrs=attrs or [])


# ---------------------------------------------------------------------------
# Context helpers
# ---------------------------------------------------------------------------

Ctx = Mapping[str, Any]

# Bound per request by the orchestrator; shown as the line prefix.
VM_KEY = "vm"


def _safe_str(v: Any, *, max_len: int = 240) -> str:
    s = str(v)
    s = s.replace("\n", "\\n").replace("\r", "\\r")
    if len(s) > max_len:
        s = s[: max_len - 1] + "…"
    return s


def _merge_ctx(base: Optional[Ctx], extra: Optional[Ctx]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if base:
        out.update(dict(base))
    if extra:
        out.update(dict(extra))
    return out


def _format_ctx_kv(ctx: Optional[Ctx]) -> str:
    if not ctx:
        return ""
    items = sorted(ctx.items(), key=lambda kv: str(kv[0]))
    parts = [f"{_safe_str(k, max_len=80)}={_safe_str(v)}" for k, v in items]
    return " " + " ".join(parts) if parts else ""


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that carries a persistent context dict.
    Call sites can also pass `extra={"ctx": {...}}` which merges on top.

    Usage:
      log = Log.bind(logger, vm="web01", stage="placement")
      log.info("Starting")
      log.error("Failed", extra={"ctx": {"host": "esx03"}})
    """

    def __init__(self, logger: logging.Logger, ctx: Optional[Ctx] = None):
        super().__init__(logger, extra={"ctx": dict(ctx or {})})

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:
        extra = kwargs.get("extra") or {}
        merged = _merge_ctx(self.extra.get("ctx"), extra.get("ctx"))
        extra["ctx"] = merged
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **ctx: Any) -> "ContextLoggerAdapter":
        return ContextLoggerAdapter(self.logger, _merge_ctx(self.extra.get("ctx"), ctx))

    def trace(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(TRACE):
            msg, kwargs = self.process(msg, kwargs)
            self.logger.log(TRACE, msg, *args, **kwargs)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------

def _split_vm(ctx: Optional[Ctx]) -> Tuple[str, Dict[str, Any]]:
    """Pull the per-VM key out of a record's context; it leads the line."""
    rest = dict(ctx or {})
    return _safe_str(rest.pop(VM_KEY, "") or "", max_len=80), rest


class EmojiFormatter(logging.Formatter):
    """
    Console/file lines:

      14:02:11 ✅ INFO     [web01 1/12] Relocation task task-42 completed polls=3

    detail=True (file handler, -vvv) adds milliseconds and module:line.
    """

    def __init__(self, *, color: bool = True, detail: bool = False, unicode: bool = True):
        super().__init__()
        self._color = color
        self._detail = detail
        self._unicode = unicode

    def format(self, record: logging.LogRecord) -> str:
        now = _dt.datetime.fromtimestamp(record.created)
        ts = now.strftime("%H:%M:%S.%f")[:-3] if self._detail else now.strftime("%H:%M:%S")
        emoji = _LEVEL_EMOJI.get(record.levelname, "•") if self._unicode else "·"
        color_ok = bool(self._color and is_tty(sys.stderr))

        colour = _LEVEL_COLOR.get(record.levelname)
        lvl = c(f"{record.levelname:<8}", colour, enable=color_ok)
        msg = record.getMessage()
        if record.levelno >= logging.WARNING:
            msg = c(msg, colour, attrs=["bold"], enable=color_ok)

        vm, ctx = _split_vm(getattr(record, "ctx", None))
        item = ctx.pop("item", "")
        where = f" [{vm}{' ' + str(item) if item else ''}]" if vm else ""
        src = f" ({record.module}:{record.lineno})" if self._detail else ""

        line = f"{ts} {emoji} {lvl}{where} {msg}{_format_ctx_kv(ctx)}{src}"
        if record.exc_info:
            tb = "\n".join("  " + ln for ln in self.formatException(record.exc_info).splitlines())
            line += "\n" + c(tb, "red", enable=color_ok)
        return line


class JsonFormatter(logging.Formatter):
    """NDJSON, one object per line; `vm` is a top-level field so runs can be filtered per VM."""

    def format(self, record: logging.LogRecord) -> str:
        vm, ctx = _split_vm(getattr(record, "ctx", None))
        obj: Dict[str, Any] = {
            "ts": _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "lineno": record.lineno,
        }
        if vm:
            obj["vm"] = vm
        if ctx:
            obj["ctx"] = {str(k): _safe_str(v) for k, v in ctx.items()}
        if record.exc_info:
            et = record.exc_info[0]
            obj["exc_type"] = et.__name__ if et else "Exception"
            obj["traceback"] = self.formatException(record.exc_info)
        return json.dumps(obj, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class Log:
    @staticmethod
    def _level_from_flags(verbose: int, quiet: int) -> int:
        """
        -qq ERROR, -q WARNING, default INFO, -vv DEBUG, -vvv TRACE.
        Quiet wins over verbose if both are set.
        """
        if quiet >= 2:
            return logging.ERROR
        if quiet == 1:
            return logging.WARNING
        if verbose >= 3:
            return TRACE
        if verbose >= 2:
            return logging.DEBUG
        return logging.INFO

    @staticmethod
    def bind(logger: logging.Logger, **ctx: Any) -> ContextLoggerAdapter:
        """Return a LoggerAdapter that carries a persistent context dict."""
        if isinstance(logger, ContextLoggerAdapter):
            return logger.bind(**ctx)
        return ContextLoggerAdapter(logger, ctx)

    @staticmethod
    def banner(logger: logging.Logger, title: str, *, char: str = "─") -> None:
        width = 72
        t = f" {title.strip()} "
        pad = char * max(8, (width - len(t)) // 2)
        logger.info((pad + t + pad)[:width])

    @staticmethod
    def step(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("➡️  %s", msg, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def ok(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("✅ %s", msg, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def warn(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.warning("⚠️  %s", msg, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def fail(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.error("💥 %s", msg, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def trace(logger: logging.Logger, msg: str, *args: Any, **ctx: Any) -> None:
        if ctx:
            logger.trace(msg, *args, extra={"ctx": ctx})  # type: ignore[attr-defined]
        else:
            logger.trace(msg, *args)  # type: ignore[attr-defined]

    @staticmethod
    def setup(
        verbose: int = 0,
        log_file: Optional[str] = None,
        *,
        quiet: int = 0,
        json_logs: bool = False,
    ) -> logging.Logger:
        """
        Configure and return the `vm2vcd` logger.

        stderr gets emoji lines (or NDJSON with json_logs). log_file always
        records at full detail in the same format family, without colour.
        """
        logger = logging.getLogger("vm2vcd")
        logger.propagate = False

        level = Log._level_from_flags(verbose, quiet)
        logger.setLevel(level)

        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()

        unicode = _supports_unicode()
        sh = logging.StreamHandler(stream=sys.stderr)
        sh.setLevel(level)
        sh.setFormatter(JsonFormatter() if json_logs else EmojiFormatter(detail=verbose >= 3, unicode=unicode))
        logger.addHandler(sh)

        if log_file:
            fp = Path(log_file).expanduser().resolve()
            fp.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(fp, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(JsonFormatter() if json_logs else EmojiFormatter(color=False, detail=True, unicode=unicode))
            logger.addHandler(fh)

        logger.debug("Logger initialized (level=%s)", logging.getLevelName(level))
        logger.trace("TRACE enabled (verbose >= 3)")  # type: ignore[attr-defined]
        return logger
