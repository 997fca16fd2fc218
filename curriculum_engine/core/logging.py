import logging
import logging.handlers
import sys
import time
import traceback
from pathlib import Path

from curriculum_engine.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_DIR = Path(__file__).resolve().parents[2] / "logs"
ROUTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")

_active_log_path: Path | None = None


class TruncatedFormatter(logging.Formatter):
  """Console formatter that keeps only the exception header and innermost frames."""

  def __init__(self, *args: object, tail_lines: int = 5, **kwargs: object) -> None:
    super().__init__(*args, **kwargs)  # type: ignore[arg-type]
    self._tail_lines = tail_lines

  def formatException(self, ei) -> str:  # noqa: N802
    lines = traceback.format_exception(*ei)
    if len(lines) <= self._tail_lines + 1:
      return "".join(lines)
    return "".join([lines[0], "    ...\n", *lines[-self._tail_lines :]])


def _rotated_name(default_name: str) -> str:
  """Rotate to ``worker.log-1`` rather than ``worker.log.1``."""
  stem, _, suffix = default_name.rpartition(".")
  return f"{stem}-{suffix}" if stem and suffix.isdigit() else default_name


def _file_handler(settings: Settings) -> tuple[logging.Handler, Path]:
  try:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_path = LOG_DIR / f"curriculum_engine_{time.strftime('%Y%m%d_%H%M%S')}.log"
    log_path.touch(exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Cannot prepare log file under {LOG_DIR}: {exc}") from exc
  handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)
  handler.namer = _rotated_name
  handler.setFormatter(logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  return handler, log_path


def configure_logging(settings: Settings) -> Path:
  """Route root and server loggers to stdout plus a rotating file; safe to call repeatedly."""
  global _active_log_path
  if _active_log_path is not None:
    return _active_log_path

  console = logging.StreamHandler(sys.stdout)
  console.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  file_handler, log_path = _file_handler(settings)
  handlers: list[logging.Handler] = [console, file_handler]

  logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO, handlers=handlers, force=True)
  for name in ROUTED_LOGGERS:
    server_logger = logging.getLogger(name)
    server_logger.handlers = list(handlers)
    server_logger.propagate = False
  # SQL echo only in debug.
  logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.debug else logging.WARNING)

  _active_log_path = log_path
  logging.getLogger(__name__).info("Logging initialized. Writing to %s", log_path)
  return log_path
