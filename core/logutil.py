# core/logutil.py
import logging, os, time
from logging.handlers import RotatingFileHandler

from colorama import Fore, Style

from core import config

_LOGGER_NAME = "gitdrive"  # package logger all children inherit from
_initialized = False

_LEVEL_COLORS = {
	"DEBUG": Fore.CYAN,
	"INFO": Fore.GREEN,
	"WARNING": Fore.YELLOW,
	"ERROR": Fore.RED,
	"CRITICAL": Style.BRIGHT + Fore.RED,
}


class ConsoleFormatter(logging.Formatter):
	"""Short timestamp, coloured level, logger name."""
	def format(self, record: logging.LogRecord) -> str:
		ts = time.strftime("%H:%M:%S", time.localtime(record.created))
		color = _LEVEL_COLORS.get(record.levelname, "")
		lvl = f"{color}{record.levelname.ljust(7)}{Style.RESET_ALL}"
		line = f"{ts} {lvl} [{record.name}] {record.getMessage()}"
		if record.exc_info:
			line += "\n" + self.formatException(record.exc_info)
		return line


def setup_once(level: str | None = None, log_path: str | None = None):
	global _initialized
	if _initialized:
		return
	logger = logging.getLogger(_LOGGER_NAME)
	logger.setLevel(logging.DEBUG)

	ch = logging.StreamHandler()
	ch.setLevel(level or config.LOG_LEVEL)
	ch.setFormatter(ConsoleFormatter())
	logger.addHandler(ch)

	log_path = log_path or config.LOG_PATH
	try:
		os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
		fh = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
	except OSError:
		fh = None
	if fh is not None:
		fh.setLevel(logging.DEBUG)
		fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
		logger.addHandler(fh)

	logger.propagate = False   # stop at package boundary (prevents double logging via root)
	logger.debug("logger initialized (file=%s)", log_path if fh else None)
	_initialized = True


def get_logger(name: str | None = None) -> logging.Logger:
	"""Return the shared package logger or a child logger."""
	base = logging.getLogger(_LOGGER_NAME)
	return base if not name else logging.getLogger(f"{_LOGGER_NAME}.{name}")
