# gui/request_worker.py
from __future__ import annotations

from typing import Any, Callable

from PyQt5.QtCore import QObject, QRunnable, QThreadPool, pyqtSignal

from core.errors import DriveError
from core.logutil import get_logger

log = get_logger("gui.worker")


class RequestSignals(QObject):
	done = pyqtSignal(object)
	failed = pyqtSignal(object)   # DriveError


class RequestWorker(QRunnable):
	"""Runs one blocking API call on the pool and reports back through queued signals."""
	def __init__(self, fn: Callable[[], Any], signals: RequestSignals):
		super().__init__()
		self._fn = fn
		self._signals = signals

	def run(self):
		try:
			result = self._fn()
		except DriveError as e:
			self._signals.failed.emit(e)
			return
		except Exception as e:
			log.exception("request worker crashed")
			self._signals.failed.emit(DriveError(str(e)))
			return
		self._signals.done.emit(result)


class PoolExecutor:
	"""submit(fn, on_done, on_failed): callbacks run on the thread that owns the executor."""
	def __init__(self, pool: QThreadPool | None = None):
		self._pool = pool or QThreadPool.globalInstance()
		self._inflight: set[RequestSignals] = set()

	def submit(self, fn: Callable[[], Any], on_done: Callable[[Any], None], on_failed: Callable[[DriveError], None]):
		signals = RequestSignals()
		self._inflight.add(signals)

		def _finish(cb, value):
			self._inflight.discard(signals)
			cb(value)

		signals.done.connect(lambda v: _finish(on_done, v))
		signals.failed.connect(lambda e: _finish(on_failed, e))
		self._pool.start(RequestWorker(fn, signals))
