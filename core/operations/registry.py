# core/operations/registry.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from PyQt5.QtCore import QObject, pyqtSignal
from PyQt5.QtNetwork import QNetworkAccessManager

from core import config
from core.logutil import get_logger
from core.operations.protocol import (
	CloseSentinel, DecodeFailure, OperationHandle, OperationState, OperationStatus,
	ProgressEvent, StreamEvent, TerminalEvent, TransportFailure,
)
from core.operations.stream import OperationStreamConnector

log = get_logger("operations.registry")


@dataclass
class _Entry:
	handle: OperationHandle
	state: OperationState
	connector: Optional[OperationStreamConnector] = None
	retries: int = 0


class OperationRegistry(QObject):
	"""
	Live table of tracked operations, keyed by operation id.

	The registry is the only writer of OperationState and the only owner of
	stream connectors: one connector per id, created by register() and closed
	on a terminal event or cancel(). Consumers read copies via snapshot() and
	re-render on `changed`.

	A terminal entry stays in the table until the first snapshot() that
	returns it, so the terminal status is always rendered once.
	"""
	changed = pyqtSignal()
	finished = pyqtSignal(object)  # OperationState (terminal)

	def __init__(self, base_url: str | None = None, *,
				 connector_factory: Callable[[], OperationStreamConnector] | None = None,
				 network: QNetworkAccessManager | None = None,
				 accept_regressions: bool = True,
				 max_retries: int | None = None,
				 parent: QObject | None = None):
		super().__init__(parent)
		self.base_url = config.normalize_base_url(base_url or config.BASE_URL)
		self._network = network
		self._factory = connector_factory or self._default_connector
		self.accept_regressions = accept_regressions
		self.max_retries = config.STREAM_RETRIES if max_retries is None else int(max_retries)
		self._entries: Dict[int, _Entry] = {}  # insertion ordered

	def _default_connector(self) -> OperationStreamConnector:
		return OperationStreamConnector(self.base_url, self._network)

	# ---------- public ----------
	def register(self, handle: OperationHandle):
		oid = handle.operation_id
		if oid in self._entries:
			log.debug("op %s already tracked; ignoring duplicate register", oid)
			return
		state = OperationState(id=oid, kind=handle.kind, target_path=handle.target_path)
		entry = _Entry(handle=handle, state=state)
		self._entries[oid] = entry
		log.info("tracking %s of %s as op %s", handle.kind.name.lower(), handle.target_path, oid)
		self._attach(entry)
		self.changed.emit()

	def snapshot(self) -> List[OperationState]:
		out = [e.state.copy() for e in self._entries.values()]
		for st in out:
			if st.status.is_terminal:
				# observed once; drop it from the live set
				self._entries.pop(st.id, None)
		return out

	def cancel(self, operation_id: int):
		entry = self._entries.pop(operation_id, None)
		if entry is None:
			return
		if entry.connector is not None:
			entry.connector.close()
		log.info("op %s cancelled (status=%s)", operation_id, entry.state.status.value)
		self.changed.emit()

	def close_all(self):
		for oid in list(self._entries):
			self.cancel(oid)

	def get(self, operation_id: int) -> Optional[OperationState]:
		entry = self._entries.get(operation_id)
		return entry.state.copy() if entry else None

	def __contains__(self, operation_id) -> bool:
		return operation_id in self._entries

	def __len__(self) -> int:
		return len(self._entries)

	# ---------- internals ----------
	def _attach(self, entry: _Entry):
		oid = entry.handle.operation_id
		connector = self._factory()
		entry.connector = connector
		connector.on_event(lambda ev, c=connector: self._on_event(oid, c, ev))
		connector.connect(oid)

	def _on_event(self, oid: int, connector: OperationStreamConnector, ev: StreamEvent):
		entry = self._entries.get(oid)
		if entry is None or entry.connector is not connector:
			log.debug("op %s: dropping event from a stale connector: %r", oid, ev)
			return
		st = entry.state
		if st.status.is_terminal:
			return

		if isinstance(ev, ProgressEvent):
			if not self.accept_regressions and st.status is OperationStatus.IN_PROGRESS and ev.progress < st.progress:
				log.debug("op %s: ignoring progress %s < %s", oid, ev.progress, st.progress)
				return
			st.status = OperationStatus.IN_PROGRESS
			st.progress = ev.progress
			self.changed.emit()

		elif isinstance(ev, TerminalEvent):
			if ev.ok:
				st.status = OperationStatus.SUCCEEDED
				st.progress = 100
				st.last_error = None
			else:
				st.status = OperationStatus.FAILED
				st.last_error = ev.error or "operation failed"
			self._finish(entry)

		elif isinstance(ev, TransportFailure):
			if entry.retries < self.max_retries:
				entry.retries += 1
				log.info("op %s: reconnecting (%s/%s) after: %s", oid, entry.retries, self.max_retries, ev.message)
				self._attach(entry)
				return
			st.status = OperationStatus.FAILED
			st.last_error = ev.message
			self._finish(entry)

		elif isinstance(ev, CloseSentinel):
			log.debug("op %s: channel closed by server (status=%s)", oid, st.status.value)

		elif isinstance(ev, DecodeFailure):
			pass  # already logged by the connector; state is untouched

	def _finish(self, entry: _Entry):
		if entry.connector is not None:
			entry.connector.close()
		st = entry.state
		if st.status is OperationStatus.SUCCEEDED:
			log.info("op %s: %s finished", st.id, st.target_path)
		else:
			log.warning("op %s: %s failed: %s", st.id, st.target_path, st.last_error)
		self.changed.emit()
		self.finished.emit(st.copy())
