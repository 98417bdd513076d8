# core/operations/stream.py
from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from PyQt5.QtCore import QUrl
from PyQt5.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest

from core import config
from core.logutil import get_logger
from core.operations.protocol import (
	CloseSentinel, DecodeFailure, EventStreamParser, StreamEvent, TransportFailure, decode_message,
)

log = get_logger("operations.stream")

EventHandler = Callable[[StreamEvent], None]

_network: Optional[QNetworkAccessManager] = None


def _default_network() -> QNetworkAccessManager:
	# needs a Q(Core)Application, so build lazily
	global _network
	if _network is None:
		_network = QNetworkAccessManager()
	return _network


class ConnectorState(Enum):
	IDLE = "idle"
	CONNECTING = "connecting"
	OPEN = "open"
	CLOSED = "closed"


class OperationStreamConnector:
	"""
	One server-push channel (GET /_api/operations/{id}, text/event-stream) for a
	single operation. Every decoded payload is handed to the one registered
	handler. The connector never retries: a channel error is reported as a
	TransportFailure and the connector closes itself for good.
	"""

	def __init__(self, base_url: str, network: Optional[QNetworkAccessManager] = None):
		self.base_url = (base_url or "").rstrip("/")
		self._network = network
		self._reply: Optional[QNetworkReply] = None
		self._handler: Optional[EventHandler] = None
		self._parser = EventStreamParser()
		self.operation_id: Optional[int] = None
		self.state = ConnectorState.IDLE

	# ---------- public ----------
	@property
	def is_closed(self) -> bool:
		return self.state is ConnectorState.CLOSED

	def on_event(self, handler: EventHandler):
		self._handler = handler

	def connect(self, operation_id: int) -> "OperationStreamConnector":
		if self.state is not ConnectorState.IDLE:
			raise RuntimeError(f"connector is {self.state.value}; a new connector is needed")
		self.operation_id = int(operation_id)
		url = f"{self.base_url}{config.API_PREFIX}/operations/{self.operation_id}"
		req = QNetworkRequest(QUrl(url))
		req.setRawHeader(b"Accept", b"text/event-stream")
		req.setRawHeader(b"Cache-Control", b"no-cache")

		self._set_state(ConnectorState.CONNECTING)
		reply = (self._network or _default_network()).get(req)
		self._reply = reply
		reply.metaDataChanged.connect(self._on_meta)
		reply.readyRead.connect(self._on_ready_read)
		reply.finished.connect(self._on_finished)
		# PyQt5 >= 5.15 has errorOccurred; older builds overload .error
		if hasattr(reply, "errorOccurred"):
			reply.errorOccurred.connect(self._on_error)
		else:
			reply.error.connect(self._on_error)
		log.debug("op %s: connecting to %s", self.operation_id, url)
		return self

	def close(self):
		if self.state is ConnectorState.CLOSED:
			return
		log.debug("op %s: closing channel", self.operation_id)
		self._shutdown()

	# ---------- internals ----------
	def _set_state(self, state: ConnectorState):
		if state is not self.state:
			log.debug("op %s: %s -> %s", self.operation_id, self.state.value, state.value)
			self.state = state

	def _shutdown(self):
		self._set_state(ConnectorState.CLOSED)
		reply, self._reply = self._reply, None
		if reply is not None:
			# abort() re-enters our slots synchronously; the CLOSED guard drops those calls
			reply.abort()
			reply.deleteLater()

	def _deliver(self, event: StreamEvent):
		if self._handler is None:
			log.debug("op %s: no handler for %r", self.operation_id, event)
			return
		try:
			self._handler(event)
		except Exception:
			# an exception escaping a Qt slot aborts the process
			log.exception("op %s: event handler failed", self.operation_id)

	def _fail(self, message: str):
		log.warning("op %s: channel failed: %s", self.operation_id, message)
		self._shutdown()
		self._deliver(TransportFailure(message))

	# ---------- reply slots ----------
	def _on_meta(self):
		if self.state is ConnectorState.CLOSED or self._reply is None:
			return
		status = self._reply.attribute(QNetworkRequest.HttpStatusCodeAttribute)
		if status is not None and not 200 <= int(status) < 300:
			self._fail(f"HTTP {int(status)}")
			return
		self._set_state(ConnectorState.OPEN)

	def _on_ready_read(self):
		if self.state is ConnectorState.CLOSED or self._reply is None:
			return
		self._set_state(ConnectorState.OPEN)
		chunk = bytes(self._reply.readAll())
		for name, payload in self._parser.feed(chunk):
			self._dispatch(name, payload)
			if self.state is ConnectorState.CLOSED:
				break

	def _dispatch(self, name: str, payload: str):
		event = decode_message(payload)
		if isinstance(event, DecodeFailure):
			log.warning("op %s: undecodable %s event %r (%s)", self.operation_id, name, payload, event.reason)
		elif isinstance(event, CloseSentinel):
			log.debug("op %s: server sent close", self.operation_id)
			self._shutdown()
		self._deliver(event)

	def _on_error(self, *_):
		if self.state is ConnectorState.CLOSED or self._reply is None:
			return
		self._fail(self._reply.errorString() or "network error")

	def _on_finished(self):
		if self.state is ConnectorState.CLOSED:
			return
		self._fail("stream ended before the operation finished")
