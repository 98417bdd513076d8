# core/operations/protocol.py
"""
Wire types for the drive service and the push-channel decoder.

Listing and delete responses are decoded into immutable records here so the
rest of the client never touches raw JSON. Push-channel payloads are decoded
exactly once into one of ProgressEvent / TerminalEvent / CloseSentinel /
DecodeFailure; TransportFailure is produced by the connector itself.
"""
import codecs, json, math
from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Any, List, Optional, Tuple, Union

from core.errors import DecodeError, RejectedError

CLOSE_SENTINEL = "close"


# ---------- listing ----------
@dataclass(frozen=True)
class DirectoryEntry:
	"""One listing row. `size` is in the service's own unit (bytes / 1280), not bytes."""
	name: str
	size: int
	is_dir: bool


def decode_entries(data: Any) -> List[DirectoryEntry]:
	if not isinstance(data, list):
		raise DecodeError(f"expected a list of entries, got {type(data).__name__}")
	out = []
	for i, row in enumerate(data):
		if not isinstance(row, dict):
			raise DecodeError(f"entry #{i} is not an object")
		name, size, is_dir = row.get("name"), row.get("size"), row.get("isDir")
		if not isinstance(name, str) or not name:
			raise DecodeError(f"entry #{i} has no name")
		# the service reports sizes as fractional units; bool is an int subclass, refuse it
		if isinstance(size, bool) or not isinstance(size, (int, float)) or size < 0:
			raise DecodeError(f"entry {name!r} has an invalid size: {size!r}")
		if not isinstance(is_dir, bool):
			raise DecodeError(f"entry {name!r} has an invalid isDir: {is_dir!r}")
		out.append(DirectoryEntry(name=name, size=int(size), is_dir=is_dir))
	return out


# ---------- operations ----------
class OperationKind(IntEnum):
	DELETE = 1


class OperationStatus(Enum):
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	SUCCEEDED = "succeeded"
	FAILED = "failed"

	@property
	def is_terminal(self) -> bool:
		return self in (OperationStatus.SUCCEEDED, OperationStatus.FAILED)


@dataclass(frozen=True)
class OperationHandle:
	kind: OperationKind
	operation_id: int
	target_path: str


@dataclass
class OperationState:
	id: int
	kind: OperationKind
	target_path: str
	progress: int = 0
	status: OperationStatus = OperationStatus.PENDING
	last_error: Optional[str] = None

	def copy(self) -> "OperationState":
		return replace(self)


def decode_handle(data: Any, target_path: str, default_kind: OperationKind = OperationKind.DELETE) -> OperationHandle:
	"""Turn a `{op, id}` response body into a handle; anything without an id is a refusal."""
	if not isinstance(data, dict):
		raise RejectedError(f"server did not start an operation for {target_path}: {data!r}")
	op_id = data.get("id")
	if isinstance(op_id, bool) or not isinstance(op_id, int):
		raise RejectedError(f"server response has no operation id for {target_path}")
	raw_kind = data.get("op", int(default_kind))
	try:
		kind = OperationKind(raw_kind)
	except ValueError:
		raise DecodeError(f"unknown operation kind: {raw_kind!r}")
	return OperationHandle(kind=kind, operation_id=op_id, target_path=target_path)


# ---------- stream events ----------
@dataclass(frozen=True)
class ProgressEvent:
	progress: int


@dataclass(frozen=True)
class TerminalEvent:
	ok: bool
	error: Optional[str] = None


@dataclass(frozen=True)
class CloseSentinel:
	pass


@dataclass(frozen=True)
class DecodeFailure:
	raw: str
	reason: str


@dataclass(frozen=True)
class TransportFailure:
	message: str


StreamEvent = Union[ProgressEvent, TerminalEvent, CloseSentinel, DecodeFailure, TransportFailure]


def decode_message(raw: str) -> StreamEvent:
	text = (raw or "").strip()
	if text == CLOSE_SENTINEL:
		return CloseSentinel()
	try:
		msg = json.loads(text)
	except ValueError as e:
		return DecodeFailure(raw=raw, reason=f"invalid JSON: {e}")

	if msg == CLOSE_SENTINEL:
		return CloseSentinel()
	if not isinstance(msg, dict):
		return DecodeFailure(raw=raw, reason=f"unexpected payload type {type(msg).__name__}")

	if isinstance(msg.get("ok"), bool):
		err = msg.get("error") or msg.get("message")
		return TerminalEvent(ok=msg["ok"], error=err if isinstance(err, str) else None)

	progress = msg.get("progress")
	if isinstance(progress, (int, float)) and not isinstance(progress, bool) and math.isfinite(progress):
		if not 0 <= progress <= 100:
			return DecodeFailure(raw=raw, reason=f"progress out of range: {progress!r}")
		return ProgressEvent(progress=int(progress))

	return DecodeFailure(raw=raw, reason="neither 'ok' nor numeric 'progress'")


class EventStreamParser:
	"""
	Incremental text/event-stream framer. Feed it raw bytes as they arrive and
	it returns an (event name, data) pair for every event completed by that
	chunk.
	"""
	def __init__(self):
		self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
		self._buf = ""
		self._data: List[str] = []
		self._event = ""
		self._started = False

	def feed(self, chunk: bytes) -> List[Tuple[str, str]]:
		text = self._decoder.decode(chunk)
		if not self._started and text:
			# a leading BOM is not part of the first field name
			self._started = True
			if text.startswith("\ufeff"):
				text = text[1:]
		self._buf += text
		out: List[Tuple[str, str]] = []
		while True:
			idx = self._next_line_end()
			if idx < 0:
				break
			line = self._buf[:idx]
			# CRLF is a single line break
			step = 2 if self._buf.startswith("\r\n", idx) else 1
			self._buf = self._buf[idx + step:]
			ev = self._line(line)
			if ev is not None:
				out.append(ev)
		return out

	def _next_line_end(self) -> int:
		cands = [i for i in (self._buf.find("\n"), self._buf.find("\r")) if i >= 0]
		if not cands:
			return -1
		idx = min(cands)
		# a trailing CR may be the first half of a CRLF still in flight
		if self._buf[idx] == "\r" and idx == len(self._buf) - 1:
			return -1
		return idx

	def _line(self, line: str) -> Optional[Tuple[str, str]]:
		if line == "":
			# blank line dispatches; events without data are dropped
			name = self._event or "message"
			data, self._data, self._event = self._data, [], ""
			return (name, "\n".join(data)) if data else None
		if line.startswith(":"):
			return None
		field, _, value = line.partition(":")
		if value.startswith(" "):
			value = value[1:]
		if field == "data":
			self._data.append(value)
		elif field == "event":
			self._event = value
		return None
