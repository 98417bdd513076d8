import json
import os
from unittest.mock import Mock

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt5.QtCore import QObject, pyqtSignal
from PyQt5.QtNetwork import QNetworkReply

from core.errors import DriveError
from core.operations.stream import ConnectorState


class InlineExecutor:
    """Runs submitted calls immediately so widget tests stay deterministic."""

    def submit(self, fn, on_done, on_failed):
        try:
            result = fn()
        except DriveError as e:
            on_failed(e)
            return
        on_done(result)


class FakeConnector:
    """Stands in for OperationStreamConnector in registry tests."""

    def __init__(self):
        self.handler = None
        self.operation_id = None
        self.connect_calls = 0
        self.close_calls = 0
        self.state = ConnectorState.IDLE

    @property
    def is_closed(self):
        return self.state is ConnectorState.CLOSED

    def on_event(self, handler):
        self.handler = handler

    def connect(self, operation_id):
        self.connect_calls += 1
        self.operation_id = operation_id
        self.state = ConnectorState.OPEN
        return self

    def close(self):
        self.close_calls += 1
        self.state = ConnectorState.CLOSED

    def push(self, event):
        self.handler(event)


class ConnectorFactory:
    def __init__(self):
        self.created = []

    def __call__(self):
        c = FakeConnector()
        self.created.append(c)
        return c

    @property
    def live(self):
        return [c for c in self.created if not c.is_closed]


class FakeReply(QObject):
    """Mimics the QNetworkReply signals and calls the stream connector uses."""

    metaDataChanged = pyqtSignal()
    readyRead = pyqtSignal()
    finished = pyqtSignal()
    errorOccurred = pyqtSignal(int)

    def __init__(self, request):
        super().__init__()
        self.request = request
        self.status = 200
        self.aborted = False
        self._pending = b""
        self._error = ""

    def attribute(self, _attr):
        return self.status

    def readAll(self):
        data, self._pending = self._pending, b""
        return data

    def errorString(self):
        return self._error

    def abort(self):
        self.aborted = True
        self._error = "Operation canceled"
        self.errorOccurred.emit(QNetworkReply.OperationCanceledError)
        self.finished.emit()

    # ---- test drivers ----
    def respond(self, status=200):
        self.status = status
        self.metaDataChanged.emit()

    def push(self, data):
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._pending += data
        self.readyRead.emit()

    def send(self, payload):
        text = payload if isinstance(payload, str) else json.dumps(payload)
        self.push(f"data: {text}\n\n")

    def fail(self, message="Connection refused"):
        self._error = message
        self.errorOccurred.emit(QNetworkReply.ConnectionRefusedError)
        self.finished.emit()

    def end(self):
        self.finished.emit()


class FakeNetwork:
    def __init__(self):
        self.replies = []

    def get(self, request):
        reply = FakeReply(request)
        self.replies.append(reply)
        return reply

    @property
    def last(self):
        return self.replies[-1]


def fake_response(status=200, body=None, text=None):
    r = Mock()
    r.status_code = status
    r.ok = 200 <= status < 400
    if text is None:
        text = json.dumps(body) if body is not None else ""
    r.text = text

    def _json():
        return json.loads(text)

    r.json.side_effect = _json
    return r


@pytest.fixture
def connectors():
    return ConnectorFactory()


@pytest.fixture
def network(qapp):
    return FakeNetwork()


@pytest.fixture
def executor():
    return InlineExecutor()


@pytest.fixture
def make_response():
    return fake_response
