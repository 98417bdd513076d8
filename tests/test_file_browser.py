from unittest.mock import Mock

import pytest

from core.errors import RejectedError, TransportError
from core.operations.protocol import (
    DirectoryEntry, OperationHandle, OperationKind, OperationStatus, ProgressEvent, TerminalEvent,
)
from core.operations.registry import OperationRegistry
from gui.api_client import APIClient
from gui.file_browser import FileBrowser, NameItem, OperationRow, fmt_size

ROOT = [
    DirectoryEntry("a.txt", 10, False),
    DirectoryEntry("docs", 0, True),
]


@pytest.fixture
def api():
    api = Mock(spec=APIClient)
    api.list_dir.return_value = list(ROOT)
    api.request_delete.return_value = OperationHandle(OperationKind.DELETE, 42, "/a.txt")
    return api


@pytest.fixture
def registry(qapp, connectors):
    return OperationRegistry("http://drive.local", connector_factory=connectors)


@pytest.fixture
def browser(qtbot, api, registry, executor):
    w = FileBrowser(api, registry, executor=executor, confirm_deletes=False)
    qtbot.addWidget(w)
    w.navigate("/")
    return w


def _row_of(browser, name):
    for r in range(browser.table.rowCount()):
        if browser.table.item(r, 0).text() == name:
            return r
    raise AssertionError(name)


def _rows(browser):
    lay = browser.ops_layout
    return [lay.itemAt(i).widget() for i in range(lay.count()) if isinstance(lay.itemAt(i).widget(), OperationRow)]


def test_fmt_size_has_no_byte_suffix():
    assert fmt_size(10) == "10"
    assert fmt_size(1536) == "1,536"
    assert fmt_size(None) == "0"


def test_listing_fills_table_dirs_first(browser, api):
    api.list_dir.assert_called_once_with("/")
    assert browser.path == "/"
    assert browser.table.rowCount() == 2
    first = browser.table.item(0, 0)
    assert isinstance(first, NameItem) and first.is_dir and first.text() == "docs"
    assert browser.crumb_labels() == ["Home"]
    assert browser.error.isHidden()


def test_double_click_directory_navigates(browser, api):
    api.list_dir.return_value = [DirectoryEntry("x.bin", 2048, False)]
    browser._cell_dbl(_row_of(browser, "docs"), 0)

    api.list_dir.assert_called_with("/docs")
    assert browser.path == "/docs"
    assert browser.crumb_labels() == ["Home", "docs"]
    assert browser.table.item(0, 1).text() == "2,048"


def test_double_click_file_does_nothing(browser, api):
    browser._cell_dbl(_row_of(browser, "a.txt"), 0)
    assert api.list_dir.call_count == 1


def test_up_goes_to_parent(browser, api):
    browser.navigate("/docs/notes")
    browser.up()
    api.list_dir.assert_called_with("/docs")
    assert browser.path == "/docs"


def test_listing_failure_shows_error(browser, api):
    api.list_dir.side_effect = TransportError("Failed to get directory listing for /x: boom")
    browser.navigate("/x")

    assert not browser.error.isHidden()
    assert "boom" in browser.error.text()
    assert browser.path == "/"


def test_stale_listing_is_dropped(browser):
    browser._pending_path = "/new"
    browser._on_list("/old", [DirectoryEntry("stale", 1, False)])
    assert browser.path == "/"
    assert browser.table.rowCount() == 2


def test_delete_registers_handle_and_renders_row(browser, api, registry, connectors):
    browser.delete_path("/a.txt")

    api.request_delete.assert_called_once_with("/a.txt")
    assert 42 in registry
    assert len(connectors.created) == 1
    [row] = _rows(browser)
    assert row.lbl.text() == "[42 - a.txt - delete]"
    assert row.bar.value() == 0


def test_delete_selection_uses_current_directory(browser, api):
    browser.table.selectRow(_row_of(browser, "a.txt"))
    browser._delete_selection()
    api.request_delete.assert_called_once_with("/a.txt")


def test_rejected_delete_creates_no_entry(browser, api, registry, connectors):
    api.request_delete.side_effect = RejectedError("permission denied", body="permission denied")
    browser.delete_path("/a.txt")

    assert len(registry) == 0
    assert connectors.created == []
    assert browser.error.text() == "permission denied"


def test_progress_is_rendered_from_snapshot(browser, connectors):
    browser.delete_path("/a.txt")
    connectors.created[0].push(ProgressEvent(50))

    assert browser.operations[0].progress == 50
    [row] = _rows(browser)
    assert row.bar.value() == 50
    assert row.status.text() == "50%"


def test_success_renders_terminal_then_refreshes_listing(browser, api, registry, connectors):
    browser.delete_path("/a.txt")
    api.list_dir.return_value = [DirectoryEntry("docs", 0, True)]
    connectors.created[0].push(TerminalEvent(ok=True))

    [st] = browser.operations
    assert (st.status, st.progress) == (OperationStatus.SUCCEEDED, 100)
    assert 42 not in registry
    assert api.list_dir.call_count == 2
    assert browser.table.rowCount() == 1


def test_dismiss_cancels_tracking(browser, registry, connectors):
    browser.delete_path("/a.txt")
    browser.dismiss(42)

    assert 42 not in registry
    assert connectors.created[0].is_closed
    assert _rows(browser) == []


def test_dismiss_terminal_row(browser, connectors):
    browser.delete_path("/a.txt")
    connectors.created[0].push(TerminalEvent(ok=False, error="locked"))
    [row] = _rows(browser)
    assert row.status.text() == "failed: locked"

    browser.dismiss(42)
    assert browser.operations == []
