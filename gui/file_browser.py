# gui/file_browser.py
from __future__ import annotations

from PyQt5.QtWidgets import (
	QWidget, QTableWidget, QTableWidgetItem, QPushButton, QLabel, QHBoxLayout, QVBoxLayout,
	QMessageBox, QHeaderView, QToolButton, QApplication, QStyle, QProgressBar, QMenu, QFrame,
)
from PyQt5.QtCore import Qt
from PyQt5.QtGui import QIcon

from core import paths
from core.errors import DriveError
from core.logutil import get_logger
from core.operations.protocol import DirectoryEntry, OperationHandle, OperationState, OperationStatus
from core.operations.registry import OperationRegistry
from gui.api_client import APIClient
from gui.request_worker import PoolExecutor

log = get_logger("gui.file_browser")


############################################################################
# SECTION [ITEM MODELS]: Table item classes                                #
# NameItem sorts directories first, SizeItem sorts by the raw size value.  #
############################################################################


class NameItem(QTableWidgetItem):
	def __init__(self, text: str, is_dir: bool, icon: QIcon = None):
		super().__init__(text); self.is_dir = bool(is_dir)
		if icon: self.setIcon(icon)
	def __lt__(self, other):
		if isinstance(other, NameItem):
			if self.is_dir != other.is_dir:
				return self.is_dir and not other.is_dir
			return self.text().lower() < other.text().lower()
		return super().__lt__(other)


class SizeItem(QTableWidgetItem):
	def __init__(self, size_display: str, raw_size: int | None):
		super().__init__(size_display); self.raw_size = int(raw_size or 0)
		self.setTextAlignment(Qt.AlignRight | Qt.AlignVCenter)
	def __lt__(self, other):
		if isinstance(other, SizeItem): return self.raw_size < other.raw_size
		return super().__lt__(other)


def fmt_size(n: int | None) -> str:
	"""Sizes arrive in the service's own unit, not bytes, so no byte suffix is shown."""
	return f"{int(n or 0):,}"


def operation_label(st: OperationState) -> str:
	return f"[{st.id} - {paths.basename(st.target_path)} - {st.kind.name.lower()}]"


############################################################################
# SECTION [WIDGET]: OperationRow, one progress indicator per operation     #
############################################################################


class OperationRow(QFrame):
	def __init__(self, st: OperationState, on_dismiss, parent: QWidget = None):
		super().__init__(parent)
		self.operation_id = st.id
		lay = QHBoxLayout(self); lay.setContentsMargins(4, 2, 4, 2); lay.setSpacing(8)
		self.lbl = QLabel(operation_label(st), self)
		self.bar = QProgressBar(self); self.bar.setRange(0, 100); self.bar.setValue(st.progress)
		self.status = QLabel(self._status_text(st), self)
		self.btn_dismiss = QToolButton(self); self.btn_dismiss.setText("✕"); self.btn_dismiss.setToolTip("Stop tracking")
		self.btn_dismiss.clicked.connect(lambda: on_dismiss(self.operation_id))
		lay.addWidget(self.lbl, 0); lay.addWidget(self.bar, 1); lay.addWidget(self.status, 0); lay.addWidget(self.btn_dismiss, 0)

	@staticmethod
	def _status_text(st: OperationState) -> str:
		if st.status is OperationStatus.FAILED:
			return f"failed: {st.last_error}" if st.last_error else "failed"
		if st.status is OperationStatus.SUCCEEDED:
			return "done"
		if st.status is OperationStatus.PENDING:
			return "waiting…"
		return f"{st.progress}%"


############################################################################
# SECTION [WIDGET]: FileBrowser root widget                                #
# Listing, breadcrumbs, delete actions and the live operations panel.      #
# Requests go through the executor; operation state only comes from the    #
# registry snapshot.                                                       #
############################################################################


class FileBrowser(QWidget):
	"""
	Remote directory view.
	  • One listing request per navigation; stale replies are dropped.
	  • Remove issues a delete request and hands the returned handle to the registry.
	  • The operations panel is rebuilt from registry.snapshot() on every change.
	"""

	def __init__(self, api: APIClient, registry: OperationRegistry, start_path: str = "/",
				 executor=None, confirm_deletes: bool = True, parent: QWidget = None):
		super().__init__(parent)
		self.api = api
		self.registry = registry
		self.executor = executor or PoolExecutor()
		self.confirm_deletes = confirm_deletes
		self.path = paths.normalize(start_path)
		self._pending_path: str | None = None
		self.entries: list[DirectoryEntry] = []
		self.operations: list[OperationState] = []

		# ---------- Icons ----------
		sty = QApplication.style()
		self.icon_dir = sty.standardIcon(QStyle.SP_DirIcon)
		self.icon_file = sty.standardIcon(QStyle.SP_FileIcon)
		self.icon_up = sty.standardIcon(QStyle.SP_ArrowUp)
		self.icon_refresh = sty.standardIcon(QStyle.SP_BrowserReload)

		# ---------- Top bar: up / refresh / crumbs ----------
		self.btn_up = QToolButton(self); self.btn_up.setIcon(self.icon_up); self.btn_up.setToolTip("Up")
		self.btn_up.clicked.connect(self.up)
		self.btn_refresh = QToolButton(self); self.btn_refresh.setIcon(self.icon_refresh); self.btn_refresh.setToolTip("Refresh")
		self.btn_refresh.clicked.connect(self.refresh)

		self._crumbs_host = QWidget(self); self._crumbs_host.setObjectName("CrumbsHost")
		self.crumbs = QHBoxLayout(self._crumbs_host); self.crumbs.setSpacing(6); self.crumbs.setContentsMargins(0, 0, 0, 0)

		topbar = QHBoxLayout(); topbar.setSpacing(6); topbar.setContentsMargins(0, 0, 0, 0)
		topbar.addWidget(self.btn_up, 0); topbar.addWidget(self.btn_refresh, 0); topbar.addWidget(self._crumbs_host, 1)

		# ---------- Table ----------
		self.table = QTableWidget(0, 2)
		self.table.setHorizontalHeaderLabels(["Name", "Size"])
		hdr = self.table.horizontalHeader()
		hdr.setSectionResizeMode(0, QHeaderView.Stretch)
		hdr.setSectionResizeMode(1, QHeaderView.ResizeToContents)
		self.table.setSortingEnabled(True)
		self.table.setEditTriggers(QTableWidget.NoEditTriggers)
		self.table.setSelectionBehavior(QTableWidget.SelectRows)
		self.table.verticalHeader().setVisible(False)
		self.table.cellDoubleClicked.connect(self._cell_dbl)
		self.table.setContextMenuPolicy(Qt.CustomContextMenu)
		self.table.customContextMenuRequested.connect(self._on_table_context_menu)

		# ---------- Actions / status ----------
		self.btn_remove = QPushButton("Remove", self); self.btn_remove.clicked.connect(self._delete_selection)
		self.status = QLabel("", self)
		self.error = QLabel("", self); self.error.setObjectName("error"); self.error.setWordWrap(True); self.error.setVisible(False)
		actions = QHBoxLayout(); actions.addWidget(self.status, 1); actions.addWidget(self.btn_remove, 0)

		# ---------- Operations panel ----------
		self.ops_host = QWidget(self)
		self.ops_layout = QVBoxLayout(self.ops_host); self.ops_layout.setContentsMargins(0, 0, 0, 0); self.ops_layout.setSpacing(2)
		self.ops_host.setVisible(False)

		root = QVBoxLayout(self)
		root.addLayout(topbar); root.addWidget(self.error); root.addWidget(self.table, 1)
		root.addLayout(actions); root.addWidget(self.ops_host)

		self.registry.changed.connect(self._render_operations)
		self.registry.finished.connect(self._on_operation_finished)
		self._rebuild_breadcrumbs()

	########################################################################
	# SUBSECTION [NAV]: navigation and breadcrumbs                         #
	########################################################################

	def navigate(self, new_path: str):
		target = paths.normalize(new_path)
		self._pending_path = target
		self.status.setText("Loading…")
		log.debug("navigate -> %s", target)
		self.executor.submit(
			lambda: self.api.list_dir(target),
			lambda entries: self._on_list(target, entries),
			lambda err: self._on_list_failed(target, err),
		)

	def refresh(self):
		self.navigate(self.path)

	def up(self):
		self.navigate(paths.parent(self.path))

	def _rebuild_breadcrumbs(self):
		while self.crumbs.count():
			it = self.crumbs.takeAt(0); w = it.widget()
			if w: w.deleteLater()

		trail = paths.breadcrumbs(self.path)
		for i, (label, target) in enumerate(trail):
			btn = QToolButton(self._crumbs_host); btn.setText(label); btn.setProperty("crumb", True)
			btn.clicked.connect(lambda _=False, t=target: self.navigate(t))
			self.crumbs.addWidget(btn)
			if i < len(trail) - 1:
				sep = QLabel("›", self._crumbs_host); sep.setObjectName("CrumbSep")
				self.crumbs.addWidget(sep)
		self.crumbs.addStretch(1)

	def crumb_labels(self) -> list[str]:
		out = []
		for i in range(self.crumbs.count()):
			w = self.crumbs.itemAt(i).widget()
			if isinstance(w, QToolButton):
				out.append(w.text())
		return out

	########################################################################
	# SUBSECTION [LIST]: listing replies                                   #
	########################################################################

	def _on_list(self, path: str, entries: list[DirectoryEntry]):
		if path != self._pending_path:
			log.debug("dropping stale listing for %s (want %s)", path, self._pending_path)
			return
		self._pending_path = None
		self.path = path
		self.entries = list(entries)
		self.error.setVisible(False)
		self.status.setText(f"{len(self.entries)} item(s)")
		self._fill_table()
		self._rebuild_breadcrumbs()

	def _on_list_failed(self, path: str, err: DriveError):
		if path != self._pending_path:
			return
		self._pending_path = None
		log.error("listing %s failed: %s", path, err)
		self.status.setText("")
		self._show_error(str(err))

	def _fill_table(self):
		self.table.setSortingEnabled(False)
		self.table.setRowCount(len(self.entries))
		for row, e in enumerate(self.entries):
			self.table.setItem(row, 0, NameItem(e.name, e.is_dir, self.icon_dir if e.is_dir else self.icon_file))
			self.table.setItem(row, 1, SizeItem("" if e.is_dir else fmt_size(e.size), e.size))
		self.table.setSortingEnabled(True)
		self.table.sortItems(0, Qt.AscendingOrder)

	def _cell_dbl(self, row: int, col: int):
		item = self.table.item(row, 0)
		if isinstance(item, NameItem) and item.is_dir:
			self.navigate(paths.join(self.path, item.text()))

	def _show_error(self, text: str):
		self.error.setText(text)
		self.error.setVisible(True)

	########################################################################
	# SUBSECTION [DELETE]: remove actions                                  #
	########################################################################

	def _on_table_context_menu(self, pos):
		idx = self.table.indexAt(pos)
		if not idx.isValid():
			return
		self.table.selectRow(idx.row())
		m = QMenu(self)
		m.addAction("Remove", self._delete_selection)
		m.addAction("Refresh", self.refresh)
		m.exec_(self.table.viewport().mapToGlobal(pos))

	def _delete_selection(self):
		rows = [i.row() for i in self.table.selectionModel().selectedRows()]
		names = []
		for r in rows:
			item = self.table.item(r, 0)
			if item:
				names.append(item.text())
		if not names:
			return

		if self.confirm_deletes:
			msg = f"Remove “{names[0]}”?" if len(names) == 1 else f"Remove {len(names)} item(s)?"
			if QMessageBox.question(self, "Remove", msg, QMessageBox.Yes | QMessageBox.No, QMessageBox.No) != QMessageBox.Yes:
				return

		for name in names:
			self.delete_path(paths.join(self.path, name))

	def delete_path(self, target: str):
		target = paths.normalize(target)
		self.status.setText(f"Removing {paths.basename(target)}…")
		self.executor.submit(
			lambda: self.api.request_delete(target),
			self._on_delete_started,
			lambda err: self._on_delete_failed(target, err),
		)

	def _on_delete_started(self, handle: OperationHandle):
		self.status.setText("")
		self.registry.register(handle)

	def _on_delete_failed(self, target: str, err: DriveError):
		log.error("delete %s failed: %s", target, err)
		self.status.setText("")
		self._show_error(str(err))

	########################################################################
	# SUBSECTION [OPS]: live operations panel                              #
	########################################################################

	def _render_operations(self):
		self.operations = self.registry.snapshot()
		self._rebuild_operation_rows()

	def _rebuild_operation_rows(self):
		while self.ops_layout.count():
			it = self.ops_layout.takeAt(0); w = it.widget()
			if w: w.deleteLater()
		for st in self.operations:
			self.ops_layout.addWidget(OperationRow(st, self.dismiss, self.ops_host))
		self.ops_host.setVisible(bool(self.operations))

	def dismiss(self, operation_id: int):
		self.registry.cancel(operation_id)
		# terminal rows are already gone from the registry; drop them here too
		if any(st.id == operation_id for st in self.operations):
			self.operations = [st for st in self.operations if st.id != operation_id]
			self._rebuild_operation_rows()

	def _on_operation_finished(self, st: OperationState):
		if st.status is OperationStatus.SUCCEEDED and paths.parent(st.target_path) == self.path:
			self.refresh()
