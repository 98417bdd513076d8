# gui/main_window.py
from PyQt5.QtWidgets import QMainWindow

from core.operations.registry import OperationRegistry
from gui.api_client import APIClient
from gui.file_browser import FileBrowser


class MainWindow(QMainWindow):
	def __init__(self, api: APIClient, registry: OperationRegistry, start_path: str = "/"):
		super().__init__()
		self.api = api
		self.registry = registry
		self.setWindowTitle(f"git-drive — {api.base_url}")
		self.resize(900, 600)

		self.browser = FileBrowser(api, registry, start_path=start_path, parent=self)
		self.setCentralWidget(self.browser)

	def closeEvent(self, ev):
		# stop listening to every push channel; server-side work carries on
		self.registry.close_all()
		super().closeEvent(ev)
