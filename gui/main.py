# gui/main.py
import argparse
import sys

from PyQt5.QtWidgets import QApplication

from core import config
from core.logutil import setup_once, get_logger
from core.operations.registry import OperationRegistry
from gui.api_client import APIClient
from gui.main_window import MainWindow


def parse_args(argv=None) -> argparse.Namespace:
	p = argparse.ArgumentParser(prog="gitdrive", description="Browse a git-drive server and track deletes.")
	p.add_argument("--url", default=config.BASE_URL, help="server origin (default: %(default)s)")
	p.add_argument("--path", default="/", help="directory to open first")
	p.add_argument("--log-level", default=config.LOG_LEVEL, help="console log level")
	return p.parse_args(argv)


def main(argv=None) -> int:
	args = parse_args(argv)
	setup_once(level=args.log_level.upper())
	log = get_logger("gui")

	app = QApplication(sys.argv[:1])
	app.setApplicationName("git-drive")

	api = APIClient(args.url)
	registry = OperationRegistry(api.base_url)
	log.info("connecting to %s", api.base_url)

	mw = MainWindow(api, registry, start_path=args.path)
	mw.show()
	mw.browser.navigate(args.path)
	return app.exec_()


if __name__ == "__main__":
	sys.exit(main())
