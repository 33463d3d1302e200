"""Module entry point for the bucket console application."""
import logging
import sys

from PySide6 import QtWidgets

from .qt_view import ConsoleWindow
from .settings import SettingsStorage


def main() -> None:
    settings = SettingsStorage().load()
    logging.basicConfig(
        level=settings.log_level_value,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = QtWidgets.QApplication(sys.argv)
    window = ConsoleWindow()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
