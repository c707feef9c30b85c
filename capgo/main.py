"""Entry point for the CapGo application."""
import logging
import os
import sys

from PyQt6.QtWidgets import QApplication

from app.config import StamperConfig
from app.main_window import MainWindow


def main():
    logging.basicConfig(
        level=os.environ.get("CAPGO_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv)
    app.setApplicationName("CapGo")
    app.setOrganizationName("CapGo")

    window = MainWindow(StamperConfig.from_env())
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
