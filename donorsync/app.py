import sys, argparse
from PyQt6 import QtWidgets
from .config import configure_logging, load_settings
from .ui import MainWindow

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--db", default=None)
    ap.add_argument("--env-file", default=None)
    ap.add_argument("--refresh", type=int, default=None, help="auto-refresh interval in seconds")
    args = ap.parse_args()

    settings = load_settings(env_file=args.env_file, db_path=args.db, refresh_seconds=args.refresh)
    configure_logging(settings.log_level)

    app = QtWidgets.QApplication(sys.argv)
    win = MainWindow(settings)
    win.show()
    sys.exit(app.exec())

if __name__ == "__main__":
    main()
