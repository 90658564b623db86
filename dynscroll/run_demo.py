import itertools
import os
import random
import sys
import traceback
from datetime import datetime

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (QApplication, QHBoxLayout, QLabel, QMainWindow,
                               QPushButton, QVBoxLayout, QWidget)

from dynscroll.engine.engine_config import EngineConfig
from dynscroll.utils.settings import DEFAULT_SETTINGS, settings
from dynscroll.widgets.virtual_scroll_area import VirtualScrollArea

CRASH_LOG_PATH = os.path.abspath('dynscroll_crash.log')
# Every item height is one of these, so the estimate keeps moving while scrolling.
ITEM_HEIGHTS = tuple(range(100, 1001, 100))


def append_crash_log(title: str, exc_info=None, path: str | None = None) -> str:
    """Append `title` and a traceback to the demo crash log; returns the path used."""
    path = path or CRASH_LOG_PATH
    if exc_info is None:
        lines = traceback.format_exc().splitlines()
    else:
        lines = "".join(traceback.format_exception(*exc_info)).splitlines()
    stamp = datetime.now().isoformat(timespec='seconds')
    entry = [f"--- {stamp} {title} ---", *lines, ""]
    try:
        with open(path, 'a', encoding='utf-8') as f:
            f.write("\n".join(entry) + "\n")
    except OSError as log_error:
        print(f"[CRASH] Could not write {path}: {log_error}")
    else:
        print(f"[CRASH] {title} logged to {path}")
    return path


def install_crash_handlers():
    def _unhandled_exception(exc_type, exc_value, exc_traceback):
        append_crash_log("UNHANDLED EXCEPTION", (exc_type, exc_value, exc_traceback))
        sys.__excepthook__(exc_type, exc_value, exc_traceback)

    sys.excepthook = _unhandled_exception


def build_item_widget(item) -> QLabel:
    payload = item.payload
    label = QLabel(f"Item {payload['id']}  ({payload['height']}px)")
    label.setAlignment(Qt.AlignmentFlag.AlignCenter)
    label.setFixedHeight(payload['height'])
    label.setStyleSheet(
        f"background-color: hsl({payload['hue']}, 60%, 80%);"
        "border-bottom: 1px solid #666; color: #222;")
    return label


def bind_item_widget(label: QLabel, item):
    payload = item.payload
    label.setText(f"Item {payload['id']}  ({payload['height']}px)")
    label.setFixedHeight(payload['height'])


class DemoWindow(QMainWindow):
    """A list of random-height labels with buttons that mutate both ends."""

    def __init__(self, item_count: int, seed: int | None = None):
        super().__init__()
        self.setWindowTitle('dynscroll demo')
        self._random = random.Random(seed)
        self._ids = itertools.count()
        self.items = [self._new_item() for _ in range(item_count)]

        self.scroll_area = VirtualScrollArea(
            build_item_widget, bind_item_widget, config=EngineConfig.from_settings())

        buttons = QHBoxLayout()
        for text, handler in (('Prepend', self.prepend), ('Append', self.append),
                              ('Shift', self.shift), ('Pop', self.pop)):
            button = QPushButton(text)
            button.clicked.connect(handler)
            buttons.addWidget(button)
        self.status_label = QLabel()

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.addLayout(buttons)
        layout.addWidget(self.scroll_area, stretch=1)
        layout.addWidget(self.status_label)
        self.setCentralWidget(central)
        self.resize(600, 900)

        self._publish()

    def _new_item(self) -> dict:
        item_id = next(self._ids)
        return {
            'id': item_id,
            'height': self._random.choice(ITEM_HEIGHTS),
            'hue': (item_id * 37) % 360,
        }

    def _publish(self):
        self.scroll_area.set_items(self.items)
        engine = self.scroll_area.engine
        self.status_label.setText(
            f"{len(self.items)} items | phase={engine.phase.value} "
            f"| estimate={engine.estimate:.0f}px | track={engine.track_height:.0f}px")

    def prepend(self):
        self.items.insert(0, self._new_item())
        self._publish()

    def append(self):
        self.items.append(self._new_item())
        self._publish()

    def shift(self):
        if self.items:
            self.items.pop(0)
            self._publish()

    def pop(self):
        if self.items:
            self.items.pop()
            self._publish()

    def closeEvent(self, event):
        self.scroll_area.dispose()
        super().closeEvent(event)


def run_demo():
    app = QApplication([])
    # The application name is shown in the taskbar.
    app.setApplicationName('dynscroll')
    app.setStyle('Fusion')

    try:
        item_count = int(settings.value(
            'demo_item_count', defaultValue=DEFAULT_SETTINGS['demo_item_count'], type=int))
    except (TypeError, ValueError):
        item_count = DEFAULT_SETTINGS['demo_item_count']

    window = DemoWindow(max(0, item_count))
    window.show()
    return int(app.exec())


def main():
    install_crash_handlers()
    try:
        sys.exit(run_demo())
    except Exception:
        append_crash_log("DEMO CRASH")
        raise


if __name__ == '__main__':
    main()
