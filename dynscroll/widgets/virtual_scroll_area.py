import math

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QScrollArea, QWidget

from dynscroll.engine.engine_config import EngineConfig
from dynscroll.engine.virtual_scroll_engine import VirtualScrollEngine


class QtScrollAreaHost:
    """Scroll host backed by a QScrollArea and its fixed-height track widget."""

    def __init__(self, area: QScrollArea, track: QWidget):
        self._area = area
        self._track = track

    def scroll_top(self) -> float:
        return float(self._area.verticalScrollBar().value())

    def viewport_height(self) -> float:
        return float(self._area.viewport().height())

    def scroll_height(self) -> float:
        return float(max(self._track.height(), self._area.viewport().height()))

    def set_track_height(self, min_height: float, max_height: float):
        # Qt has a single height; both bounds are always equal here.
        height = int(math.ceil(max(min_height, max_height)))
        if self._track.height() != height:
            self._track.setFixedHeight(height)

    def scroll_by(self, delta: float):
        sb = self._area.verticalScrollBar()
        sb.setValue(int(round(sb.value() + delta)))


class QtWidgetViewFactory:
    """View factory that places one QWidget per item on the track.

    `build_widget(item)` creates the widget for a `ListItem`; the optional
    `bind_widget(widget, item)` refreshes an existing widget when the item's
    payload changed.
    """

    def __init__(self, track: QWidget, build_widget, bind_widget=None):
        self._track = track
        self._build_widget = build_widget
        self._bind_widget = bind_widget

    def create(self, item):
        widget = self._build_widget(item)
        if widget is None:
            return None
        widget.setParent(self._track)
        widget.resize(self._track.width(), max(1, widget.height()))
        widget.show()
        return widget

    def measure(self, widget) -> float | None:
        width = self._track.width()
        if widget.hasHeightForWidth():
            height = widget.heightForWidth(width)
        else:
            height = widget.sizeHint().height()
        if height <= 0:
            return None
        height = max(widget.minimumHeight(), min(height, widget.maximumHeight()))
        widget.resize(width, height)
        return float(height)

    def reposition(self, widget, top: float):
        widget.move(0, int(round(top)))

    def attach(self, widget):
        widget.show()

    def detach(self, widget):
        widget.hide()

    def destroy(self, widget):
        widget.hide()
        widget.setParent(None)
        widget.deleteLater()

    def update_data(self, widget, item):
        if self._bind_widget is not None:
            self._bind_widget(widget, item)

    def resize_width(self, width: int):
        for child in self._track.children():
            if isinstance(child, QWidget):
                child.resize(width, child.height())


class VirtualScrollArea(QScrollArea):
    """QScrollArea that only keeps the items around the viewport as widgets."""

    def __init__(self, build_widget, bind_widget=None, config: EngineConfig | None = None,
                 log=None, parent=None):
        super().__init__(parent)
        self.setWidgetResizable(False)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setFrameShape(QScrollArea.Shape.NoFrame)

        self.track = QWidget()
        self.track.setFixedWidth(max(1, self.viewport().width()))
        self.setWidget(self.track)

        self.host = QtScrollAreaHost(self, self.track)
        self.view_factory = QtWidgetViewFactory(self.track, build_widget, bind_widget)
        self.engine = VirtualScrollEngine(self.host, self.view_factory, config=config, log=log)
        self.verticalScrollBar().valueChanged.connect(self._on_scroll_value_changed)

    def set_items(self, items):
        self.engine.set_items(items)

    def notify_measurement_ready(self, item_id):
        self.engine.notify_measurement_ready(item_id)

    def dispose(self):
        self.engine.dispose()

    def _on_scroll_value_changed(self, _value: int):
        self.engine.on_scroll()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        if not hasattr(self, 'view_factory'):
            return
        width = max(1, self.viewport().width())
        if self.track.width() != width:
            self.track.setFixedWidth(width)
            self.view_factory.resize_width(width)
        if hasattr(self, 'engine'):
            self.engine.refresh('resize')

    def closeEvent(self, event):
        self.dispose()
        super().closeEvent(event)
