"""Oscilloscope-style plot widget for one vitals trace."""

from __future__ import annotations

import logging
import time
from typing import Optional

from PySide6.QtWidgets import QHBoxLayout, QLabel, QSizePolicy, QWidget
import pyqtgraph as pg

from ..core.trace_renderer import DrawSize, FrameStatus, TraceFrame
from .perf_metrics import RenderPerfStats

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "Awaiting signal…"


def format_rate_title(label: str, rate: int, unit: str = "bpm") -> str:
    """Two-line title: the label, then the rate or ``--`` when unknown."""
    value = f"{rate} {unit}" if rate > 0 else "--"
    return f"{label}\n{value}"


class TracePlotWidget(QWidget):
    """
    Title on the left, scrolling trace on the right.

    The plot's view box is pinned to the renderer's drawing coordinates
    (``x`` in ``[0, width - 1]``, ``y`` in ``[0, height]`` growing downwards),
    so frames are shown exactly as computed.
    """

    def __init__(
        self,
        label: str,
        color: str,
        parent: Optional[QWidget] = None,
        *,
        height_px: int = 72,
    ) -> None:
        super().__init__(parent)
        self._label = label
        self.perf = RenderPerfStats()

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.title_label = QLabel(format_rate_title(label, 0))
        self.title_label.setStyleSheet("font-weight: 600;")
        layout.addWidget(self.title_label, 2)

        self.plot_widget = pg.PlotWidget()
        self.plot_widget.setBackground(None)
        self.plot_widget.hideAxis("left")
        self.plot_widget.hideAxis("bottom")
        self.plot_widget.setMouseEnabled(x=False, y=False)
        self.plot_widget.setMenuEnabled(False)
        self.plot_widget.hideButtons()
        self.plot_widget.setFixedHeight(int(height_px))
        self.plot_widget.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)
        view_box = self.plot_widget.getViewBox()
        view_box.invertY(True)
        view_box.setDefaultPadding(0.0)
        layout.addWidget(self.plot_widget, 3)

        self._curve = self.plot_widget.plot([], [], pen=pg.mkPen(color, width=2))
        self._placeholder = pg.TextItem(PLACEHOLDER_TEXT, color=(160, 160, 160), anchor=(0.5, 0.5))
        self.plot_widget.addItem(self._placeholder)
        self._placeholder.setVisible(True)

    # ------------------------------------------------------------ TraceSurface
    def draw_size(self) -> DrawSize:
        view_box = self.plot_widget.getViewBox()
        rect = view_box.boundingRect()
        width = float(rect.width())
        height = float(rect.height())
        if width <= 0.0 or height <= 0.0:
            return float(self.plot_widget.width()), float(self.plot_widget.height())
        return width, height

    def present(self, frame: TraceFrame) -> None:
        width, height = self.draw_size()
        self.plot_widget.setRange(
            xRange=(0.0, max(width - 1.0, 1.0)),
            yRange=(0.0, max(height, 1.0)),
            padding=0.0,
        )
        if frame.status is FrameStatus.DRAWN:
            self._curve.setData(frame.x, frame.y)
        else:
            self._curve.setData([], [])

        self._placeholder.setVisible(frame.show_placeholder)
        if frame.show_placeholder:
            self._placeholder.setPos(width / 2.0, height / 2.0)

        self.perf.record_frame(time.perf_counter(), drawn=frame.has_line)

    # ---------------------------------------------------------------- helpers
    def set_rate(self, rate: int) -> None:
        self.title_label.setText(format_rate_title(self._label, rate))

    def clear(self) -> None:
        self._curve.setData([], [])
        self._placeholder.setVisible(True)
        self.perf.reset()
