"""Desktop GUI implementation built with PySide6/Qt and pyqtgraph.

:mod:`live_vitals_window` shows the rolling pulse and breathing plots, each
drawn by a :class:`~vitaltrace.gui.trace_plot_widget.TracePlotWidget`. Ticks
come from :class:`~vitaltrace.gui.qt_ticker.QtTicker`, so buffer writes and
render reads both happen on the Qt main thread.
:mod:`pulse_capture_window` hosts the pulse capture flow (``--capture``).
"""
