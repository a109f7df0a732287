from __future__ import annotations

from typing import Optional

try:
    from PyQt6.QtCore import pyqtSignal
    from PyQt6.QtWidgets import QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QTabWidget, QMessageBox
    from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg as FigureCanvas  # type: ignore
except Exception:  # pragma: no cover
    QMainWindow = object  # type: ignore
    QWidget = object  # type: ignore
    pyqtSignal = lambda *a, **k: None  # type: ignore

from LiveCalibrator.analysis.plots import fig_distortion, fig_per_view_errors, fig_summary
from LiveCalibrator.calibration.models import CalibrationResult


def rms_warning(result: CalibrationResult, warn_rms_px: float = 1.0) -> Optional[str]:
    if result.rms > warn_rms_px:
        return f"RMS error {result.rms:.2f}px is high, consider recalibrating."
    return None


class CalibrationResultWindow(QMainWindow):  # type: ignore[misc]
    retry = pyqtSignal()

    def __init__(self, result: CalibrationResult, warn_rms_px: float = 1.0):  # type: ignore[no-redef]
        super().__init__()
        self.setWindowTitle("Calibration Result")
        self.result = result
        self.warn_rms_px = float(warn_rms_px)
        self._build_ui()

    def _add_tab(self, tabs, fig, title: str) -> None:
        tab = QWidget()
        lay = QVBoxLayout()
        lay.addWidget(FigureCanvas(fig))
        tab.setLayout(lay)
        tabs.addTab(tab, title)

    def _build_ui(self) -> None:
        central = QWidget()
        v = QVBoxLayout()
        v.addWidget(QLabel(self.result.summary()))

        tabs = QTabWidget()
        self._add_tab(tabs, fig_summary(self.result), "Summary")
        self._add_tab(tabs, fig_per_view_errors(self.result.per_view_errors, self.result.rms), "Per-sample error")
        self._add_tab(tabs, fig_distortion(self.result), "Distortion")
        v.addWidget(tabs, stretch=1)

        bottom = QHBoxLayout()
        btn_retry = QPushButton("Recalibrate")
        btn_close = QPushButton("Close")
        bottom.addStretch(1)
        bottom.addWidget(btn_retry)
        bottom.addWidget(btn_close)
        v.addLayout(bottom)
        central.setLayout(v)
        self.setCentralWidget(central)

        btn_close.clicked.connect(self.close)  # type: ignore[attr-defined]
        btn_retry.clicked.connect(self._on_retry)  # type: ignore[attr-defined]

        warning = rms_warning(self.result, self.warn_rms_px)
        if warning:
            QMessageBox.warning(self, "Calibration Warning", warning)

    def _on_retry(self):
        self.retry.emit()
        self.close()
