from __future__ import annotations

from typing import Optional

try:
    from PyQt6.QtCore import pyqtSignal
    from PyQt6.QtWidgets import (
        QWidget,
        QMainWindow,
        QHBoxLayout,
        QVBoxLayout,
        QFormLayout,
        QLabel,
        QPushButton,
        QCheckBox,
        QSpinBox,
        QDoubleSpinBox,
        QComboBox,
        QLineEdit,
        QStatusBar,
        QGroupBox,
    )
except Exception:  # pragma: no cover
    QWidget = object  # type: ignore
    QMainWindow = object  # type: ignore
    pyqtSignal = lambda *a, **k: None  # type: ignore

from LiveCalibrator.calibration.models import CalibrationVariant, SessionState, SessionStatus, StartRequest

from .video_widget import VideoWidget

VARIANT_LABELS = [
    (CalibrationVariant.CHESSBOARD, "Chessboard"),
    (CalibrationVariant.CIRCLE_GRID, "Circle grid"),
    (CalibrationVariant.ARUCO_GRID, "ArUco grid board"),
]


class MainWindow(QMainWindow):  # type: ignore[misc]
    calibrationRequested = pyqtSignal(object)  # StartRequest
    cancelRequested = pyqtSignal()

    def __init__(self, defaults: Optional[StartRequest] = None):  # type: ignore[no-redef]
        super().__init__()
        self.setWindowTitle("LiveCalibrator")
        self._defaults = defaults or StartRequest()
        self._build_ui()
        self.set_request(self._defaults)
        self.show_status(SessionStatus(SessionState.IDLE))

    def _build_ui(self) -> None:
        central = QWidget()
        root = QHBoxLayout()

        # Left: video and pipeline status
        left = QVBoxLayout()
        self.video = VideoWidget()
        left.addWidget(self.video, stretch=1)
        self.lbl_pipeline = QLabel("Camera: -- | FPS: --")
        left.addWidget(self.lbl_pipeline)

        # Right: calibration controls
        right = QVBoxLayout()
        right.addWidget(self._build_target_box())
        right.addWidget(self._build_aruco_box())
        right.addStretch(1)
        self.lbl_session = QLabel("Idle")
        self.lbl_session.setWordWrap(True)
        right.addWidget(self.lbl_session)
        self.btn_start = QPushButton("Start Calibration")
        self.btn_cancel = QPushButton("Cancel")
        self.btn_cancel.setEnabled(False)
        right.addWidget(self.btn_start)
        right.addWidget(self.btn_cancel)

        # Wire
        self.btn_start.clicked.connect(self._emit_start)  # type: ignore[attr-defined]
        self.btn_cancel.clicked.connect(self.cancelRequested)  # type: ignore[attr-defined]
        self.cmb_variant.currentIndexChanged.connect(self._on_variant_changed)  # type: ignore[attr-defined]

        root.addLayout(left, stretch=3)
        root.addLayout(right, stretch=1)
        central.setLayout(root)
        self.setCentralWidget(central)
        self.setStatusBar(QStatusBar())

    def _build_target_box(self):
        box = QGroupBox("Calibration target")
        form = QFormLayout()
        self.cmb_variant = QComboBox()
        for variant, label in VARIANT_LABELS:
            self.cmb_variant.addItem(label, userData=variant)
        form.addRow("Pattern", self.cmb_variant)
        self.spn_rows = QSpinBox()
        self.spn_rows.setRange(2, 64)
        form.addRow("Grid rows", self.spn_rows)
        self.spn_cols = QSpinBox()
        self.spn_cols.setRange(2, 64)
        form.addRow("Grid columns", self.spn_cols)
        self.spn_required = QSpinBox()
        self.spn_required.setRange(1, 500)
        form.addRow("Samples", self.spn_required)
        self.spn_square = QDoubleSpinBox()
        self.spn_square.setRange(0.001, 10000.0)
        self.spn_square.setDecimals(3)
        form.addRow("Square size", self.spn_square)
        self.chk_refine = QCheckBox("Sub-pixel refinement")
        form.addRow(self.chk_refine)
        self.chk_asym = QCheckBox("Asymmetric circle grid")
        form.addRow(self.chk_asym)
        box.setLayout(form)
        return box

    def _build_aruco_box(self):
        self.box_aruco = QGroupBox("ArUco board")
        form = QFormLayout()
        self.txt_dictionary = QLineEdit()
        form.addRow("Dictionary", self.txt_dictionary)
        self.spn_marker_len = QDoubleSpinBox()
        self.spn_marker_len.setRange(0.001, 10000.0)
        self.spn_marker_len.setDecimals(3)
        form.addRow("Marker length", self.spn_marker_len)
        self.spn_marker_sep = QDoubleSpinBox()
        self.spn_marker_sep.setRange(0.0, 10000.0)
        self.spn_marker_sep.setDecimals(3)
        form.addRow("Marker separation", self.spn_marker_sep)
        self.spn_min_markers = QSpinBox()
        self.spn_min_markers.setRange(1, 1000)
        form.addRow("Min markers", self.spn_min_markers)
        self.box_aruco.setLayout(form)
        return self.box_aruco

    # Request <-> widgets ----------------------------------------------
    def set_request(self, req: StartRequest) -> None:
        idx = self.cmb_variant.findData(req.variant)
        self.cmb_variant.setCurrentIndex(max(0, idx))
        self.spn_rows.setValue(int(req.rows))
        self.spn_cols.setValue(int(req.cols))
        self.spn_required.setValue(int(req.required_samples))
        self.spn_square.setValue(float(req.square_size))
        self.chk_refine.setChecked(bool(req.refine))
        self.chk_asym.setChecked(bool(req.asymmetric))
        self.txt_dictionary.setText(req.dictionary)
        self.spn_marker_len.setValue(float(req.marker_length))
        self.spn_marker_sep.setValue(float(req.marker_separation))
        self.spn_min_markers.setValue(int(req.min_markers))
        self._on_variant_changed()

    def current_request(self) -> StartRequest:
        return StartRequest(
            variant=self.cmb_variant.currentData(),
            rows=self.spn_rows.value(),
            cols=self.spn_cols.value(),
            required_samples=self.spn_required.value(),
            square_size=self.spn_square.value(),
            refine=self.chk_refine.isChecked(),
            asymmetric=self.chk_asym.isChecked(),
            marker_length=self.spn_marker_len.value(),
            marker_separation=self.spn_marker_sep.value(),
            dictionary=self.txt_dictionary.text().strip() or self._defaults.dictionary,
            min_markers=self.spn_min_markers.value(),
            min_interval_s=self._defaults.min_interval_s,
            min_shift_px=self._defaults.min_shift_px,
        )

    def _emit_start(self) -> None:
        self.calibrationRequested.emit(self.current_request())  # type: ignore[attr-defined]

    def _on_variant_changed(self, *_args) -> None:
        variant = self.cmb_variant.currentData()
        self.box_aruco.setVisible(variant == CalibrationVariant.ARUCO_GRID)
        self.chk_asym.setVisible(variant == CalibrationVariant.CIRCLE_GRID)
        self.chk_refine.setEnabled(variant == CalibrationVariant.CHESSBOARD)
        self.spn_square.setEnabled(variant != CalibrationVariant.ARUCO_GRID)

    # Updates from the app core ----------------------------------------
    def update_video(self, rgba, banner: Optional[str] = None) -> None:
        self.video.set_frame(rgba, banner)

    def update_pipeline(self, width: int, height: int, fps: float, recording: bool) -> None:
        rec = "REC" if recording else "not recording"
        self.lbl_pipeline.setText(f"Camera: {width}x{height} | FPS: {fps:.1f} | {rec}")

    def show_status(self, status: SessionStatus) -> None:
        self.lbl_session.setText(status.message())
        running = status.state in (SessionState.CAPTURING, SessionState.SOLVING)
        self.btn_start.setEnabled(not running)
        self.btn_cancel.setEnabled(status.state == SessionState.CAPTURING)

    def show_message(self, text: str, timeout_ms: int = 5000) -> None:
        self.statusBar().showMessage(text, timeout_ms)

    def set_pipeline_down(self, message: str) -> None:
        self.lbl_pipeline.setText(message)
        self.btn_start.setEnabled(False)
        self.btn_cancel.setEnabled(False)
