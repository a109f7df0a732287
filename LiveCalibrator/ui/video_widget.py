from __future__ import annotations

from typing import Optional

try:
    from PyQt6.QtCore import Qt
    from PyQt6.QtGui import QImage, QPainter, QColor, QPen
    from PyQt6.QtWidgets import QWidget
except Exception:  # pragma: no cover
    QWidget = object  # type: ignore
    QImage = object  # type: ignore
    QPainter = object  # type: ignore
    QColor = object  # type: ignore
    QPen = object  # type: ignore


class VideoWidget(QWidget):  # type: ignore[misc]
    """Paints the RGBA buffer handed over by the render bridge, aspect-fit."""

    def __init__(self):  # type: ignore[no-redef]
        super().__init__()
        self._frame = None
        self._banner: Optional[str] = None
        self.setMinimumSize(640, 360)

    def set_frame(self, rgba, banner: Optional[str] = None) -> None:
        # the buffer is owned by the render bridge and only rewritten on the UI thread
        self._frame = rgba
        self._banner = banner
        self.update()

    def paintEvent(self, e):  # type: ignore[override]
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(0, 0, 0))
        if self._frame is not None:
            img = self._to_qimage(self._frame)
            target = self.rect()
            pix = img.scaled(target.size(), Qt.AspectRatioMode.KeepAspectRatio, Qt.TransformationMode.SmoothTransformation)
            x = target.x() + (target.width() - pix.width()) // 2
            y = target.y() + (target.height() - pix.height()) // 2
            painter.drawImage(x, y, pix)
        if self._banner:
            painter.setPen(QPen(QColor(255, 255, 0), 2))
            painter.drawText(12, 24, self._banner)
        painter.end()

    @staticmethod
    def _to_qimage(rgba):
        h, w, ch = rgba.shape
        return QImage(rgba.data, w, h, ch * w, QImage.Format.Format_RGBA8888)
