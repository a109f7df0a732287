"""App runner: import and run LiveCalibrator.core.app.main()."""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

if os.name == "nt":
    # prefer DirectShow on Windows
    os.environ.setdefault("LIVECALIB_CAMERA_BACKEND", "dshow")
    os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")

from LiveCalibrator.core.app import main

if __name__ == "__main__":
    raise SystemExit(main())
