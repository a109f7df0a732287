from __future__ import annotations

from typing import Sequence

import numpy as np  # type: ignore
import matplotlib
matplotlib.use("Agg")  # headless-safe backend; canvases will set interactive backend
import matplotlib.pyplot as plt  # type: ignore

from LiveCalibrator.calibration.models import CalibrationResult


def fig_per_view_errors(errors: Sequence[float], rms: float):
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.set_title("Reprojection Error per Sample")
    errs = np.asarray(list(errors), dtype=float)
    if errs.size:
        idx = np.arange(1, errs.size + 1)
        worst = float(errs.max())
        colors = ["tomato" if e >= worst and errs.size > 1 else "steelblue" for e in errs]
        ax.bar(idx, errs, color=colors, edgecolor="black", alpha=0.85)
        ax.set_xticks(idx)
    ax.axhline(rms, color="red", linestyle="--", label=f"Overall RMS {rms:.3f} px")
    ax.set_xlabel("Sample")
    ax.set_ylabel("RMS error (px)")
    ax.legend(loc="best")
    ax.grid(True, axis="y", alpha=0.3)
    fig.tight_layout()
    return fig


def fig_distortion(result: CalibrationResult, steps: int = 50):
    """Radial displacement implied by k1, k2, k3 across the image half-diagonal."""
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.set_title("Radial Distortion")
    k = result.camera_matrix
    d = np.zeros(8, dtype=float)
    d[: min(8, result.dist_coeffs.size)] = result.dist_coeffs[:8]
    k1, k2, k3 = d[0], d[1], d[4]
    w, h = result.image_size
    fx = float(k[0, 0]) or 1.0
    r_max = float(np.hypot(w / 2.0, h / 2.0)) / fx
    r = np.linspace(0.0, r_max, steps)
    r2 = r * r
    shift_px = r * (k1 * r2 + k2 * r2 * r2 + k3 * r2 * r2 * r2) * fx
    ax.plot(r * fx, shift_px, color="darkorange")
    ax.axhline(0.0, color="black", linewidth=0.8)
    ax.set_xlabel("Distance from principal point (px)")
    ax.set_ylabel("Radial shift (px)")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig


def fig_summary(result: CalibrationResult):
    fig, ax = plt.subplots(figsize=(5, 3))
    ax.axis("off")
    k = result.camera_matrix
    dist = ", ".join(f"{c:.4f}" for c in result.dist_coeffs)
    text = (
        f"fx: {k[0, 0]:.2f}   fy: {k[1, 1]:.2f}\n"
        f"cx: {k[0, 2]:.2f}   cy: {k[1, 2]:.2f}\n"
        f"RMS: {result.rms:.3f} px\n"
        f"Samples: {result.sample_count}   Image: {result.image_size[0]}x{result.image_size[1]}\n"
        f"Distortion: [{dist}]"
    )
    ax.text(0.02, 0.9, text, fontsize=10, va="top", family="monospace", wrap=True)
    fig.tight_layout()
    return fig
