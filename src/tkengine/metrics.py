# src/tkengine/metrics.py
import numpy as np
from typing import Optional, Tuple

from .types import SimulationResult


def _series(result: SimulationResult, column: Optional[str]) -> np.ndarray:
    return result.column(column or _plasma_column(result))


def _plasma_column(result: SimulationResult) -> str:
    return "Cplasma" if "Cplasma" in result.columns else "Ccompartment"


def cmax(result: SimulationResult, column: Optional[str] = None) -> float:
    """Global maximum of a concentration column (plasma by default)."""
    return float(np.max(_series(result, column)))


def tmax(result: SimulationResult, column: Optional[str] = None) -> float:
    """Time of maximum concentration (h)."""
    return float(result.time[int(np.argmax(_series(result, column)))])


def cmax_tmax(result: SimulationResult, column: Optional[str] = None) -> Tuple[float, float]:
    """Return Cmax and Tmax (h)."""
    C = _series(result, column)
    idx = np.argmax(C)
    return float(C[idx]), float(result.time[idx])


def final_auc(result: SimulationResult) -> float:
    """Plasma AUC at the end of the simulation, from the integrated AUC state."""
    return float(result.column("AUC")[-1])


def auc_trapz(result: SimulationResult, column: Optional[str] = None) -> float:
    """Area under a concentration column via the trapezoidal rule, for cross-checking the AUC state."""
    return float(np.trapezoid(_series(result, column), result.time))


def daily_average(result: SimulationResult) -> np.ndarray:
    """
    Average plasma concentration over each whole day of the simulation,
    from differences of the AUC state at day boundaries.
    """
    t = result.time
    n_days = int((t[-1] - t[0]) // 24.0)
    if n_days < 1:
        return np.empty(0)
    edges = t[0] + 24.0 * np.arange(n_days + 1)
    auc_at = np.interp(edges, t, result.column("AUC"))
    return np.diff(auc_at) / 24.0
