"""
Point Probe

Received power from every active transmitter at an arbitrary point, with
a single line-of-sight query per transmitter:

    LOS:   Pr = Pt - FSPL(d)
    NLOS:  Pr = Pt - FSPL(d) - 25 dB

From the per-transmitter powers the probe derives the best server, the
margin over the second best, a five-tier quality class, the number of
strong (interfering) signals, handover stability and softmax blending
weights.

The probe is called many times per second from moving query points, so
PointProbe keeps its scratch buffer between calls.
"""

import numpy as np
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence
import logging

from scipy.special import softmax

from common.config import ProbeConfig
from common.constants import QUALITY_THRESHOLDS_DBM, SOFTMAX_TEMPERATURE
from common.vector_math import as_vec3, direction_and_distance, VectorLike
from .geometry_index import GeometryIndex, safe_nearest_hit
from .path_loss import free_space_path_loss
from .transmitter import Transmitter

logger = logging.getLogger(__name__)


class QualityTier(Enum):
    """Signal quality class of the best received power."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DEAD = "dead"


def classify_quality(best_power_dbm: float) -> QualityTier:
    """
    Five-tier quality class; every threshold is strictly greater-than.

        > -70   excellent
        > -85   good
        > -100  fair
        > -110  poor
        else    dead
    """
    if best_power_dbm > QUALITY_THRESHOLDS_DBM['excellent']:
        return QualityTier.EXCELLENT
    elif best_power_dbm > QUALITY_THRESHOLDS_DBM['good']:
        return QualityTier.GOOD
    elif best_power_dbm > QUALITY_THRESHOLDS_DBM['fair']:
        return QualityTier.FAIR
    elif best_power_dbm > QUALITY_THRESHOLDS_DBM['poor']:
        return QualityTier.POOR
    return QualityTier.DEAD


def softmax_weights(values_dbm: Sequence[float], temperature: float = SOFTMAX_TEMPERATURE) -> np.ndarray:
    """
    Normalized exponential weights exp((v - max) / T) for visual blending.

    Args:
        values_dbm: Received powers
        temperature: Softmax temperature in dB

    Returns:
        Weights summing to 1, or an empty array for empty input
    """
    values = np.asarray(values_dbm, dtype=np.float64)
    if values.size == 0:
        return np.zeros(0)
    return softmax(values / max(temperature, 1e-6))


@dataclass(frozen=True)
class ProbeRow:
    """Received signal from one transmitter at the probe point."""
    index: int
    transmitter_id: str
    received_power_dbm: float
    los: bool
    distance_m: float
    frequency_mhz: float
    path_loss_db: float


@dataclass
class ProbeResult:
    """
    Analytic summary of the signal environment at one point.

    Attributes:
        rows: One row per transmitter, strongest first
        best_index: Input-order index of the best server (None if empty)
        margin_db: Best minus second-best power (inf with < 2 transmitters)
        best_power_dbm: Best received power (-inf if empty)
        quality_tier: Five-tier quality of best_power_dbm
        interference_count: Transmitters above the strong-signal threshold
        handover_stable: margin_db >= handover margin
        weights: Softmax weights in input order
    """
    rows: List[ProbeRow] = field(default_factory=list)
    best_index: Optional[int] = None
    margin_db: float = float('inf')
    best_power_dbm: float = float('-inf')
    quality_tier: QualityTier = QualityTier.DEAD
    interference_count: int = 0
    handover_stable: bool = True
    weights: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def best_row(self) -> Optional[ProbeRow]:
        return self.rows[0] if self.rows else None

    def explanation_context(self) -> dict:
        """
        Numeric context block consumed by the explanation service.

        Powers are rounded to 0.1 dB and distances to 0.1 m. An empty probe
        has no bestSignal. An unbounded margin (fewer than two transmitters)
        is None so the block stays strict JSON.
        """
        def row_context(row: ProbeRow) -> dict:
            return {
                'id': row.transmitter_id,
                'power': round(row.received_power_dbm, 1),
                'quality': classify_quality(row.received_power_dbm).value,
                'distance': round(row.distance_m, 1),
                'frequency': row.frequency_mhz,
                'pathLoss': round(row.path_loss_db, 1),
                'los': row.los,
            }

        best = self.best_row
        return {
            'bestSignal': None if best is None else {
                'txId': best.transmitter_id,
                'power': round(best.received_power_dbm, 1),
                'quality': self.quality_tier.value,
                'distance': round(best.distance_m, 1),
                'frequency': best.frequency_mhz,
            },
            'margin': None if np.isinf(self.margin_db) else round(self.margin_db, 1),
            'allTransmitters': [row_context(r) for r in self.rows],
            'interferenceCount': self.interference_count,
            'handoverStable': self.handover_stable,
        }


def summarize_probe(rows: Sequence[ProbeRow], config: Optional[ProbeConfig] = None) -> ProbeResult:
    """
    Rank probe rows and derive the quality, interference and handover metrics.

    Args:
        rows: Rows in transmitter input order
        config: Probe thresholds

    Returns:
        ProbeResult
    """
    config = config or ProbeConfig()
    if not rows:
        return ProbeResult()

    powers = np.array([r.received_power_dbm for r in rows], dtype=np.float64)
    ranked = sorted(rows, key=lambda r: r.received_power_dbm, reverse=True)

    best_power = ranked[0].received_power_dbm
    if len(ranked) > 1:
        margin = best_power - ranked[1].received_power_dbm
    else:
        margin = float('inf')

    return ProbeResult(
        rows=ranked,
        best_index=int(np.argmax(powers)),
        margin_db=float(margin),
        best_power_dbm=float(best_power),
        quality_tier=classify_quality(best_power),
        interference_count=int(np.count_nonzero(powers > config.strong_signal_dbm)),
        handover_stable=bool(margin >= config.handover_margin_db),
        weights=softmax_weights(powers, config.softmax_temperature),
    )


class PointProbe:
    """
    Reusable point probe bound to one geometry index.

    Example:
        probe = PointProbe(index)
        result = probe.probe((0, 2, 100), transmitters)
        print(result.quality_tier, result.margin_db)
    """

    def __init__(self, geometry_index: Optional[GeometryIndex], config: Optional[ProbeConfig] = None):
        """
        Initialize the probe.

        Args:
            geometry_index: Index used for line-of-sight queries
            config: Probe parameters
        """
        self.geometry_index = geometry_index
        self.config = config or ProbeConfig()
        self._rows: List[ProbeRow] = []
        self.probe_count = 0

    def line_of_sight(self, point: VectorLike, tx_position: VectorLike) -> bool:
        """
        True if nothing blocks the straight path from point to tx_position.

        The query runs from the probe point toward the transmitter and stops
        short of it by the LOS clearance, so the transmitter's own mount does
        not count as an obstruction.
        """
        direction, dist = direction_and_distance(point, tx_position)
        clearance = self.config.los_clearance_m
        reach = max(dist - clearance, clearance)
        hit = safe_nearest_hit(self.geometry_index, point, direction, reach)
        return hit is None

    def received_power(self, point: VectorLike, tx: Transmitter, index: int) -> ProbeRow:
        """Received power row for one transmitter."""
        p = as_vec3(point)
        _, dist = direction_and_distance(p, tx.pos)
        los = self.line_of_sight(p, tx.pos)

        path_loss = free_space_path_loss(dist, tx.frequency_mhz)
        if not los:
            path_loss += self.config.obstruction_penalty_db

        return ProbeRow(
            index=index,
            transmitter_id=tx.id,
            received_power_dbm=float(tx.power_dbm - path_loss),
            los=los,
            distance_m=dist,
            frequency_mhz=float(tx.frequency_mhz),
            path_loss_db=float(path_loss),
        )

    def probe(self, point: VectorLike, transmitters: Sequence[Transmitter]) -> ProbeResult:
        """
        Probe the signal environment at a point.

        Args:
            point: Query point (m)
            transmitters: Snapshot of active transmitters

        Returns:
            ProbeResult (empty when there are no transmitters)
        """
        self._rows.clear()
        for idx, tx in enumerate(transmitters):
            self._rows.append(self.received_power(point, tx, idx))

        self.probe_count += 1
        return summarize_probe(self._rows, self.config)


def probe(
    point: VectorLike,
    transmitters: Sequence[Transmitter],
    geometry_index: Optional[GeometryIndex],
    config: Optional[ProbeConfig] = None,
) -> ProbeResult:
    """
    One-shot probe; prefer a long-lived PointProbe in per-frame code.
    """
    return PointProbe(geometry_index, config).probe(point, transmitters)
