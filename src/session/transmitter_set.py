"""
Transmitter Set

The session's single source of truth for placed transmitters. All
mutations go through one writer; readers take snapshot(), an immutable
tuple of immutable Transmitter values that stays valid however the set
changes afterwards. Background ray rebuilds and per-frame probes always
work from a snapshot.
"""

import threading
from dataclasses import replace
from typing import Optional, Tuple

import numpy as np

from common.constants import DEFAULT_POWER_DBM, DEFAULT_FREQUENCY_MHZ, TX_COLORS
from common.logging_config import ServiceLogger
from common.vector_math import as_vec3, VectorLike
from raytracer.mobility import advance_transmitter
from raytracer.ray_bundle import transmitter_signature
from raytracer.transmitter import Mobility, Transmitter, make_transmitter


class TransmitterSet:
    """
    Ordered, versioned collection of transmitters.

    The version counter increases on every change, including mobility
    ticks that move a transmitter, so consumers can cheaply detect that
    cached derived state (field slots, ray bundles) is out of date.
    """

    def __init__(self):
        self._transmitters: Tuple[Transmitter, ...] = ()
        self._lock = threading.Lock()
        self.version = 0
        self.logger = ServiceLogger("radiocity", "transmitters")

    def __len__(self) -> int:
        return len(self._transmitters)

    def __iter__(self):
        return iter(self._transmitters)

    def _commit(self, transmitters: Tuple[Transmitter, ...]) -> None:
        with self._lock:
            self._transmitters = transmitters
            self.version += 1

    def snapshot(self) -> Tuple[Transmitter, ...]:
        """Immutable view of the current transmitters."""
        return self._transmitters

    def signature(self) -> Tuple:
        return transmitter_signature(self._transmitters)

    def get(self, tx_id: str) -> Optional[Transmitter]:
        for tx in self._transmitters:
            if tx.id == tx_id:
                return tx
        return None

    def add(
        self,
        position: VectorLike,
        mobility: Optional[Mobility] = None,
        power_dbm: float = DEFAULT_POWER_DBM,
        frequency_mhz: float = DEFAULT_FREQUENCY_MHZ,
    ) -> Transmitter:
        """
        Place a new transmitter, coloured by its index in the set.

        Returns:
            The created transmitter
        """
        tx = make_transmitter(
            position,
            len(self._transmitters),
            mobility=mobility,
            power_dbm=power_dbm,
            frequency_mhz=frequency_mhz,
        )
        self._commit(self._transmitters + (tx,))
        self.logger.info(
            f"Added TX {tx.id[:8]} at ({tx.position[0]:.1f}, {tx.position[1]:.1f}, "
            f"{tx.position[2]:.1f}), mobility={tx.mobility.kind}"
        )
        return tx

    def add_random(self, rng: Optional[np.random.Generator] = None) -> Transmitter:
        """Place a transmitter at a random position over a 400 m square."""
        rng = rng or np.random.default_rng()
        return self.add((
            (rng.random() - 0.5) * 400.0,
            30.0 + rng.random() * 100.0,
            (rng.random() - 0.5) * 400.0,
        ))

    def remove(self, tx_id: str) -> bool:
        """Remove a transmitter by id; False if it is not in the set."""
        remaining = tuple(tx for tx in self._transmitters if tx.id != tx_id)
        if len(remaining) == len(self._transmitters):
            return False

        self._commit(remaining)
        self.logger.info(f"Removed TX {tx_id[:8]}")
        return True

    def remove_nearest(self, point: VectorLike) -> Optional[Transmitter]:
        """
        Remove the transmitter closest to a point.

        Returns:
            The removed transmitter, or None when the set is empty
        """
        if not self._transmitters:
            return None

        p = as_vec3(point)
        distances = [float(np.linalg.norm(tx.pos - p)) for tx in self._transmitters]
        nearest = self._transmitters[int(np.argmin(distances))]
        self.remove(nearest.id)
        return nearest

    def update(self, tx_id: str, **changes) -> Transmitter:
        """
        Replace fields of one transmitter (position, power_dbm, frequency_mhz,
        color, mobility).

        Raises:
            KeyError: If no transmitter has this id
        """
        if 'position' in changes:
            changes['position'] = tuple(float(c) for c in as_vec3(changes['position']))

        updated = None
        result = []
        for tx in self._transmitters:
            if tx.id == tx_id:
                updated = replace(tx, **changes)
                result.append(updated)
            else:
                result.append(tx)

        if updated is None:
            raise KeyError(f"Unknown transmitter: {tx_id}")

        self._commit(tuple(result))
        return updated

    def recolor(self, offset: int = 1) -> None:
        """Reassign palette colours shifted by offset."""
        self._commit(tuple(
            replace(tx, color=TX_COLORS[(i + offset) % len(TX_COLORS)])
            for i, tx in enumerate(self._transmitters)
        ))

    def clear(self) -> None:
        if self._transmitters:
            self._commit(())
            self.logger.info("Cleared all transmitters")

    def replace_all(self, transmitters) -> None:
        """Swap in a whole new transmitter list (used by presets)."""
        self._commit(tuple(transmitters))

    def tick(self, dt: float) -> bool:
        """
        Apply one mobility step to every moving transmitter.

        Returns:
            True if any transmitter moved
        """
        if dt <= 0:
            return False

        moved = tuple(advance_transmitter(tx, dt) for tx in self._transmitters)
        if all(a is b for a, b in zip(moved, self._transmitters)):
            return False

        self._commit(moved)
        return True
