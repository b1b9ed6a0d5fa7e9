#!/usr/bin/env python3
"""
RadioCity Standalone Demonstration

Builds a small box city, loads the interference preset and runs the
frame loop: background ray rebuilds, a probe vehicle on a drive-test
route and the interference field over the reference plane.
"""

import argparse
import asyncio
import sys
import time
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor

import numpy as np

sys.path.insert(0, str(Path(__file__).parent / "src"))

from common.config import get_config
from common.logging_config import setup_logging_from_config
from explanation.client import ExplanationClient
from raytracer.geometry_index import TriangleMeshIndex
from raytracer.materials import MaterialClass
from raytracer.ray_bundle import RayTermination
from session.simulation import Preset, SimulationSession


def build_city(seed: int = 7) -> TriangleMeshIndex:
    """Ground plane plus a 5x5 grid of towers with mixed facades"""
    rng = np.random.default_rng(seed)
    facades = [
        MaterialClass.GLASS,
        MaterialClass.CONCRETE_LOW,
        MaterialClass.CONCRETE_MID,
        MaterialClass.EMISSIVE_HIGH_RISE,
        MaterialClass.METAL,
    ]

    index = TriangleMeshIndex()
    index.add_ground_plane(300.0, MaterialClass.TERRAIN)

    for gx in range(-2, 3):
        for gz in range(-2, 3):
            if gx == 0 and gz == 0:
                continue  # central plaza
            cx, cz = gx * 90.0, gz * 90.0
            half = rng.uniform(12.0, 25.0)
            height = rng.uniform(15.0, 110.0)
            material = facades[int(rng.integers(len(facades)))]
            index.add_box((cx - half, 0.0, cz - half), (cx + half, height, cz + half), material)

    return index.build()


def print_banner(title: str):
    print("=" * 70)
    print(title)
    print("=" * 70)
    print()


def main():
    """Demonstration main"""
    parser = argparse.ArgumentParser(description="RadioCity standalone demo")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--frames", type=int, default=180, help="Frames to simulate at 60 fps")
    parser.add_argument("--explain", action="store_true", help="Query the explanation service")
    parser.add_argument("--log-level", help="Override the configured log level")
    args = parser.parse_args()

    config = get_config(args.config)
    if args.log_level:
        config.logging.level = args.log_level
    setup_logging_from_config(config.logging)

    print_banner("RADIOCITY RF PROPAGATION DEMONSTRATION")

    index = build_city()
    print(f"City: {index.triangle_count} triangles")

    with ThreadPoolExecutor(max_workers=config.ray_tracing.rebuild_workers) as pool:
        session = SimulationSession(index, config=config, executor=pool)
        txs = session.load_preset(Preset.INTERFERENCE)
        print(f"Preset '{Preset.INTERFERENCE}': {len(txs)} transmitters")
        for tx in txs:
            print(f"  {tx.id[:8]}  pos=({tx.position[0]:.0f}, {tx.position[1]:.0f}, {tx.position[2]:.0f})"
                  f"  {tx.power_dbm:.0f} dBm  {tx.frequency_mhz:.0f} MHz")
        print()

        session.tick(0.0)
        start = time.perf_counter()
        session.scheduler.wait(timeout=120.0)
        print(f"Ray rebuild: {(time.perf_counter() - start) * 1000:.0f} ms")

        for tx_id, bundles in session.bundles.items():
            reasons = {r: sum(1 for b in bundles if b.termination is r) for r in RayTermination}
            bounces = sum(b.bounce_count for b in bundles)
            print(f"  {tx_id[:8]}: {len(bundles)} bundles, {bounces} bounces, "
                  + ", ".join(f"{r.value}={n}" for r, n in reasons.items()))
        print()

        print_banner("DRIVE TEST")

        route = [(-220.0, 1.5, -45.0), (220.0, 1.5, -45.0), (220.0, 1.5, 45.0), (-220.0, 1.5, 45.0)]
        result = session.set_route(route)
        summary = result.summary()
        print(f"Samples: {summary['samples']}  Handovers: {summary['handovers']}")
        print(f"Power: min {summary['min_power_dbm']:.1f}  max {summary['max_power_dbm']:.1f}  "
              f"mean {summary['mean_power_dbm']:.1f} dBm")
        for event in result.handover_events:
            p = event.position
            print(f"  handover {event.from_index} -> {event.to_index} at ({p[0]:.0f}, {p[2]:.0f})")
        print()

        print_banner("FRAME LOOP")

        for i in range(args.frames):
            frame = session.tick(1 / 60)
            if i % 30 == 0 and frame.vehicle_probe is not None:
                p = frame.vehicle_position
                probe = frame.vehicle_probe
                print(f"t={frame.elapsed:5.2f}s  vehicle=({p[0]:6.1f}, {p[2]:6.1f})  "
                      f"best={probe.best_power_dbm:6.1f} dBm  tier={probe.quality_tier.value:<9}  "
                      f"margin={probe.margin_db:5.1f} dB  stable={probe.handover_stable}")
        print()

        xs, zs, grid = session.field_plane(32)
        print(f"Interference field: mean {grid.mean():.3f}, max {grid.max():.3f} over {grid.size} samples")
        print()

        if args.explain and session.vehicle is not None:
            print_banner("EXPLANATION")
            client = ExplanationClient(config.explanation)
            point = session.vehicle.position
            explanation = asyncio.run(client.explain(point, session.transmitters.snapshot()))
            if explanation.degraded:
                print(f"Explanation unavailable: {explanation.error}")
                print(f"Local context: {explanation.context.get('bestSignal')}")
            else:
                print(explanation.analysis.summary)
            print()

        stats = session.scheduler.get_statistics()
        print("Scheduler Statistics:")
        print(f"  Submitted: {stats['submitted']}  Adopted: {stats['adopted']}  "
              f"Coalesced: {stats['coalesced']}  Superseded: {stats['superseded']}  "
              f"Failed: {stats['failed']}")
        print()


if __name__ == "__main__":
    main()
