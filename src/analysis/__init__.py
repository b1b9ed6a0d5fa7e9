"""
RadioCity Analysis Module

Route-level analysis built on the point probe.

Components:
- DriveTestAnalyzer: Quality trace and handover events along a route
- ProbeVehicle: Ping-pong vehicle that carries the live probe along a route
"""

from .drive_test import (
    DriveTestAnalyzer,
    DriveTestResult,
    TraceSample,
    HandoverEvent,
    analyze_path,
    drive_test_color,
    resample_path,
)
from .probe_vehicle import ProbeVehicle

__all__ = [
    'DriveTestAnalyzer',
    'DriveTestResult',
    'TraceSample',
    'HandoverEvent',
    'analyze_path',
    'drive_test_color',
    'resample_path',
    'ProbeVehicle',
]
