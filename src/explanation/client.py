"""
Explanation Service Client

Requests a natural-language RF analysis for a point from the external
explanation service. The engine only supplies numeric context; nothing in
the engine depends on the answer, so every failure (network error,
timeout, bad status, malformed payload) yields a degraded result instead
of an exception.

Request body:
    {
        "position": {"x": ..., "y": ..., "z": ...},
        "transmitters": [
            {"id": ..., "position": {...}, "powerDbm": ..., "freqMHz": ...}
        ]
    }

Response body:
    {"analysis": {...RfAnalysis...}, "context": {...}}
"""

import asyncio
import aiohttp
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from common.config import ExplanationConfig, get_config
from common.logging_config import ServiceLogger
from common.vector_math import as_vec3, VectorLike
from raytracer.geometry_index import GeometryIndex
from raytracer.probe import ProbeResult, QualityTier, probe
from raytracer.transmitter import Transmitter

COVERAGE_LEVELS = ("outstanding", "good", "adequate", "poor", "none")


class MalformedAnalysisError(ValueError):
    """Explanation response does not match the analysis schema."""
    pass


def _xyz(point: VectorLike) -> Dict[str, float]:
    p = as_vec3(point)
    return {'x': float(p[0]), 'y': float(p[1]), 'z': float(p[2])}


@dataclass
class ExplanationRequest:
    """Request body for the explanation service."""
    position: Dict[str, float]
    transmitters: List[Dict[str, Any]]

    @classmethod
    def from_probe(cls, point: VectorLike, transmitters: Sequence[Transmitter]) -> 'ExplanationRequest':
        return cls(
            position=_xyz(point),
            transmitters=[
                {
                    'id': tx.id,
                    'position': _xyz(tx.position),
                    'powerDbm': float(tx.power_dbm),
                    'freqMHz': float(tx.frequency_mhz),
                }
                for tx in transmitters
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'position': self.position, 'transmitters': self.transmitters}


def build_context(
    point: VectorLike,
    transmitters: Sequence[Transmitter],
    probe_result: Optional[ProbeResult] = None,
    geometry_index: Optional[GeometryIndex] = None,
) -> Dict[str, Any]:
    """
    Numeric context block for a point.

    Without a probe result, the point is probed against geometry_index
    (open space when None, matching a service that has no city model).
    """
    if probe_result is None:
        probe_result = probe(point, transmitters, geometry_index)

    p = as_vec3(point)
    context = {'position': f"({p[0]:.1f}, {p[1]:.1f}, {p[2]:.1f})"}
    context.update(probe_result.explanation_context())
    return context


@dataclass
class SignalStrength:
    value: str
    quality: QualityTier
    factors: List[str] = field(default_factory=list)


@dataclass
class Coverage:
    voice: str
    data: str
    overall: str


@dataclass
class InterferenceAssessment:
    count: int
    assessment: str


@dataclass
class HandoverAssessment:
    stable: bool
    assessment: str


@dataclass
class KeyMetrics:
    best_tx: str
    distance: str
    frequency: str


@dataclass
class RfAnalysis:
    """Structured analysis returned by the explanation service."""
    summary: str
    signal_strength: SignalStrength
    coverage: Coverage
    interference: InterferenceAssessment
    handover: HandoverAssessment
    key_metrics: KeyMetrics

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RfAnalysis':
        """
        Parse the service's analysis object.

        Raises:
            MalformedAnalysisError: On missing keys or out-of-schema values
        """
        try:
            signal = data['signalStrength']
            coverage = data['coverage']
            interference = data['interference']
            handover = data['handover']
            metrics = data['keyMetrics']

            overall = str(coverage['overall'])
            if overall not in COVERAGE_LEVELS:
                raise MalformedAnalysisError(f"Unknown coverage level: {overall}")

            return cls(
                summary=str(data['summary']),
                signal_strength=SignalStrength(
                    value=str(signal['value']),
                    quality=QualityTier(signal['quality']),
                    factors=[str(f) for f in signal.get('factors', [])],
                ),
                coverage=Coverage(
                    voice=str(coverage['voice']),
                    data=str(coverage['data']),
                    overall=overall,
                ),
                interference=InterferenceAssessment(
                    count=int(interference['count']),
                    assessment=str(interference['assessment']),
                ),
                handover=HandoverAssessment(
                    stable=bool(handover['stable']),
                    assessment=str(handover['assessment']),
                ),
                key_metrics=KeyMetrics(
                    best_tx=str(metrics['bestTx']),
                    distance=str(metrics['distance']),
                    frequency=str(metrics['frequency']),
                ),
            )
        except MalformedAnalysisError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedAnalysisError(f"Malformed analysis: {e}") from e


@dataclass
class ExplanationResult:
    """
    Outcome of an explanation request.

    Attributes:
        analysis: Parsed analysis (None when degraded)
        degraded: True if no analysis is available
        error: Reason for degradation
        context: Numeric context (from the service, or computed locally)
    """
    analysis: Optional[RfAnalysis] = None
    degraded: bool = False
    error: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)


class ExplanationClient:
    """
    Client for the RF explanation service

    Example:
        client = ExplanationClient()
        result = await client.explain((10, 2, 50), session.transmitters.snapshot())
        if not result.degraded:
            print(result.analysis.summary)
    """

    def __init__(self, config: Optional[ExplanationConfig] = None):
        """
        Initialize explanation client

        Args:
            config: Service endpoint settings (defaults to get_config())
        """
        self.config = config or get_config().explanation
        self.logger = ServiceLogger("radiocity", "explanation")

        # Statistics
        self._requests = 0
        self._failures = 0

    def _degraded(self, reason: str, context: Dict[str, Any]) -> ExplanationResult:
        self._failures += 1
        return ExplanationResult(analysis=None, degraded=True, error=reason, context=context)

    async def explain(
        self,
        point: VectorLike,
        transmitters: Sequence[Transmitter],
        probe_result: Optional[ProbeResult] = None,
    ) -> ExplanationResult:
        """
        Request an analysis of the signal environment at a point.

        Args:
            point: Query point (m)
            transmitters: Transmitter snapshot
            probe_result: Engine probe at the point, used for the local context

        Returns:
            ExplanationResult; degraded on any failure
        """
        if not transmitters:
            return self._degraded("No transmitters", {})

        context = build_context(point, transmitters, probe_result)

        if not self.config.enabled:
            return self._degraded("Explanation service disabled", context)

        request = ExplanationRequest.from_probe(point, transmitters)
        self._requests += 1

        try:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_sec)
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.config.endpoint_url,
                    json=request.to_dict(),
                    timeout=timeout,
                ) as response:
                    if response.status != 200:
                        self.logger.error(
                            f"HTTP {response.status} from explanation service",
                            extra={'status_code': response.status}
                        )
                        return self._degraded(f"HTTP {response.status}", context)

                    payload = await response.json()

            analysis = RfAnalysis.from_dict(payload['analysis'])
            if isinstance(payload.get('context'), dict):
                context = payload['context']

            self.logger.info(
                f"Explanation received: {analysis.signal_strength.quality.value}, "
                f"coverage {analysis.coverage.overall}"
            )
            return ExplanationResult(analysis=analysis, degraded=False, context=context)

        except asyncio.TimeoutError:
            self.logger.error("Timeout requesting RF explanation")
            return self._degraded("Timeout", context)
        except aiohttp.ClientError as e:
            self.logger.error(f"HTTP error requesting RF explanation: {e}", exc_info=True)
            return self._degraded(f"HTTP error: {e}", context)
        except (ValueError, KeyError, TypeError) as e:
            self.logger.error(f"Malformed RF explanation: {e}", exc_info=True)
            return self._degraded(f"Malformed response: {e}", context)

    def get_statistics(self) -> Dict[str, int]:
        return {
            'requests': self._requests,
            'failures': self._failures,
        }
