"""
Unit Tests for the Explanation Service Client

Tests request construction, response parsing and the degraded paths.
"""

import pytest
import asyncio
import aiohttp
from unittest.mock import AsyncMock, MagicMock, patch
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from common.config import ExplanationConfig
from explanation.client import (
    ExplanationClient,
    ExplanationRequest,
    MalformedAnalysisError,
    RfAnalysis,
    build_context,
)
from raytracer.probe import QualityTier
from raytracer.transmitter import Transmitter


@pytest.fixture
def transmitters():
    return (
        Transmitter(id="tx-a", position=(0.0, 30.0, 0.0), power_dbm=36.0, frequency_mhz=2400.0),
        Transmitter(id="tx-b", position=(400.0, 30.0, 0.0), power_dbm=30.0, frequency_mhz=900.0),
    )


@pytest.fixture
def client():
    return ExplanationClient(ExplanationConfig(endpoint_url="http://rf.test/api/explain-rf", timeout_sec=5))


@pytest.fixture
def sample_analysis():
    return {
        "summary": "Strong line-of-sight signal from a nearby site.",
        "signalStrength": {
            "value": "-44.0 dBm",
            "quality": "excellent",
            "factors": ["short distance", "line of sight"],
        },
        "coverage": {
            "voice": "Clear voice calls.",
            "data": "High throughput.",
            "overall": "outstanding",
        },
        "interference": {"count": 1, "assessment": "Single dominant server."},
        "handover": {"stable": True, "assessment": "Large margin."},
        "keyMetrics": {"bestTx": "tx-a", "distance": "100.0", "frequency": "2400"},
    }


def session_post(mock_session):
    # ClientSession.post is a plain call returning an async context manager
    session = mock_session.return_value.__aenter__.return_value
    session.post = MagicMock()
    return session.post


def mock_post(mock_session, response):
    session_post(mock_session).return_value.__aenter__.return_value = response


class TestRequest:

    def test_request_body(self, transmitters):
        body = ExplanationRequest.from_probe((1.5, 2.0, -3.0), transmitters).to_dict()

        assert body['position'] == {'x': 1.5, 'y': 2.0, 'z': -3.0}
        assert len(body['transmitters']) == 2
        first = body['transmitters'][0]
        assert first == {
            'id': 'tx-a',
            'position': {'x': 0.0, 'y': 30.0, 'z': 0.0},
            'powerDbm': 36.0,
            'freqMHz': 2400.0,
        }

    def test_context(self, transmitters):
        ctx = build_context((100.0, 30.0, 0.0), transmitters)

        assert ctx['position'] == "(100.0, 30.0, 0.0)"
        assert ctx['bestSignal']['txId'] == "tx-a"
        assert ctx['bestSignal']['distance'] == pytest.approx(100.0)
        assert ctx['interferenceCount'] >= 1
        assert isinstance(ctx['handoverStable'], bool)
        assert len(ctx['allTransmitters']) == 2


class TestAnalysisParsing:

    def test_parse(self, sample_analysis):
        analysis = RfAnalysis.from_dict(sample_analysis)
        assert analysis.signal_strength.quality is QualityTier.EXCELLENT
        assert analysis.coverage.overall == "outstanding"
        assert analysis.interference.count == 1
        assert analysis.handover.stable is True
        assert analysis.key_metrics.best_tx == "tx-a"
        assert analysis.signal_strength.factors == ["short distance", "line of sight"]

    def test_missing_section(self, sample_analysis):
        del sample_analysis["handover"]
        with pytest.raises(MalformedAnalysisError):
            RfAnalysis.from_dict(sample_analysis)

    def test_unknown_quality(self, sample_analysis):
        sample_analysis["signalStrength"]["quality"] = "amazing"
        with pytest.raises(MalformedAnalysisError):
            RfAnalysis.from_dict(sample_analysis)

    def test_unknown_coverage(self, sample_analysis):
        sample_analysis["coverage"]["overall"] = "superb"
        with pytest.raises(MalformedAnalysisError):
            RfAnalysis.from_dict(sample_analysis)


class TestExplain:

    @pytest.mark.asyncio
    async def test_success(self, client, transmitters, sample_analysis):
        mock_response = AsyncMock()
        mock_response.status = 200
        mock_response.json = AsyncMock(return_value={"analysis": sample_analysis, "context": {"margin": "7.0"}})

        with patch('aiohttp.ClientSession') as mock_session:
            mock_post(mock_session, mock_response)
            result = await client.explain((100.0, 30.0, 0.0), transmitters)

            post = mock_session.return_value.__aenter__.return_value.post
            args, kwargs = post.call_args
            assert args[0] == "http://rf.test/api/explain-rf"
            assert kwargs['json']['position'] == {'x': 100.0, 'y': 30.0, 'z': 0.0}

        assert result.degraded is False
        assert result.error is None
        assert result.analysis.summary.startswith("Strong")
        assert result.context == {"margin": "7.0"}

    @pytest.mark.asyncio
    async def test_empty_transmitters_skip_request(self, client):
        with patch('aiohttp.ClientSession') as mock_session:
            result = await client.explain((0, 0, 0), [])
            mock_session.assert_not_called()

        assert result.degraded is True
        assert result.analysis is None

    @pytest.mark.asyncio
    async def test_http_error(self, client, transmitters):
        mock_response = AsyncMock()
        mock_response.status = 500

        with patch('aiohttp.ClientSession') as mock_session:
            mock_post(mock_session, mock_response)
            result = await client.explain((100.0, 30.0, 0.0), transmitters)

        assert result.degraded is True
        assert "500" in result.error
        assert result.context['bestSignal']['txId'] == "tx-a"

    @pytest.mark.asyncio
    async def test_timeout(self, client, transmitters):
        with patch('aiohttp.ClientSession') as mock_session:
            session_post(mock_session).side_effect = asyncio.TimeoutError()
            result = await client.explain((100.0, 30.0, 0.0), transmitters)

        assert result.degraded is True
        assert result.error == "Timeout"

    @pytest.mark.asyncio
    async def test_client_error(self, client, transmitters):
        with patch('aiohttp.ClientSession') as mock_session:
            session_post(mock_session).side_effect = aiohttp.ClientError("refused")
            result = await client.explain((100.0, 30.0, 0.0), transmitters)

        assert result.degraded is True
        assert result.error.startswith("HTTP error")

    @pytest.mark.asyncio
    async def test_malformed_payload(self, client, transmitters):
        mock_response = AsyncMock()
        mock_response.status = 200
        mock_response.json = AsyncMock(return_value={"unexpected": True})

        with patch('aiohttp.ClientSession') as mock_session:
            mock_post(mock_session, mock_response)
            result = await client.explain((100.0, 30.0, 0.0), transmitters)

        assert result.degraded is True
        assert result.error.startswith("Malformed")

    @pytest.mark.asyncio
    async def test_disabled(self, transmitters):
        client = ExplanationClient(ExplanationConfig(enabled=False))
        with patch('aiohttp.ClientSession') as mock_session:
            result = await client.explain((100.0, 30.0, 0.0), transmitters)
            mock_session.assert_not_called()

        assert result.degraded is True
        assert result.context['bestSignal'] is not None

    @pytest.mark.asyncio
    async def test_statistics(self, client, transmitters):
        mock_response = AsyncMock()
        mock_response.status = 503

        with patch('aiohttp.ClientSession') as mock_session:
            mock_post(mock_session, mock_response)
            await client.explain((100.0, 30.0, 0.0), transmitters)
            await client.explain((100.0, 30.0, 0.0), transmitters)

        assert client.get_statistics() == {'requests': 2, 'failures': 2}
