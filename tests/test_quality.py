"""
Tests for network quality scoring and aggregation.
"""

import pytest

from core.errors import InvalidRequest, Unauthorized
from officehours.models import OfficeHourSession
from officehours.quality import (
    QualityAggregator,
    QualitySample,
    aggregate,
    average_stats,
    quality_score,
    quality_tier,
    stable_quality_percentage,
)


def sample(rtt=100, packet_loss=1, bitrate=2_000_000, frame_rate=30, resolution='1280x720'):
    return QualitySample('2026-03-02T10:00:00+00:00', rtt, packet_loss, bitrate, frame_rate, resolution)


class TestQualityScore:
    """The scoring rule and its edges."""

    def test_clean_call_scores_100(self):
        samples = [sample(), sample(rtt=120)]
        assert quality_score(average_stats(samples), stable_quality_percentage(samples)) == 100

    def test_mixed_call(self):
        # rtt 200 (-10), loss 3 (-10), bitrate 1M (-5), half the samples unstable (-10)
        samples = [sample(rtt=100, packet_loss=0, bitrate=1_000_000), sample(rtt=300, packet_loss=6, bitrate=1_000_000)]
        stats = average_stats(samples)
        assert stats['rtt'] == 200
        assert stable_quality_percentage(samples) == 50
        assert quality_score(stats, 50) == 65

    def test_no_samples_costs_nothing(self):
        assert average_stats([]) == {}
        assert stable_quality_percentage([]) is None
        assert quality_score({}, None) == 100

    def test_worst_case_is_clamped(self):
        stats = {'rtt': 900, 'packet_loss': 50, 'bitrate': 1000}
        assert quality_score(stats, 0) == 0

    @pytest.mark.parametrize('field, worsening', [
        ('rtt', (50, 151, 301, 501, 2000)),
        ('packet_loss', (0, 2.5, 5.5, 10.5, 60)),
        ('bitrate', (2_000_000, 1_400_000, 700_000, 200_000, 0)),
    ])
    def test_worse_network_never_scores_higher(self, field, worsening):
        base = {'rtt': 50, 'packet_loss': 0, 'bitrate': 2_000_000}
        scores = [quality_score({**base, field: value}, 100) for value in worsening]
        assert scores == sorted(scores, reverse=True)
        assert all(0 <= score <= 100 for score in scores)

    def test_lower_stability_never_scores_higher(self):
        stats = {'rtt': 50, 'packet_loss': 0, 'bitrate': 2_000_000}
        scores = [quality_score(stats, pct) for pct in (100, 85, 84, 70, 69, 0)]
        assert scores == [100, 100, 95, 95, 90, 90]

    @pytest.mark.parametrize('score, tier', [(100, 'excellent'), (90, 'excellent'), (75, 'good'), (60, 'fair'), (59, 'poor')])
    def test_tiers(self, score, tier):
        assert quality_tier(score) == tier


class TestQualitySample:
    """Parsing samples posted by clients."""

    def test_from_payload(self):
        parsed = QualitySample.from_payload({'rtt': 80, 'packetLoss': 0.5, 'bitrate': 900000, 'frameRate': 24})
        assert parsed.packet_loss == 0.5
        assert parsed.resolution is None
        assert parsed.is_stable()

    @pytest.mark.parametrize('payload', [
        {'packetLoss': 0, 'bitrate': 1, 'frameRate': 1},
        {'rtt': -1, 'packetLoss': 0, 'bitrate': 1, 'frameRate': 1},
        {'rtt': '80', 'packetLoss': 0, 'bitrate': 1, 'frameRate': 1},
        {'rtt': 1, 'packetLoss': 0, 'bitrate': 1, 'frameRate': 1, 'resolution': 720},
    ])
    def test_invalid_payloads(self, payload):
        with pytest.raises(InvalidRequest):
            QualitySample.from_payload(payload)


class TestAggregate:
    """Roll-ups over several session summaries."""

    def summary(self, score, issues=(), duration=30, rtt=100.0):
        return {
            'qualityScore': score,
            'issues': list(issues),
            'duration': duration,
            'qualityMetrics': {'averageRTT': rtt, 'averagePacketLoss': 1.0, 'averageBitrate': 1e6},
        }

    def test_distribution_and_top_issues(self):
        summaries = [
            self.summary(95, ['network_latency']),
            self.summary(80),
            self.summary(65, ['network_latency']),
            self.summary(40, ['network_latency', 'packet_loss']),
        ]

        result = aggregate(summaries)

        assert result['totalSessions'] == 4
        assert result['totalDuration'] == 120
        assert result['averageQualityScore'] == 70
        assert result['qualityDistribution'] == {'excellent': 1, 'good': 1, 'fair': 1, 'poor': 1}
        top = {issue['type']: issue for issue in result['topIssues']}
        assert top['network_latency']['percentage'] == 75
        assert top['packet_loss']['affectedSessions'] == 1

    def test_empty(self):
        result = aggregate([])
        assert result['totalSessions'] == 0
        assert result['averageQualityScore'] is None
        assert result['topIssues'] == []


@pytest.mark.django_db
class TestQualityAggregator:
    """Persisted samples, quality changes and finalization."""

    def test_samples_accepted_before_start_and_after_end(self, office_hour, student):
        aggregator = QualityAggregator()
        aggregator.ingest_sample(office_hour.pk, sample(rtt=80), actor_id=student.pk)

        office_hour.status = OfficeHourSession.COMPLETED
        office_hour.save()
        stats = aggregator.ingest_sample(office_hour.pk, sample(rtt=120), actor_id=student.pk)

        assert stats['rtt'] == 100
        office_hour.refresh_from_db()
        assert len(office_hour.analytics['network_quality']) == 2
        assert aggregator.score(office_hour.pk) == 100

    def test_outsider_cannot_post_samples(self, office_hour, outsider):
        office_hour.status = OfficeHourSession.IN_PROGRESS
        office_hour.save()
        with pytest.raises(Unauthorized):
            QualityAggregator().ingest_sample(office_hour.pk, sample(), actor_id=outsider.pk)

    def test_score_follows_every_sample(self, office_hour, student):
        office_hour.status = OfficeHourSession.IN_PROGRESS
        office_hour.save()
        aggregator = QualityAggregator()

        aggregator.ingest_sample(office_hour.pk, sample(), actor_id=student.pk)
        assert aggregator.score(office_hour.pk) == 100

        stats = aggregator.ingest_sample(office_hour.pk, sample(rtt=1100), actor_id=student.pk)
        assert stats['rtt'] == 600
        assert aggregator.score(office_hour.pk) < 100

    def test_finalize_stores_summary_fields(self, office_hour, instructor, student):
        office_hour.status = OfficeHourSession.IN_PROGRESS
        office_hour.save()
        aggregator = QualityAggregator()
        aggregator.ingest_sample(office_hour.pk, sample(), actor_id=student.pk)
        aggregator.record_quality_change(office_hour.pk, 'good', 'poor', 'bandwidth drop', actor_id=student.pk)

        summary = aggregator.finalize(office_hour.pk, actor_id=instructor.pk)

        office_hour.refresh_from_db()
        assert office_hour.analytics['stable_quality_percentage'] == 100
        assert office_hour.analytics['finalized_at'] is not None
        assert summary['qualityScore'] == 100
        assert summary['qualityMetrics']['sampleCount'] == 1
        assert summary['qualityMetrics']['qualityChangeCount'] == 1
        assert summary['eventSummary'] == {'quality_change': 1}

    def test_aggregate_skips_sessions_without_samples(self, office_hour, instructor):
        result = QualityAggregator().aggregate_for(instructor)
        assert result['totalSessions'] == 0
