# officehours/quality.py

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from core.errors import InvalidRequest, NotFound, StorageUnavailable, Unauthorized
from .machine import round_half_up
from .models import OfficeHourSession

logger = logging.getLogger(__name__)

# A sample counts as stable when all three hold
STABLE_MAX_RTT = 300
STABLE_MAX_PACKET_LOSS = 5
STABLE_MIN_BITRATE = 750000

# (threshold, penalty) pairs, checked in order, first match wins
RTT_PENALTIES = ((500, 30), (300, 20), (150, 10))
PACKET_LOSS_PENALTIES = ((10, 40), (5, 25), (2, 10))
BITRATE_PENALTIES = ((250000, 20), (750000, 10), (1500000, 5))
STABILITY_PENALTIES = ((70, 10), (85, 5))

# Per-session issue thresholds, and the share of sessions that makes an issue "common"
ISSUE_RULES = (
    ('network_latency', 'High network latency', lambda s: s['rtt'] is not None and s['rtt'] > 300, 0.20),
    ('packet_loss', 'Significant packet loss', lambda s: s['packet_loss'] is not None and s['packet_loss'] > 5, 0.15),
    ('low_bandwidth', 'Low bandwidth', lambda s: s['bitrate'] is not None and s['bitrate'] < 500000, 0.25),
    ('quality_stability', 'Unstable connection quality',
     lambda s: s['stable_pct'] is not None and s['stable_pct'] < 70, 0.30),
)

QUALITY_TIERS = ((90, 'excellent'), (75, 'good'), (60, 'fair'))


@dataclass(frozen=True)
class QualitySample:
    timestamp: str
    rtt: float
    packet_loss: float
    bitrate: float
    frame_rate: float
    resolution: Optional[str] = None

    @classmethod
    def from_payload(cls, data, now=None):
        values = {}
        for key, name in (('rtt', 'rtt'), ('packetLoss', 'packet_loss'), ('bitrate', 'bitrate'), ('frameRate', 'frame_rate')):
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise InvalidRequest(f"'{key}' must be a non-negative number")
            values[name] = value
        resolution = data.get('resolution')
        if resolution is not None and not isinstance(resolution, str):
            raise InvalidRequest("'resolution' must be a string")
        return cls(timestamp=(now or timezone.now()).isoformat(), resolution=resolution, **values)

    @classmethod
    def from_dict(cls, data):
        return cls(**data)

    def to_dict(self):
        return asdict(self)

    def is_stable(self):
        return (
            self.rtt < STABLE_MAX_RTT
            and self.packet_loss < STABLE_MAX_PACKET_LOSS
            and self.bitrate > STABLE_MIN_BITRATE
        )


def _mean(values):
    return sum(values) / len(values)


def average_stats(samples):
    """
    Plain arithmetic mean of every sample so far, recomputed from the
    whole list each time. Empty dict when there are no samples.
    """
    if not samples:
        return {}
    return {
        'rtt': _mean([s.rtt for s in samples]),
        'packet_loss': _mean([s.packet_loss for s in samples]),
        'bitrate': _mean([s.bitrate for s in samples]),
        'frame_rate': _mean([s.frame_rate for s in samples]),
        'resolution': samples[-1].resolution,
    }


def stable_quality_percentage(samples):
    if not samples:
        return None
    stable = sum(1 for s in samples if s.is_stable())
    return stable / len(samples) * 100


def _penalty(value, tiers, higher_is_worse=True):
    for threshold, penalty in tiers:
        if (value > threshold) if higher_is_worse else (value < threshold):
            return penalty
    return 0


def quality_score(stats, stable_pct):
    """
    Starts at 100 and takes off a fixed penalty per dimension (latency,
    loss, bitrate, stability), each judged on its own. This is a house
    rule for ranking sessions, not a measurement. A dimension with no
    data costs nothing. Always an int in [0, 100].
    """
    score = 100
    if stats:
        score -= _penalty(stats['rtt'], RTT_PENALTIES)
        score -= _penalty(stats['packet_loss'], PACKET_LOSS_PENALTIES)
        score -= _penalty(stats['bitrate'], BITRATE_PENALTIES, higher_is_worse=False)
    if stable_pct is not None:
        score -= _penalty(stable_pct, STABILITY_PENALTIES, higher_is_worse=False)
    return max(0, min(100, int(score)))


def quality_tier(score):
    for minimum, name in QUALITY_TIERS:
        if score >= minimum:
            return name
    return 'poor'


def summarize_events(events):
    counts = {}
    for event in events:
        name = event.get('event') or event.get('type')
        counts[name] = counts.get(name, 0) + 1
    return counts


def _issue_inputs(stats, stable_pct):
    return {
        'rtt': stats.get('rtt'),
        'packet_loss': stats.get('packet_loss'),
        'bitrate': stats.get('bitrate'),
        'stable_pct': stable_pct,
    }


def session_issues(stats, stable_pct):
    inputs = _issue_inputs(stats, stable_pct)
    return [name for name, _, check, _ in ISSUE_RULES if check(inputs)]


def samples_of(session):
    return [QualitySample.from_dict(data) for data in session.analytics.get('network_quality', [])]


def session_summary(session):
    samples = samples_of(session)
    stats = average_stats(samples)
    stable_pct = stable_quality_percentage(samples)
    score = quality_score(stats, stable_pct)
    quality_changes = session.analytics.get('quality_changes', [])
    events = list(session.analytics.get('participant_events', []))
    events.extend({'event': 'quality_change'} for _ in quality_changes)
    return {
        'sessionId': session.pk,
        'roomId': session.room_id,
        'status': session.status,
        'startTime': session.analytics.get('join_time'),
        'endTime': session.analytics.get('leave_time'),
        'duration': session.analytics.get('actual_duration') or 0,
        'qualityScore': score,
        'qualityTier': quality_tier(score),
        'qualityMetrics': {
            'averageRTT': stats.get('rtt'),
            'averagePacketLoss': stats.get('packet_loss'),
            'averageBitrate': stats.get('bitrate'),
            'averageFrameRate': stats.get('frame_rate'),
            'stableQualityPercentage': stable_pct,
            'qualityChangeCount': len(quality_changes),
            'sampleCount': len(samples),
        },
        'eventSummary': summarize_events(events),
        'issues': session_issues(stats, stable_pct),
    }


def _mean_or_none(values):
    values = [v for v in values if v is not None]
    return _mean(values) if values else None


def aggregate(summaries):
    """
    Roll-up over many session summaries: score distribution, network
    averages and the issues that show up in a large share of sessions.
    """
    total = len(summaries)
    distribution = {'excellent': 0, 'good': 0, 'fair': 0, 'poor': 0}
    for summary in summaries:
        distribution[quality_tier(summary['qualityScore'])] += 1

    top_issues = []
    for name, description, _, share in ISSUE_RULES:
        affected = sum(1 for s in summaries if name in s['issues'])
        if total and affected > total * share:
            top_issues.append({
                'type': name,
                'description': f'{description} in more than {int(share * 100)}% of sessions',
                'affectedSessions': affected,
                'percentage': round_half_up(affected / total * 100),
            })

    return {
        'totalSessions': total,
        'totalDuration': sum(s['duration'] for s in summaries),
        'averageQualityScore': _mean([s['qualityScore'] for s in summaries]) if total else None,
        'qualityDistribution': distribution,
        'networkStats': {
            'averageRTT': _mean_or_none([s['qualityMetrics']['averageRTT'] for s in summaries]),
            'averagePacketLoss': _mean_or_none([s['qualityMetrics']['averagePacketLoss'] for s in summaries]),
            'averageBitrate': _mean_or_none([s['qualityMetrics']['averageBitrate'] for s in summaries]),
        },
        'topIssues': top_issues,
    }


"""
Keeps the network quality record of office hour sessions. Clients
post a sample every few seconds during a call; each one is appended
to the session and the running averages are recomputed from the full
list. score() always works from the full history at call time, so it
never lags behind the samples; finalize() stores the stable-quality
percentage on the session when the call is over.
"""
class QualityAggregator:

    def _update(self, session_id, actor_id, change):
        try:
            with transaction.atomic():
                session = OfficeHourSession.objects.select_for_update().filter(pk=session_id).first()
                if session is None:
                    raise NotFound('Office hour not found')
                if actor_id is not None and not session.is_party(actor_id):
                    raise Unauthorized('Not authorized to access this office hour')
                result = change(session)
                session.save(update_fields=['analytics', 'updated_at'])
        except DatabaseError as exc:
            logger.error("Saving quality data for office hour %s failed: %s", session_id, exc, exc_info=True)
            raise StorageUnavailable() from exc
        return result

    def _load(self, session_id, actor_id=None):
        try:
            session = OfficeHourSession.objects.filter(pk=session_id).first()
        except DatabaseError as exc:
            raise StorageUnavailable() from exc
        if session is None:
            raise NotFound('Office hour not found')
        if actor_id is not None and not session.is_party(actor_id):
            raise Unauthorized('Not authorized to access this office hour')
        return session

    def ingest_sample(self, session_id, sample, actor_id=None):
        # Any status: pre-call network checks and a last sample after the end both count
        def change(session):
            network_quality = session.analytics.setdefault('network_quality', [])
            network_quality.append(sample.to_dict())
            stats = average_stats(samples_of(session))
            session.analytics['average_stats'] = stats
            return stats

        stats = self._update(session_id, actor_id, change)
        logger.debug("Quality sample stored for office hour %s", session_id)
        return stats

    def record_quality_change(self, session_id, from_quality, to_quality, reason='', actor_id=None, now=None):
        entry = {
            'timestamp': (now or timezone.now()).isoformat(),
            'from': from_quality,
            'to': to_quality,
            'reason': reason,
        }

        def change(session):
            session.analytics.setdefault('quality_changes', []).append(entry)
            return entry

        self._update(session_id, actor_id, change)
        logger.info("Quality change for office hour %s: %s -> %s", session_id, from_quality, to_quality)
        return entry

    def finalize(self, session_id, actor_id=None, now=None):
        def change(session):
            samples = samples_of(session)
            session.analytics['average_stats'] = average_stats(samples)
            session.analytics['stable_quality_percentage'] = stable_quality_percentage(samples)
            session.analytics['finalized_at'] = (now or timezone.now()).isoformat()
            return session_summary(session)

        summary = self._update(session_id, actor_id, change)
        logger.info("Office hour %s finalized with quality score %s", session_id, summary['qualityScore'])
        return summary

    def score(self, session_id, actor_id=None):
        session = self._load(session_id, actor_id)
        samples = samples_of(session)
        return quality_score(average_stats(samples), stable_quality_percentage(samples))

    def summary(self, session_id, actor_id=None):
        return session_summary(self._load(session_id, actor_id))

    def aggregate_for(self, user):
        # Sessions without any samples have nothing to say about quality
        sessions = OfficeHourSession.objects.filter(Q(instructor=user) | Q(student=user))
        summaries = [session_summary(session) for session in sessions]
        return aggregate([s for s in summaries if s['qualityMetrics']['sampleCount']])
