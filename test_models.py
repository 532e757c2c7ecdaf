#!/usr/bin/env python3
"""Tests for video descriptors and session state."""

from datetime import datetime, timedelta, timezone

from watch_earn.models import ClaimStatus, PlaybackSession, VideoDescriptor, parse_timestamp

from conftest import make_row

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

def test_from_row_defaults():
    video = VideoDescriptor.from_row({'id': 'abc', 'youtube_url': 'https://youtu.be/dQw4w9WgXcQ', 'title': 'T'})
    assert video.id == 'abc'
    assert video.source_id == 'dQw4w9WgXcQ'
    assert video.target_duration_seconds == 30
    assert video.reward_amount == 10
    assert video.watch_url == 'https://www.youtube.com/watch?v=dQw4w9WgXcQ'

def test_from_row_prefers_video_id_and_clamps():
    video = VideoDescriptor.from_row({
        'video_id': 'vid', 'id': 'row', 'youtube_url': 'https://youtu.be/dQw4w9WgXcQ', 'title': 'T',
        'duration_seconds': -5, 'coin_reward': 'lots',
    })
    assert video.id == 'vid'
    assert video.target_duration_seconds == 0
    assert video.reward_amount == 10

def test_from_row_uses_resolver():
    video = VideoDescriptor.from_row(make_row('x'), resolver=lambda url: 'resolved-id')
    assert video.source_id == 'resolved-id'

def test_unresolvable_url_gives_empty_source():
    video = VideoDescriptor.from_row(make_row('x', youtube_url='https://example.com/video'))
    assert video.source_id == ''

def test_servable_filter():
    assert VideoDescriptor.from_row(make_row('a')).is_servable(NOW)
    assert not VideoDescriptor.from_row(make_row('a', title='')).is_servable(NOW)
    assert not VideoDescriptor.from_row(make_row('a', completed=True)).is_servable(NOW)
    assert not VideoDescriptor.from_row(make_row('a', views_count=100)).is_servable(NOW)
    assert not VideoDescriptor.from_row(make_row('a', target_views=0)).is_servable(NOW)
    assert not VideoDescriptor.from_row(make_row('a', status='paused')).is_servable(NOW)
    assert VideoDescriptor.from_row(make_row('a', status='repromoted')).is_servable(NOW)

def test_on_hold_uses_created_at_window():
    created = (NOW - timedelta(minutes=5)).isoformat()
    video = VideoDescriptor.from_row(make_row('a', status='on_hold', created_at=created))
    assert video.is_on_hold(NOW, hold_minutes=10)
    assert video.should_skip(NOW)
    assert not video.is_on_hold(NOW + timedelta(minutes=6), hold_minutes=10)
    assert not video.should_skip(NOW + timedelta(minutes=6))

def test_hold_until_takes_precedence():
    video = VideoDescriptor.from_row(make_row('a', hold_until=(NOW + timedelta(hours=1)).isoformat()))
    assert video.should_skip(NOW)
    assert not video.should_skip(NOW + timedelta(hours=2))

def test_deleted_is_skipped():
    video = VideoDescriptor.from_row(make_row('a', deleted_at='2024-01-02T00:00:00Z'))
    assert video.should_skip(NOW)

def test_parse_timestamp():
    assert parse_timestamp('2024-01-01T00:00:00Z') == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp('2024-01-01T00:00:00').tzinfo == timezone.utc
    assert parse_timestamp('garbage') is None
    assert parse_timestamp(None) is None

def test_session_progress_and_identity():
    video = VideoDescriptor.from_row(make_row('a', duration=20))
    first = PlaybackSession(video=video)
    second = PlaybackSession(video=video)
    assert first.tag != second.tag
    assert first.load_token != second.load_token

    first.accumulated_watch_seconds = 5
    assert first.remaining_seconds == 15
    assert first.progress == 0.25
    assert not first.target_reached
    data = first.to_dict()
    assert data['claim_status'] == ClaimStatus.IDLE.value
    assert data['watched_seconds'] == 5

def test_zero_target_is_reached_immediately():
    session = PlaybackSession(video=VideoDescriptor.from_row(make_row('a', duration=0)))
    assert session.target_reached
    assert session.progress == 1.0
