#!/usr/bin/env python3
"""Tests for the gated watch timer."""

from watch_earn.models import PlaybackSession, PlayerState, VideoDescriptor
from watch_earn.timer import WatchTimer

def make_timer(loop, target=3, gate=lambda: True):
    session = PlaybackSession(
        video=VideoDescriptor(id='v1', source_url='https://youtu.be/abcdefghijk', title='One',
                              target_duration_seconds=target),
        player_state=PlayerState.PLAYING,
    )
    completions = []
    timer = WatchTimer(loop, session, gate=gate, on_complete=lambda: completions.append(session.accumulated_watch_seconds))
    return timer, session, completions

def test_start_is_idempotent(loop):
    timer, session, _ = make_timer(loop)
    assert timer.start()
    assert not timer.start()
    assert len(loop.jobs(session.tag)) == 1

def test_stop_when_idle_is_harmless(loop):
    timer, session, _ = make_timer(loop)
    timer.stop()
    timer.start()
    timer.stop()
    timer.stop()
    assert not timer.is_running
    assert loop.jobs(session.tag) == []

def test_refuses_to_start_when_gate_fails(loop):
    timer, _, _ = make_timer(loop, gate=lambda: False)
    assert not timer.start()
    assert not timer.is_running

def test_completion_fires_once(loop):
    timer, session, completions = make_timer(loop, target=3)
    timer.start()
    for _ in range(6):
        timer.tick()
    assert session.accumulated_watch_seconds == 3
    assert completions == [3]
    assert not timer.is_running
    assert not timer.start()

def test_gate_rechecked_every_tick(loop):
    allowed = {'value': True}
    timer, session, _ = make_timer(loop, target=10, gate=lambda: allowed['value'])
    timer.start()
    timer.tick()
    allowed['value'] = False
    timer.tick()
    timer.tick()
    allowed['value'] = True
    timer.tick()
    assert session.accumulated_watch_seconds == 2
    assert timer.is_running

def test_ticks_after_stop_are_ignored(loop):
    timer, session, _ = make_timer(loop, target=10)
    timer.start()
    timer.tick()
    timer.stop()
    timer.tick()
    assert session.accumulated_watch_seconds == 1

def test_closed_session_never_counts(loop):
    timer, session, completions = make_timer(loop, target=1)
    timer.start()
    session.close()
    timer.tick()
    assert session.accumulated_watch_seconds == 0
    assert completions == []

def test_claimed_session_stops_counting(loop):
    timer, session, _ = make_timer(loop, target=10)
    timer.start()
    session.reward_claimed = True
    timer.tick()
    assert session.accumulated_watch_seconds == 0

def test_interval_is_configurable(loop):
    session = PlaybackSession(
        video=VideoDescriptor(id='v1', source_url='https://youtu.be/abcdefghijk', title='One',
                              target_duration_seconds=3),
        player_state=PlayerState.PLAYING,
    )
    timer = WatchTimer(loop, session, lambda: True, lambda: None, interval=5)
    timer.start()
    assert [job.interval for job in loop.jobs(session.tag)] == [5]
