#!/usr/bin/env python3
"""Tests for the watch queue cursor."""

from watch_earn.exceptions import NetworkError
from watch_earn.models import VideoDescriptor
from watch_earn.video_queue import VideoQueue

from conftest import FakeBackend, make_row

def make_queue(loop, executor, rows):
    queue = VideoQueue(FakeBackend(rows), loop, executor)
    changes = []
    queue.subscribe(lambda video, moved: changes.append((video.id if video else None, moved)))
    return queue, changes

def videos(*ids):
    return [VideoDescriptor.from_row(make_row(i)) for i in ids]

def test_refresh_filters_and_notifies(loop, executor):
    queue, changes = make_queue(loop, executor, [make_row('a'), make_row('done', views_count=500), make_row('b')])
    assert queue.refresh('user-1')
    assert queue.is_loading
    loop.drain()
    assert [v.id for v in queue.videos] == ['a', 'b']
    assert changes == [('a', False)]
    assert not queue.is_loading

def test_refresh_requires_user(loop, executor):
    queue, _ = make_queue(loop, executor, [])
    assert not queue.refresh('')
    assert queue.error == "User not authenticated"

def test_refresh_is_deduplicated(loop, executor):
    queue, _ = make_queue(loop, executor, [make_row('a')])
    assert queue.refresh('user-1')
    assert not queue.refresh('user-1')
    loop.drain()
    assert queue.backend.fetch_calls == 1

def test_advance_loops_to_head(loop, executor):
    queue, changes = make_queue(loop, executor, [])
    queue.apply(videos('a', 'b'))
    queue.advance()
    queue.advance()
    assert queue.current.id == 'a'
    assert changes == [('a', False), ('b', True), ('a', True)]

def test_advance_single_entry_still_notifies(loop, executor):
    queue, changes = make_queue(loop, executor, [])
    queue.apply(videos('a'))
    queue.advance()
    assert changes == [('a', False), ('a', True)]

def test_apply_keeps_cursor_in_range(loop, executor):
    queue, changes = make_queue(loop, executor, [])
    queue.apply(videos('a', 'b', 'c'))
    queue.move_to(2)
    queue.apply(videos('a', 'b', 'c', 'd'))
    assert queue.index == 2
    assert changes == [('a', False), ('c', True)]

def test_apply_resets_cursor_out_of_range(loop, executor):
    queue, changes = make_queue(loop, executor, [])
    queue.apply(videos('a', 'b', 'c'))
    queue.move_to(2)
    queue.apply(videos('x'))
    assert queue.index == 0
    assert changes[-1] == ('x', False)

def test_empty_list_sets_message(loop, executor):
    queue, changes = make_queue(loop, executor, [])
    queue.apply([])
    assert queue.current is None
    assert queue.error.startswith("No videos available")
    assert queue.advance() is None
    assert changes == []

def test_emptied_queue_notifies_listeners(loop, executor):
    queue, changes = make_queue(loop, executor, [])
    queue.apply(videos('a', 'b'))
    queue.apply([])
    assert queue.current is None
    assert changes == [('a', False), (None, False)]

def test_fetch_failure_keeps_list(loop, executor):
    queue, _ = make_queue(loop, executor, [make_row('a')])
    queue.refresh('user-1')
    loop.drain()
    queue.backend.fetch_error = NetworkError("offline")
    queue.refresh('user-1')
    loop.drain()
    assert [v.id for v in queue.videos] == ['a']
    assert 'offline' in queue.error

def test_remaining(loop, executor):
    queue, _ = make_queue(loop, executor, [])
    assert queue.remaining() == 0
    queue.apply(videos('a', 'b', 'c'))
    assert queue.remaining() == 2
    queue.advance()
    assert queue.remaining() == 1

def test_find_eligible_wraps_once(loop, executor):
    queue, _ = make_queue(loop, executor, [])
    held = VideoDescriptor.from_row(make_row('held', hold_until='2999-01-01T00:00:00Z'))
    queue.apply([VideoDescriptor.from_row(make_row('a'))] + [held, held])
    queue.move_to(1)
    assert queue.find_eligible() == 0
    queue.apply([held, held])
    assert queue.find_eligible() is None

def test_refresh_callback(loop, executor):
    queue, _ = make_queue(loop, executor, [make_row('a')])
    done = []
    queue.refresh('user-1', on_done=lambda: done.append(True))
    loop.drain()
    assert done == [True]
