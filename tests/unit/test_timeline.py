"""Test the playback timeline and playhead."""

import pytest

from magic_move.timeline import Holding, Playhead, Timeline, Transitioning


def test_total_duration():
    assert Timeline.build(1, 800).total_ms == 500
    assert Timeline.build(3, 800).total_ms == 2340
    assert Timeline.build(0, 800).total_ms == 500
    assert Timeline.build(2, 1000, 0, 0, 0).total_ms == 1000


def test_single_step_always_holds():
    timeline = Timeline.build(1, 800)
    for ms in (0, 250, 499, 500, 10_000):
        assert timeline.state_at(ms) == Holding(0)


@pytest.mark.parametrize("ms,expected", [
    (0, Holding(0)),
    (249, Holding(0)),
    (250, Transitioning(0, 1, 0.0)),
    (650, Transitioning(0, 1, 0.5)),
    (1050, Transitioning(0, 1, 1.0)),
    (1100, Holding(1)),
    (1170, Holding(1)),
    (1570, Transitioning(1, 2, 0.5)),
    (2100, Holding(2)),
    (2340, Holding(2)),
])
def test_state_sequence(ms, expected):
    assert Timeline.build(3, 800).state_at(ms) == expected


def test_elapsed_is_clamped():
    timeline = Timeline.build(3, 800)
    assert timeline.state_at(-50) == Holding(0)
    assert timeline.state_at(99_999) == Holding(2)


def test_zero_transition_jumps_to_destination():
    timeline = Timeline.build(2, 0, 100, 0, 100)
    assert timeline.total_ms == 200
    assert timeline.state_at(100) == Transitioning(0, 1, 1.0)
    assert timeline.state_at(150) == Holding(1)


def test_frame_count():
    timeline = Timeline.build(3, 800)
    assert timeline.frame_count(30) == round(2340 * 30 / 1000)
    assert Timeline.build(2, 0, 0, 0, 0).frame_count(30) == 1


class TestPlayhead:
    def test_paused_playhead_does_not_move(self):
        playhead = Playhead(Timeline.build(2, 800))
        assert playhead.advance(100) == 0

    def test_advance_and_wrap(self):
        playhead = Playhead(Timeline.build(2, 800))
        playhead.play()

        assert playhead.advance(1100) == 1100
        assert playhead.state() == Holding(1)
        # total is 1420; reaching it wraps to the start
        assert playhead.advance(320) == 0
        assert playhead.is_playing

    def test_seek_clamps(self):
        playhead = Playhead(Timeline.build(2, 800))
        assert playhead.seek(-10) == 0
        assert playhead.seek(5000) == 1420

    def test_retime_keeps_position_in_range(self):
        playhead = Playhead(Timeline.build(3, 800))
        playhead.seek(2000)
        playhead.retime(Timeline.build(1, 800))
        assert playhead.position_ms == 500

    def test_toggle_and_reset(self):
        playhead = Playhead(Timeline.build(2, 800))
        assert playhead.toggle() is True
        playhead.advance(300)
        playhead.reset()
        assert playhead.position_ms == 0
        assert playhead.is_playing is False
