"""Test the preview/export engine."""

import asyncio

import pytest

from magic_move.engine import MagicMoveEngine
from magic_move.errors import EngineBusyError, ExportError
from magic_move.settings import PlaybackSettings


@pytest.fixture
def engine(small_config, font, two_step_doc):
    engine = MagicMoveEngine(PlaybackSettings(), "github-dark", layout_config=small_config, font=font)
    engine.load_document(two_step_doc)
    return engine


async def _wait_until_exporting(engine, limit=100):
    for _ in range(limit):
        if engine.is_exporting:
            return
        await asyncio.sleep(0)
    raise AssertionError("export never started")


@pytest.mark.asyncio
async def test_build_layouts(engine):
    layouts = await engine.build_layouts()

    assert len(layouts) == 2
    assert [s.token_line_count for s in layouts] == [1, 2]
    assert all(s.show_line_numbers for s in layouts)
    assert engine.state.step_layouts is layouts
    assert engine.timeline.total_ms == 250 + 800 + 120 + 250
    assert engine.can_export


@pytest.mark.asyncio
async def test_newer_build_supersedes_older(engine):
    first = engine.schedule_build()
    second = engine.schedule_build()

    first, second = await asyncio.gather(first, second)

    assert first is None
    assert len(second) == 2
    assert engine.state.step_layouts is second


@pytest.mark.asyncio
async def test_document_errors_block_export(engine):
    engine.load_document("no magic move here")
    assert engine.errors
    assert await engine.build_layouts() == []
    assert not engine.can_export

    with pytest.raises(ExportError, match="Cannot export"):
        await engine.export(None)


def test_render_before_build_is_noop(engine):
    assert engine.render_at(0) is None


def test_playhead_lives_in_state(engine):
    assert engine.playhead is engine.state.playhead
    assert engine.state.playhead.timeline is engine.timeline


@pytest.mark.asyncio
async def test_render_at(engine, small_config):
    await engine.build_layouts()
    surface = engine.render_at(0)

    assert surface.size == (small_config.canvas_width, small_config.min_export_height)
    colours = surface.getcolors(surface.width * surface.height)
    assert len(colours) > 1

    # Mid-transition frames paint onto the same surface.
    assert engine.render_at(650) is surface


@pytest.mark.asyncio
async def test_render_still(engine, tmp_path):
    await engine.build_layouts()
    path = tmp_path / "frame.png"
    engine.render_still(0, path)
    assert path.exists()


@pytest.mark.asyncio
async def test_playback_advance_and_wrap(engine):
    await engine.build_layouts()
    engine.play()

    assert engine.advance(1100) == 1100
    assert engine.advance(400) == 0
    engine.reset()
    assert engine.playhead.position_ms == 0
    assert not engine.playhead.is_playing


@pytest.mark.asyncio
async def test_timing_change_keeps_layouts(engine):
    layouts = await engine.build_layouts()
    engine.set_transition_ms(1000)

    assert engine.state.step_layouts is layouts
    assert engine.timeline.total_ms == 250 + 1000 + 120 + 250
    assert engine.playhead.timeline is engine.timeline

    engine.set_force_line_numbers(True)
    assert engine.state.step_layouts is None


def test_select_block_clamps(engine):
    engine.select_block(7)
    assert engine.state.block_index == 0


@pytest.mark.asyncio
async def test_export_success_resets_playhead(engine, fake_encoder):
    await engine.build_layouts()
    engine.seek(900)
    progress = []

    result = await engine.export(fake_encoder, on_progress=progress.append)

    assert result.frame_count == engine.timeline.frame_count(30)
    assert fake_encoder.size == engine.surface.size
    assert progress[-1] == 1.0
    assert engine.state.export.result is result
    assert not engine.is_exporting
    assert engine.state.export.progress == 0.0
    assert engine.playhead.position_ms == 0


@pytest.mark.asyncio
async def test_export_failure_is_recorded(engine, failing_encoder):
    await engine.build_layouts()

    with pytest.raises(ExportError):
        await engine.export(failing_encoder)

    assert failing_encoder.aborted
    assert "disk full" in engine.state.export.error
    assert engine.state.export.result is None
    assert not engine.is_exporting
    assert engine.playhead.position_ms == 0
    assert engine.render_at(0) is not None


@pytest.mark.asyncio
async def test_engine_is_busy_while_exporting(engine, fake_encoder):
    await engine.build_layouts()

    task = asyncio.ensure_future(engine.export(fake_encoder))
    await _wait_until_exporting(engine)
    with pytest.raises(EngineBusyError):
        engine.load_document("")
    with pytest.raises(EngineBusyError):
        engine.seek(100)
    result = await task

    assert result.frame_count == len(fake_encoder.frames)
    assert not engine.is_exporting


@pytest.mark.asyncio
async def test_builds_are_refused_while_exporting(engine, fake_encoder):
    layouts = await engine.build_layouts()

    task = asyncio.ensure_future(engine.export(fake_encoder))
    await _wait_until_exporting(engine)
    with pytest.raises(EngineBusyError):
        engine.schedule_build()
    with pytest.raises(EngineBusyError):
        await engine.build_layouts()
    assert engine.state.step_layouts is layouts
    result = await task

    # Every frame was painted from the layouts the export started with.
    assert result.frame_count == len(fake_encoder.frames)
    assert engine.state.step_layouts is layouts
    assert len({frame.tobytes() for frame in fake_encoder.frames}) > 1


@pytest.mark.asyncio
async def test_new_export_supersedes_running_one(engine, fake_encoder, failing_encoder):
    await engine.build_layouts()
    first_encoder = failing_encoder
    first_encoder.fail_at = None

    first = asyncio.ensure_future(engine.export(first_encoder))
    await _wait_until_exporting(engine)
    result = await engine.export(fake_encoder)
    with pytest.raises(asyncio.CancelledError):
        await first

    assert first_encoder.aborted
    assert not first_encoder.finished
    assert fake_encoder.finished
    assert engine.state.export.result is result


@pytest.mark.asyncio
async def test_live_playback_moves_playhead(engine):
    await engine.build_layouts()

    engine.start_live(frame_interval_ms=5)
    await asyncio.sleep(0.05)
    engine.stop()
    await asyncio.sleep(0)

    assert 0 < engine.playhead.position_ms < engine.timeline.total_ms
    assert not engine.playhead.is_playing
