import struct

import pytest

from rpview.animation import (
    AnimationPlayer,
    advance_frame,
    detect,
    extract,
    frame_duration_ms,
    is_animated_webp,
    load_animation,
    step_frame,
)
from rpview.errors import NotAnimated, NotFound
from rpview.types import AnimationState


def webp_header(chunk=b"VP8X", flags=0):
    body = chunk + struct.pack("<I", 10) + bytes([flags]) + b"\x00" * 9
    return b"RIFF" + struct.pack("<I", 4 + len(body)) + b"WEBP" + body


def test_extract_gif_frames_and_durations(make_gif):
    data = extract(make_gif())
    assert data.frame_count == 3
    assert data.frame_durations() == (100, 200, 300)
    assert data.frames[1].image.mode == "RGBA"
    assert data.frames[1].image.getpixel((0, 0)) == (0, 255, 0, 255)


def test_single_frame_gif_is_not_animated(make_gif):
    path = make_gif("still.gif", colors=((10, 20, 30),))
    assert not detect(path)
    with pytest.raises(NotAnimated):
        extract(path)
    assert load_animation(path) is None


def test_non_gif_formats_are_not_animated(make_png):
    path = make_png()
    assert not detect(path)
    with pytest.raises(NotAnimated):
        extract(path)


def test_detect_missing_gif(tmp_path):
    with pytest.raises(NotFound):
        detect(str(tmp_path / "missing.gif"))


def test_webp_animation_flag(tmp_path):
    animated = tmp_path / "anim.webp"
    animated.write_bytes(webp_header(flags=0x02))
    still = tmp_path / "still.webp"
    still.write_bytes(webp_header(flags=0x10))
    simple = tmp_path / "simple.webp"
    simple.write_bytes(webp_header(chunk=b"VP8 "))
    assert is_animated_webp(str(animated))
    assert not is_animated_webp(str(still))
    assert not is_animated_webp(str(simple))


def test_load_animation_for_animated_gif(make_gif):
    data = load_animation(make_gif())
    assert data is not None
    state = data.new_state(playing=False)
    assert state.frame_count == 3
    assert state.current_frame == 0
    assert not state.is_playing


def test_frame_duration_defaults():
    assert frame_duration_ms(None) == 100
    assert frame_duration_ms(50, 0) == 100
    assert frame_duration_ms(70) == 70
    assert frame_duration_ms(1, 10) == 0


@pytest.mark.parametrize("count", [1, 2, 3, 7])
@pytest.mark.parametrize("start", [0, -1])
def test_advancing_frame_count_times_returns_to_start(count, start):
    state = AnimationState(count, (100,) * count, current_frame=start % count)
    for _ in range(count):
        advance_frame(state)
    assert state.current_frame == start % count


def test_step_frame_wraps_and_pauses():
    state = AnimationState(3, (100, 100, 100))
    step_frame(state, -1)
    assert state.current_frame == 2
    assert not state.is_playing
    step_frame(state, 1)
    assert state.current_frame == 0


def test_state_validation():
    with pytest.raises(ValueError):
        AnimationState(0, ())
    with pytest.raises(ValueError):
        AnimationState(2, (100,))
    with pytest.raises(ValueError):
        AnimationState(2, (100, 100), current_frame=2)


def test_player_advances_by_elapsed_time():
    state = AnimationState(3, (100, 200, 300))
    player = AnimationPlayer()
    player.reset(0.0)
    assert player.update(state, 0.05) == 0
    assert player.update(state, 0.1) == 1
    assert state.current_frame == 1
    # 250ms since frame 1 started: frame 1 (200ms) is done, frame 2 is not
    assert player.update(state, 0.35) == 1
    assert state.current_frame == 2


def test_player_holds_while_paused():
    state = AnimationState(2, (100, 100), is_playing=False)
    player = AnimationPlayer()
    player.reset(0.0)
    assert player.update(state, 10.0) == 0
    assert state.current_frame == 0


def test_zero_duration_frames_step_once_per_update():
    state = AnimationState(2, (0, 0))
    player = AnimationPlayer()
    player.reset(0.0)
    assert player.update(state, 0.0) == 1
    assert player.update(state, 0.0) == 1
    assert state.current_frame == 0
