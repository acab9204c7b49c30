"""Tests for the raycast pointer projector."""

import numpy as np
import pytest

from gesture_pilot.pointer import (
    PointerProjector,
    PointerState,
    ProjectorState,
    Viewport,
    project,
    to_screen,
)

VIEWPORT = Viewport(1920, 1080)


def make_pointing(tip_x, tip_y, wrist_x=0.5, wrist_y=0.8):
    """Pose where only the wrist and index tip matter for projection."""
    lm = np.full((21, 3), 0.5, dtype=np.float64)
    lm[0] = [wrist_x, wrist_y, 0.0]
    lm[8] = [tip_x, tip_y, 0.0]
    return lm


class TestToScreen:
    def test_center(self):
        assert to_screen(0.5, 0.5, VIEWPORT) == (960.0, 540.0)

    def test_mirrored_x(self):
        x, y = to_screen(0.25, 0.5, VIEWPORT, mirror=True)
        assert x == pytest.approx(1440.0)
        assert y == pytest.approx(540.0)

    def test_unmirrored_x(self):
        x, _ = to_screen(0.25, 0.5, VIEWPORT, mirror=False)
        assert x == pytest.approx(480.0)

    def test_clamped(self):
        assert to_screen(-1.0, 2.0, VIEWPORT) == (1920.0, 1080.0)
        assert to_screen(2.0, -1.0, VIEWPORT) == (0.0, 0.0)

    def test_corners(self):
        assert to_screen(1.0, 0.0, VIEWPORT) == (0.0, 0.0)
        assert to_screen(0.0, 1.0, VIEWPORT) == (1920.0, 1080.0)


class TestViewport:
    @pytest.mark.parametrize("w,h", [(0, 100), (100, 0), (-5, 10)])
    def test_must_be_positive(self, w, h):
        with pytest.raises(ValueError):
            Viewport(w, h)


class TestProjector:
    def test_raycast_extends_past_tip(self):
        proj = PointerProjector(VIEWPORT, raycast_factor=2.5, mirror=False)
        # wrist (0.5, 0.6) -> tip (0.5, 0.5): ray lands at y = 0.25
        pointer = proj.update(make_pointing(0.5, 0.5, wrist_y=0.6))
        assert pointer.x == pytest.approx(960.0)
        assert pointer.y == pytest.approx(270.0)

    def test_zero_factor_tracks_tip(self):
        proj = PointerProjector(VIEWPORT, raycast_factor=0.0, mirror=False)
        pointer = proj.update(make_pointing(0.25, 0.75))
        assert pointer.x == pytest.approx(480.0)
        assert pointer.y == pytest.approx(810.0)

    def test_always_inside_viewport(self):
        proj = PointerProjector(VIEWPORT)
        rng = np.random.RandomState(3)
        for _ in range(200):
            lm = rng.uniform(-1.0, 2.0, size=(21, 3))
            pointer = proj.update(lm, precision=bool(rng.randint(2)))
            assert 0.0 <= pointer.x <= 1920.0
            assert 0.0 <= pointer.y <= 1080.0

    def test_first_precision_update_jumps_to_target(self):
        proj = PointerProjector(VIEWPORT, raycast_factor=0.0, mirror=False)
        pointer = proj.update(make_pointing(0.25, 0.75), precision=True)
        assert pointer.x == pytest.approx(480.0)
        assert pointer.precision

    def test_precision_moves_fraction_of_the_way(self):
        proj = PointerProjector(VIEWPORT, raycast_factor=0.0, precision_slowdown=0.25, mirror=False)
        proj.update(make_pointing(0.0, 0.0))
        pointer = proj.update(make_pointing(1.0, 1.0), precision=True)
        assert pointer.x == pytest.approx(480.0)
        assert pointer.y == pytest.approx(270.0)

    def test_precision_never_overshoots(self):
        proj = PointerProjector(VIEWPORT, raycast_factor=0.0, mirror=False)
        proj.update(make_pointing(0.0, 0.0))
        xs = [proj.update(make_pointing(0.5, 0.5), precision=True).x for _ in range(30)]
        assert all(a <= b for a, b in zip(xs, xs[1:]))
        assert all(x <= 960.0 for x in xs)
        assert xs[-1] == pytest.approx(960.0, abs=0.5)

    def test_malformed_keeps_last(self):
        proj = PointerProjector(VIEWPORT)
        first = proj.update(make_pointing(0.4, 0.4))
        assert proj.update(np.zeros((4, 3))) == first
        assert proj.last == first

    def test_malformed_without_history_is_none(self):
        assert PointerProjector(VIEWPORT).update(None) is None

    def test_reset(self):
        proj = PointerProjector(VIEWPORT)
        proj.update(make_pointing(0.4, 0.4))
        proj.reset()
        assert proj.last is None

    @pytest.mark.parametrize("kwargs", [
        {"raycast_factor": -1.0},
        {"precision_slowdown": 0.0},
        {"precision_slowdown": 1.5},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            PointerProjector(VIEWPORT, **kwargs)


class TestPureProject:
    def test_state_unchanged_on_input(self):
        state = ProjectorState(last=PointerState(100.0, 100.0))
        new_state, pointer = project(state, make_pointing(0.5, 0.5), False, VIEWPORT, raycast_factor=0.0)
        assert state.last == PointerState(100.0, 100.0)
        assert new_state.last == pointer

    def test_to_dict(self):
        assert PointerState(1.234, 5.678, True).to_dict() == {"x": 1.23, "y": 5.68, "precision": True}
