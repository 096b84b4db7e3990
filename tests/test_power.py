import numpy as np
import pytest

from lteradiotrack.power import SubframePower


def _grid(nof_prb, amplitudes):
    per_rb = np.repeat(np.asarray(amplitudes, dtype=np.complex64), 12)
    return np.tile(per_rb, 14)


def test_initial_power_is_zero():
    power = SubframePower(6)
    assert power.nof_prb == 6
    assert np.array_equal(power.rb_power_dl(), np.zeros(6))


def test_unit_amplitude_gives_zero_db():
    power = SubframePower(4)
    power.compute(_grid(4, [1.0] * 4))
    assert np.allclose(power.rb_power_dl(), 0.0, atol=1e-5)
    assert power.max == pytest.approx(0.0, abs=1e-5)
    assert power.min == pytest.approx(0.0, abs=1e-5)


def test_amplitude_ten_gives_twenty_db():
    power = SubframePower(2)
    power.compute(_grid(2, [10.0, 10.0]))
    assert np.allclose(power.rb_power_dl(), 20.0, atol=1e-4)


def test_phase_does_not_matter():
    a = SubframePower(3)
    b = SubframePower(3)
    a.compute(_grid(3, [1.0, 2.0, 3.0]))
    b.compute(_grid(3, [1j, -2.0, 3j]))
    assert np.allclose(a.rb_power_dl(), b.rb_power_dl(), atol=1e-5)


def test_max_min_track_values():
    power = SubframePower(5)
    power.compute(_grid(5, [1.0, 4.0, 0.5, 2.0, 3.0]))
    values = power.rb_power_dl()
    assert power.max == pytest.approx(float(values.max()))
    assert power.min == pytest.approx(float(values.min()))
    assert int(np.argmax(values)) == 1
    assert int(np.argmin(values)) == 2


def test_ul_matches_dl():
    power = SubframePower(3)
    power.compute(_grid(3, [1.0, 2.0, 3.0]))
    assert np.array_equal(power.rb_power_ul(), power.rb_power_dl())


def test_extra_symbols_ignored():
    power = SubframePower(2)
    grid = np.concatenate([_grid(2, [1.0, 1.0]), np.full(50, 100.0, dtype=np.complex64)])
    power.compute(grid)
    assert np.allclose(power.rb_power_dl(), 0.0, atol=1e-5)


def test_short_input_raises():
    power = SubframePower(2)
    with pytest.raises(ValueError):
        power.compute(np.ones(10, dtype=np.complex64))


def test_negative_prb_raises():
    with pytest.raises(ValueError):
        SubframePower(-1)


def test_returned_array_is_copy():
    power = SubframePower(2)
    power.compute(_grid(2, [1.0, 1.0]))
    values = power.rb_power_dl()
    values[:] = 99.0
    assert np.allclose(power.rb_power_dl(), 0.0, atol=1e-5)