import pytest

from lteradiotrack.ul_schedule import (
    DmrsConfig,
    PrachConfig,
    Sib2Config,
    TTI_PERIOD,
    ULSchedule,
    rar_ul_tti,
    ul_tti,
)


def test_ul_tti_wraps_at_start():
    assert ul_tti(0) == 10236


def test_ul_tti_is_four_before():
    assert ul_tti(100) == 96


@pytest.mark.parametrize("fn,delay", [(ul_tti, 4), (rar_ul_tti, 6)])
def test_tti_shift_inverts_modulo_period(fn, delay):
    for tti in range(TTI_PERIOD):
        shifted = fn(tti)
        assert 0 <= shifted < TTI_PERIOD
        assert (shifted + delay) % TTI_PERIOD == tti


def test_push_and_get_after_delay():
    sched = ULSchedule(rnti=61, debug=False)
    sched.push(10, ["a", "b"])
    assert sched.get(14) == ["a", "b"]
    assert sched.get(10) is None


def test_push_appends_to_existing():
    sched = ULSchedule()
    sched.push(20, ["a"])
    sched.push(20, ["b"])
    assert sched.get(24) == ["a", "b"]


def test_push_across_wrap():
    sched = ULSchedule()
    sched.push(TTI_PERIOD - 2, ["x"])
    assert sched.get(2) == ["x"]


def test_push_rar_keeps_first():
    sched = ULSchedule()
    sched.push_rar(30, ["first"])
    sched.push_rar(30, ["second"])
    assert sched.get_rar(36) == ["first"]
    assert sched.get(36) is None


def test_delete_removes_entry():
    sched = ULSchedule()
    sched.push(40, ["g"])
    sched.push_rar(40, ["r"])
    sched.delete(44)
    assert sched.get(44) is None
    assert sched.get_rar(46) == ["r"]
    sched.delete_rar(46)
    assert sched.get_rar(46) is None


def test_delete_missing_is_silent():
    sched = ULSchedule()
    sched.delete(5)
    sched.delete_rar(5)
    assert sched.get(5) is None


def test_apply_config_maps_sib2():
    sched = ULSchedule()
    assert sched.config is False
    sib2 = Sib2Config(
        cyclic_shift=3,
        group_hop_enabled=True,
        seq_hop_enabled=False,
        group_assign_pusch=7,
        root_seq_idx=22,
        prach_cfg_idx=4,
        high_speed_flag=True,
        zero_correlation_zone_cfg=12,
        prach_freq_offset=2,
    )
    sched.set_sib2(sib2)
    sched.apply_config()
    assert sched.config is True
    assert sched.dmrs() == DmrsConfig(
        cyclic_shift=3, group_hopping_en=True, sequence_hopping_en=False, delta_ss=7
    )
    assert sched.prach_config == PrachConfig(
        is_nr=False,
        root_seq_idx=22,
        config_idx=4,
        hs_flag=True,
        zero_corr_zone=12,
        freq_offset=2,
    )


def test_dmrs_returns_copy():
    sched = ULSchedule()
    sched.set_sib2(Sib2Config(cyclic_shift=5))
    sched.apply_config()
    dmrs = sched.dmrs()
    dmrs.cyclic_shift = 0
    assert sched.dmrs().cyclic_shift == 5


def test_rrc_connection_setup():
    sched = ULSchedule(rnti=100)
    assert sched.has_rrc_con_set is False
    setup = {"p_a": -3}
    sched.set_rrc_connection_setup(setup)
    assert sched.has_rrc_con_set is True
    assert sched.rrc_con_set == setup
    assert sched.rnti == 100