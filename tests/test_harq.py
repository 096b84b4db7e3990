import io

import pytest

from lteradiotrack.harq import (
    MAX_HARQ_SIZE,
    DownlinkHarq,
    HarqGrant,
    HarqMode,
    TransmissionStatus,
    UplinkHarq,
    is_harq_interval,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _register(harq, rnti, grant, sfn=1, sf_idx=0, pid=0, tid=0):
    status = harq.is_retransmission(rnti, pid, tid, grant, sfn, sf_idx)
    harq.update_rnti(rnti, pid, tid, sfn, sf_idx, grant)
    return status


def test_harq_interval():
    assert is_harq_interval(0, 8)
    assert not is_harq_interval(0, 7)
    assert is_harq_interval(10235, 3)
    assert not is_harq_interval(8, 0)


def test_new_rnti_is_new_transmission():
    harq = DownlinkHarq(FakeClock())
    status = harq.is_retransmission(70, 0, 0, HarqGrant(), 1, 0)
    assert status is TransmissionStatus.NEW_TX
    assert len(harq) == MAX_HARQ_SIZE
    assert harq.nof_available == MAX_HARQ_SIZE - 1


def test_full_buffer():
    harq = DownlinkHarq(FakeClock())
    for rnti in range(1, MAX_HARQ_SIZE + 1):
        assert harq.is_retransmission(rnti, 0, 0, HarqGrant(), 0, 0) is TransmissionStatus.NEW_TX
    status = harq.is_retransmission(MAX_HARQ_SIZE + 1, 0, 0, HarqGrant(), 0, 0)
    assert status is TransmissionStatus.HARQ_FULL_BUFFER


def test_retransmission_then_decoded():
    harq = DownlinkHarq(FakeClock())
    first = HarqGrant(tbs=500)
    assert _register(harq, 100, first, sfn=1, sf_idx=0) is TransmissionStatus.NEW_TX

    sent = HarqGrant(tbs=500, is_first_transmission=False)
    assert _register(harq, 100, sent, sfn=1, sf_idx=0) is TransmissionStatus.NEW_TX

    status = harq.is_retransmission(100, 0, 0, HarqGrant(tbs=500), 1, 8)
    assert status is TransmissionStatus.RE_TX
    decoded = HarqGrant(tbs=500, is_first_transmission=False, last_decoded=True)
    harq.update_rnti(100, 0, 0, 1, 8, decoded)

    status = harq.is_retransmission(100, 0, 0, HarqGrant(tbs=500), 2, 6)
    assert status is TransmissionStatus.DECODED
    assert harq.last_tbs(100, 0, 0) == 500


def test_tbs_change_means_new_data():
    harq = DownlinkHarq(FakeClock())
    _register(harq, 100, HarqGrant(tbs=500, is_first_transmission=False), sfn=1, sf_idx=0)
    _register(harq, 100, HarqGrant(tbs=500, is_first_transmission=False), sfn=1, sf_idx=0)
    status = harq.is_retransmission(100, 0, 0, HarqGrant(tbs=600), 1, 8)
    assert status is TransmissionStatus.NEW_TX


def test_toggled_ndi_means_new_data():
    harq = DownlinkHarq(FakeClock())
    _register(harq, 100, HarqGrant(tbs=500, ndi=False, is_first_transmission=False))
    _register(harq, 100, HarqGrant(tbs=500, ndi=False, is_first_transmission=False))
    grant = HarqGrant(tbs=500, ndi=True, ndi_present=True)
    status = harq.is_retransmission(100, 0, 0, grant, 1, 8)
    assert status is TransmissionStatus.NEW_TX


def test_first_transmission_flag_means_new_data():
    harq = DownlinkHarq(FakeClock())
    _register(harq, 100, HarqGrant(tbs=500))
    _register(harq, 100, HarqGrant(tbs=500))
    status = harq.is_retransmission(100, 0, 0, HarqGrant(tbs=500), 1, 8)
    assert status is TransmissionStatus.NEW_TX


def test_reserved_block_is_busy():
    harq = DownlinkHarq(FakeClock())
    assert harq.is_retransmission(100, 0, 0, HarqGrant(), 1, 0) is TransmissionStatus.NEW_TX
    assert harq.is_retransmission(100, 0, 0, HarqGrant(), 1, 1) is TransmissionStatus.HARQ_BUSY
    harq.update_rnti(100, 0, 0, 1, 1, HarqGrant())
    assert harq.is_retransmission(100, 0, 0, HarqGrant(), 1, 2) is TransmissionStatus.NEW_TX


def test_other_block_not_busy():
    harq = DownlinkHarq(FakeClock())
    harq.is_retransmission(100, 0, 0, HarqGrant(), 1, 0)
    assert harq.is_retransmission(100, 0, 1, HarqGrant(), 1, 1) is TransmissionStatus.NEW_TX


def test_buffers():
    harq = DownlinkHarq(FakeClock())
    _register(harq, 100, HarqGrant())
    first = harq.get_buffer(100, 0, 0)
    assert harq.get_buffer(100, 0, 0) is first
    assert harq.get_buffer(100, 0, 1) is not first
    with pytest.raises(KeyError):
        harq.get_buffer(200, 0, 0)


def test_last_tbs_unknown_rnti():
    harq = DownlinkHarq(FakeClock())
    assert harq.last_tbs(4242, 0, 0) == 0


def test_init_on_adds_entities():
    harq = DownlinkHarq(FakeClock())
    harq.init(HarqMode.ON)
    assert harq.harq_mode is HarqMode.ON
    assert len(harq) == 2 * MAX_HARQ_SIZE


def test_init_off_keeps_size():
    harq = DownlinkHarq(FakeClock())
    harq.init(HarqMode.OFF)
    assert len(harq) == MAX_HARQ_SIZE


def test_statistics_report():
    harq = DownlinkHarq(FakeClock())
    _register(harq, 100, HarqGrant())
    harq.update_statistics(100, 3, is_retx=True, success=True)
    harq.update_statistics(100, 3, is_retx=False, success=False)
    out = io.StringIO()
    harq.report(out)
    text = out.getvalue()
    assert "[HARQ] RNTI 100:" in text
    assert "nof_retx_success: 1" in text
    assert "nof_active: 2" in text
    assert "nof_success: 1" in text
    assert text.endswith("[HARQ] Total reTX for all RNTIs: 1 \n")


def test_report_without_rntis():
    harq = DownlinkHarq(FakeClock())
    out = io.StringIO()
    harq.report(out)
    assert out.getvalue() == "[HARQ] Total reTX for all RNTIs: 0 \n"


def test_expire_inactive_frees_slots():
    clock = FakeClock()
    harq = DownlinkHarq(clock)
    count = MAX_HARQ_SIZE - 10
    for rnti in range(1, count + 1):
        _register(harq, rnti, HarqGrant(tbs=rnti, is_first_transmission=False))
    assert harq.nof_available == 10
    clock.now += 100
    harq.expire_inactive()
    assert harq.last_tbs(1, 0, 0) == 0
    assert harq.nof_available > 10
    assert harq.is_retransmission(1, 0, 0, HarqGrant(), 5, 0) is TransmissionStatus.NEW_TX


def test_expire_keeps_recent_entities():
    clock = FakeClock()
    harq = DownlinkHarq(clock)
    count = MAX_HARQ_SIZE - 10
    for rnti in range(1, count + 1):
        _register(harq, rnti, HarqGrant(tbs=rnti, is_first_transmission=False))
    clock.now += 1
    harq.expire_inactive()
    assert harq.last_tbs(7, 0, 0) == 7


def test_expire_skipped_while_slots_remain():
    clock = FakeClock()
    harq = DownlinkHarq(clock)
    _register(harq, 100, HarqGrant(tbs=500, is_first_transmission=False))
    clock.now += 100
    harq.expire_inactive()
    assert harq.last_tbs(100, 0, 0) == 500


def test_uplink_harq_add_and_update():
    clock = FakeClock(5.0)
    ul = UplinkHarq(clock)
    ul.update_rnti(61, 2, 3, 1, n_dmrs=0, n_prb_lowest=4, dci="first")
    records = ul.records()
    assert len(records) == 1
    assert records[0].rnti == 61
    assert records[0].tti == 2 * 10 + 3
    assert records[0].last_dci == "first"

    clock.now = 9.0
    ul.update_rnti(61, 3, 0, 0, n_dmrs=2, n_prb_lowest=7, dci="second")
    records = ul.records()
    assert len(records) == 1
    assert records[0].time == 9.0
    assert records[0].n_dmrs == 2
    assert records[0].n_prb_lowest == 7
    assert records[0].decode_result == 0
    assert records[0].i_phich == 0


def test_uplink_harq_records_is_snapshot():
    ul = UplinkHarq(FakeClock())
    ul.update_rnti(61, 0, 0, 0, 0, 0, None)
    snapshot = ul.records()
    ul.update_rnti(62, 0, 0, 0, 0, 0, None)
    assert len(snapshot) == 1
    assert [r.rnti for r in ul.records()] == [61, 62]