# lteradiotrack

The bookkeeping layer for passive LTE downlink and uplink analysis. It keeps
track of what a radio front end has already decoded.

## What it contains

- **HARQ state** (`lteradiotrack.harq`)
  - `DownlinkHarq` classifies each downlink transport block. It returns a
    `TransmissionStatus`: `NEW_TX`, `RE_TX`, `DECODED`, `HARQ_BUSY` or
    `HARQ_FULL_BUFFER`.
    - A block it reserves stays reserved until `update_rnti` stores the grant
      for it.
    - `update_statistics` counts decoding attempts for each RNTI, and `report`
      writes them out.
    - `expire_inactive` frees idle RNTIs once few free slots are left.
    - `get_buffer` raises `KeyError` for an unknown RNTI.
    - `last_tbs` returns 0 for an unknown RNTI.
  - `UplinkHarq` keeps the most recent uplink grant for each RNTI as an
    `UlHarqRecord`, together with its PHICH parameters.
  - `is_harq_interval` tells whether two TTIs are exactly 8 apart. The TTI
    count wraps at 10240.
- **DCI meta formats** (`lteradiotrack.meta_formats`)
  - `DCIMetaFormats` counts hits for each DCI format through `hit`.
  - `update_formats` sorts the formats by hit count. It then splits them into
    `primary()` and `secondary()` by a cumulative `split_ratio` and resets the
    counters.
- **Downlink MCS table tracking** (`lteradiotrack.tracking`)
  - `DlTracker` infers for each RNTI whether it uses the 64QAM or the 256QAM
    MCS table.
    - It counts new transmissions, retransmissions, successes and MIMO errors
      for each RNTI.
    - `expire` moves idle or misdetected RNTIs out of the live database and
      archives the genuine ones.
    - `report` and `report_all` print the live database and the archive as
      tables.
  - `write_csv_row` writes one summary row per RNTI to a `csv` writer.
- **Uplink modulation tracking** (`lteradiotrack.ul_tracking`)
  - `UlTracker` records the highest uplink modulation for each RNTI.
  - It also keeps SNR and timing-advance samples for each RNTI and reports
    their averages.
- **Mode front end** (`lteradiotrack.mcs_tracking`)
  - `MCSTracking` holds one tracker for each direction, as `dl` and `ul`.
  - It routes UE-specific configuration (`UeSpecConfig`) to the tracker of the
    active `SnifferMode`.
  - When it is given a `csv_path`, it writes a CSV summary of the downlink
    archive on `report_all`.
  - It is a context manager that closes that file.
- **Uplink scheduling** (`lteradiotrack.ul_schedule`)
  - `ULSchedule` stores uplink DCIs and RAR grants by TTI.
    - `get` and `delete` look a DCI up 4 TTIs later.
    - `get_rar` and `delete_rar` look a RAR grant up 6 TTIs later.
    - Both offsets wrap at 10240. The helpers `ul_tti` and `rar_ul_tti` compute
      them.
  - `apply_config` turns a `Sib2Config` into a `DmrsConfig` and a
    `PrachConfig`.
- **Subframe power** (`lteradiotrack.power`)
  - `SubframePower.compute` computes the average power of each resource block,
    in dB, over one subframe of 14 × 12·N_PRB resource elements.
  - It records the maximum and minimum as `max` and `min`.

## What it does not do

The package does not decode any signal. It does not talk to a radio or read
sample files, and it writes no capture files. It has no command-line program.

It has no blind-search statistics counters and no consumers that write each
subframe's DCIs to a file. Its only file output is the CSV summary of
`MCSTracking`. The reports go to whatever text stream you pass them.

## Installation

```
pip install .
```

Install the test extra and run the test suite:

```
pip install .[test]
pytest
```

## Example

```python
import numpy as np

from lteradiotrack.harq import DownlinkHarq, HarqGrant, HarqMode, TransmissionStatus
from lteradiotrack.power import SubframePower
from lteradiotrack.ul_schedule import ULSchedule, ul_tti

harq = DownlinkHarq(clock=lambda: 0.0)
harq.init(HarqMode.ON)
grant = HarqGrant(ndi=True, ndi_present=True, tbs=1000)
status = harq.is_retransmission(0x4601, pid=0, tid=0, grant=grant, sfn=10, sf_idx=2)
assert status is TransmissionStatus.NEW_TX
harq.update_rnti(0x4601, pid=0, tid=0, sfn=10, sf_idx=2, grant=grant)
assert harq.last_tbs(0x4601, 0, 0) == 1000

schedule = ULSchedule(rnti=0, debug=False)
schedule.push(100, ["dci-a"])
assert schedule.get(104) == ["dci-a"]
assert ul_tti(2) == 10238

power = SubframePower(nof_prb=6)
power.compute(np.ones(14 * 12 * 6, dtype=np.complex64))
print(power.rb_power_dl())  # all zeros: unit power in every resource block
```

The reports, such as `DownlinkHarq.report`, `DlTracker.report`,
`UlTracker.report` and `MCSTracking.report_all`, write to any text file object
you pass in. They default to `sys.stdout`.