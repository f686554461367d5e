import pytest

from ltnts.stats import StreamStatistics


class FakeClock:
    def __init__(self, t):
        self.t = t

    def __call__(self):
        return self.t


def make_packet(pid, cc=0, afc=1, tei=False, scrambling=0):
    header = bytes(
        [
            0x47,
            (int(tei) << 7) | ((pid >> 8) & 0x1F),
            pid & 0xFF,
            (scrambling << 6) | (afc << 4) | (cc & 0x0F),
        ]
    )
    return header + b"\xff" * (188 - len(header))


def run(pid, ccs, **kwargs):
    return b"".join(make_packet(pid, cc=c, **kwargs) for c in ccs)


@pytest.fixture
def clock():
    return FakeClock(100)


@pytest.fixture
def stats(clock):
    return StreamStatistics(clock=clock)


def test_counts_and_no_cc_errors(stats):
    stats.pid_update(run(0x100, range(10)))
    assert stats.packet_count == 10
    assert stats.pid_packet_count(0x100) == 10
    assert stats.cc_errors == 0


def test_packet_rate_rolls_over(stats, clock):
    stats.pid_update(run(0x100, range(10)))
    clock.t = 101
    stats.pid_update(run(0x100, [10]))
    assert stats.stream_pps() == 10
    assert stats.pid_pps(0x100) == 10
    assert stats.stream_bps() == stats.pid_bps(0x100)
    assert stats.stream_mbps() == pytest.approx(stats.stream_bps() / 1e6)
    assert stats.pid_mbps(0x100) == pytest.approx(stats.pid_bps(0x100) / 1e6)


def test_rates_expire(stats, clock):
    stats.pid_update(run(0x100, range(10)))
    clock.t = 101
    stats.pid_update(run(0x100, [10]))
    clock.t = 110
    assert stats.stream_pps() == 0
    assert stats.pid_pps(0x100) == 0
    assert stats.stream_bps() == 0


def test_cc_error_detected(stats):
    stats.pid_update(run(0x100, [0, 1, 3]))
    assert stats.cc_errors == 1
    assert stats.pids[0x100].cc_errors == 1


def test_cc_not_checked_on_null_pid(stats):
    stats.pid_update(run(0x1FFF, [0, 5, 9]))
    assert stats.cc_errors == 0


def test_adaptation_only_repeat_is_not_error(stats):
    stats.pid_update(run(0x100, [4, 4, 4], afc=2))
    assert stats.cc_errors == 0


def test_tei_and_scrambling_counted(stats):
    stats.pid_update(run(0x100, [0, 1], tei=True, scrambling=2))
    assert stats.tei_errors == 2
    assert stats.scrambled_count == 2
    assert stats.pids[0x100].tei_errors == 2


def test_bad_sync_counts_as_error(stats):
    pkt = bytearray(make_packet(0x100))
    pkt[0] = 0x00
    stats.pid_update(bytes(pkt))
    assert stats.packet_count == 0
    assert stats.cc_errors == 1


def test_padding_pct_zero_without_traffic(stats):
    assert stats.padding_pct() == 0


def test_bytestream_rate(stats, clock):
    first = b"\x00" * 100
    stats.bytestream_update(first)
    clock.t = 101
    stats.bytestream_update(b"\x00" * 50)
    assert stats.bytestream_bps() == 8 * len(first)
    assert stats.bytestream_mbps() == pytest.approx(stats.bytestream_bps() / 1e6)
    assert stats.packet_count == 2


def test_ctp_sequence_gap(stats):
    for seq in (7, 8, 10, 11):
        stats.ctp_update(bytes([0x80, 0x21, seq >> 8, seq & 0xFF]) + b"\x00" * 20)
    assert stats.cc_errors == 1
    assert stats.a324_sequence_number == 11


def test_reset_clears_counters_keeps_pids(stats):
    stats.pid_update(run(0x100, [0, 2], tei=True))
    stats.reset()
    assert stats.packet_count == 0
    assert stats.cc_errors == 0
    assert stats.tei_errors == 0
    assert stats.pid_packet_count(0x100) == 0
    assert stats.pids[0x100].enabled is True


def test_clone_is_independent(stats):
    stats.pid_update(run(0x100, range(3)))
    copy = stats.clone()
    stats.pid_update(run(0x100, range(3, 6)))
    assert copy.packet_count == 3
    assert stats.packet_count == 6
    assert copy.pid_packet_count(0x100) == 3


def test_contains_pcr(stats):
    assert stats.contains_pcr(0x31) is False
    stats.set_contains_pcr(0x31)
    assert stats.contains_pcr(0x31) is True
    assert "0x0031" not in stats.report()


def test_last_update(stats, clock):
    stats.pid_update(run(0x100, [0]))
    assert stats.pid_last_update(0x100) == clock.t
    assert stats.pid_last_update(0x200) == 0


def test_report_lists_active_pids(stats):
    stats.pid_update(run(0x100, range(3)) + run(0x20, range(2)))
    lines = stats.report().splitlines()
    assert lines[0] == "----------PID ---------Pkts -----CCErrors --Mbps"
    assert lines[1].startswith("0x0020 (  32)")
    assert lines[2].startswith("0x0100 ( 256)")
    assert len(lines) == 3