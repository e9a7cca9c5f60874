import httpx
import pytest

from udpreq.transport.framing import trim_reply
from udpreq.transport.replies import ReplyKind
from udpreq.transport.result import Outcome
from udpreq.transport.udp import TIMEOUT_SENTINEL, UdpRequestClient


def _exchange(settings, target, text, **kwargs):
    with UdpRequestClient(settings, **kwargs) as c:
        if not c.send_request(text, target.host, target.port).ok:
            pytest.fail("send failed")
        return c.receive_reply()

@pytest.mark.system
def test_loadavg(settings, sim_udp):
    r = _exchange(settings, sim_udp, "<loadavg/>")
    assert r.ok
    if trim_reply(r.value).startswith("<error>"):
        pytest.skip("load average not available on this platform")
    assert UdpRequestClient.classify_reply(r.value) is ReplyKind.LOAD_AVG

@pytest.mark.system
def test_unknown_format(settings, sim_udp):
    r = _exchange(settings, sim_udp, "what is this")
    assert trim_reply(r.value) == "<error>unknown format</error>"
    assert UdpRequestClient.classify_reply(r.value) is ReplyKind.UNKNOWN

@pytest.mark.system
def test_shutdown_stops_server(settings, sim_api, sim_udp):
    r = _exchange(settings, sim_udp, "<shutdown/>")
    assert trim_reply(r.value) == "<replyShutDown>Server is shutting down</replyShutDown>"
    assert UdpRequestClient.classify_reply(r.value) is ReplyKind.SHUT_DOWN
    assert sim_api.status()["state"] == "SHUT_DOWN"

    late = _exchange(settings, sim_udp, "<echo>anyone?</echo>", timeout_ms=200)
    assert late.outcome is Outcome.RECEIVE_TIMEOUT

    with pytest.raises(httpx.HTTPStatusError) as exc:
        sim_api.set_faults(drop_rate=0.5)
    assert exc.value.response.status_code == 409

@pytest.mark.system
def test_status_counts_exchange(settings, sim_api, sim_udp):
    _exchange(settings, sim_udp, "<echo>one</echo>")
    status = sim_api.status()
    assert status["requests_seen"] == 1
    assert status["replies_sent"] == 1
    assert status["last_request"] == "<echo>one</echo>"

    sim_api.reset()
    assert sim_api.status()["requests_seen"] == 0

@pytest.mark.system
def test_dropped_request_times_out(settings, sim_api, sim_udp):
    sim_api.set_faults(drop_rate=1.0)
    r = _exchange(settings, sim_udp, "<echo>lost</echo>")
    assert r.outcome is Outcome.RECEIVE_TIMEOUT
    assert r.value == TIMEOUT_SENTINEL
    assert sim_api.status()["requests_seen"] == 0

@pytest.mark.system
def test_late_reply_is_a_timeout(settings, sim_api, sim_udp):
    sim_api.set_faults(delay_ms=800)
    r = _exchange(settings, sim_udp, "<echo>slow</echo>")
    assert r.outcome is Outcome.RECEIVE_TIMEOUT

@pytest.mark.system
def test_short_delay_still_answers(settings, sim_api, sim_udp):
    sim_api.set_faults(delay_ms=100)
    r = _exchange(settings, sim_udp, "<echo>slow</echo>")
    assert r.ok
    assert trim_reply(r.value) == "<reply>slow</reply>"

@pytest.mark.system
def test_corrupted_reply_is_unknown(settings, sim_api, sim_udp):
    sim_api.set_faults(corrupt_rate=1.0)
    r = _exchange(settings, sim_udp, "<echo>mangled</echo>")
    assert r.ok
    assert UdpRequestClient.classify_reply(r.value) is ReplyKind.UNKNOWN
