# tests/test_fake_transport.py
import threading

import pytest

from pingcore.engine.codec import ICMP_ECHO_REPLY, build_echo_request, encode_payload, parse_echo
from pingcore.errors import TransportClosed, TransportUnavailable
from pingcore.transport.fake import FakeTransport


def request(seq):
    return build_echo_request(True, 1, seq, encode_payload(2, 16))


def test_echoes_request():
    fake = FakeTransport(ttl=33)
    fake.send(request(0), "192.0.2.1")
    datagram = fake.read(0.5)
    assert datagram["src"] == "192.0.2.1"
    assert datagram["ttl"] == 33
    assert parse_echo(datagram["data"]).type == ICMP_ECHO_REPLY
    assert fake.sent_sequences == [0]


def test_drops_listed_sequences():
    fake = FakeTransport(drop={1})
    fake.send(request(1), "192.0.2.1")
    assert fake.read(0.05) is None


def test_close_unblocks_pending_read():
    fake = FakeTransport()
    errors = []

    def reader():
        try:
            fake.read(5.0)
        except TransportClosed as e:
            errors.append(e)

    t = threading.Thread(target=reader)
    t.start()
    fake.close()
    t.join(2.0)
    assert not t.is_alive()
    assert len(errors) == 1
    fake.close()


def test_unavailable():
    with pytest.raises(TransportUnavailable):
        FakeTransport(unavailable=True).open(True)
