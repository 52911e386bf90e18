# tests/test_correlator.py
from pingcore.engine.codec import EchoMessage
from pingcore.engine.correlator import SequenceLedger, is_echo_reply, match


def test_match_requires_same_tracker():
    assert match(0xABC, 0xABC)
    assert not match(0xABC, 0xABD)


def test_match_ignores_identifier_unless_expected():
    """Datagram sockets rewrite the identifier, so it only counts when asked for."""
    assert match(5, 5, identifier=999)
    assert match(5, 5, identifier=17, expected_identifier=17)
    assert not match(5, 5, identifier=18, expected_identifier=17)


def test_identifier_alone_never_matches():
    assert not match(1, 2, identifier=17, expected_identifier=17)


def test_is_echo_reply():
    assert is_echo_reply(EchoMessage(0, 0, 1, 1, b""), ipv4=True)
    assert not is_echo_reply(EchoMessage(8, 0, 1, 1, b""), ipv4=True)
    assert not is_echo_reply(EchoMessage(3, 3, 1, 1, b""), ipv4=True)
    assert is_echo_reply(EchoMessage(129, 0, 1, 1, b""), ipv4=False)
    assert not is_echo_reply(EchoMessage(0, 0, 1, 1, b""), ipv4=False)


def test_ledger_accepts_each_sequence_once():
    ledger = SequenceLedger()
    ledger.mark_sent(0)
    ledger.mark_sent(1)
    assert ledger.mark_received(1)
    assert not ledger.mark_received(1)
    assert ledger.seen(1)
    assert ledger.outstanding == {0}


def test_ledger_refuses_unsent_sequence():
    ledger = SequenceLedger()
    assert not ledger.mark_received(3)
    assert not ledger.seen(3)


def test_ledger_out_of_order():
    ledger = SequenceLedger()
    for seq in range(3):
        ledger.mark_sent(seq)
    assert ledger.mark_received(2)
    assert ledger.mark_received(0)
    assert ledger.outstanding == {1}


def test_ledger_forget():
    ledger = SequenceLedger()
    ledger.mark_sent(4)
    ledger.forget(4)
    assert not ledger.mark_received(4)
