# pingcore/engine/pinger.py

import logging
import random
import threading
import time
from typing import Callable, List, Optional, Tuple

from pingcore.config import Settings
from pingcore.engine.codec import (
    build_echo_request,
    decode_payload,
    encode_payload,
    now_ns,
    parse_echo,
    rtt_from,
)
from pingcore.engine.correlator import is_echo_reply, match
from pingcore.engine.state import Phase, RunState
from pingcore.errors import (
    EngineStateError,
    MalformedPacket,
    TransportClosed,
    TransportUnavailable,
)
from pingcore.resolver import resolve
from pingcore.schemas import Packet, Stats
from pingcore.transport.base import Datagram, Transport
from pingcore.transport.icmp import IcmpTransport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[bool, str, bool], Transport]
Resolver = Callable[[str], Tuple[str, bool]]


class Pinger:
    """
    Sends echo requests to one address and collects the replies.

    run() blocks until the configured count has been answered, the timeout
    (counted from run start) expires, or stop() is called. A sender thread
    and a receiver thread share the transport; RunState.lock guards every
    counter they touch.
    """

    def __init__(self,
                 addr: str,
                 settings: Optional[Settings] = None,
                 on_receive: Optional[Callable[[Packet], None]] = None,
                 on_finish: Optional[Callable[[Stats], None]] = None,
                 transport_factory: TransportFactory = IcmpTransport.open,
                 resolver: Resolver = resolve):
        self.settings = settings or Settings()
        self.on_receive = on_receive
        self.on_finish = on_finish
        self.transport_factory = transport_factory
        self.resolver = resolver

        self.state = RunState()
        self._addr = ""
        self._ip_addr = ""
        self._ipv4 = True
        self.set_addr(addr)

        # one generator per engine, seeded once from the OS
        self._rng = random.Random()
        self.id = self._rng.randint(0, 0xFFFF)
        self.tracker = self._rng.getrandbits(64)

        self._done = threading.Event()
        self._finish_lock = threading.Lock()
        self._finished = False
        self._transport: Optional[Transport] = None
        self._threads: List[threading.Thread] = []

    # ------------------------------------------------------------------
    # addressing
    # ------------------------------------------------------------------
    @property
    def addr(self) -> str:
        return self._addr

    @property
    def ip_addr(self) -> str:
        return self._ip_addr

    @property
    def ipv4(self) -> bool:
        return self._ipv4

    def set_addr(self, addr: str) -> None:
        """Resolve and switch target. Only allowed before run()."""
        if self.state.phase is not Phase.IDLE:
            raise EngineStateError("cannot change address after run() has started")
        ip, ipv4 = self.resolver(addr)
        self._addr, self._ip_addr, self._ipv4 = addr, ip, ipv4

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def packets_sent(self) -> int:
        return self.state.sent

    @property
    def packets_recv(self) -> int:
        return self.state.received

    def run(self) -> Stats:
        s = self.settings
        with self.state.lock:
            if self.state.phase is not Phase.IDLE:
                raise EngineStateError(f"pinger is {self.state.phase.value}, run() needs a fresh one")
            s.validate()
            self.state.phase = Phase.RUNNING
        deadline = time.monotonic() + s.timeout
        logger.info("PING %s (%s): %d data bytes, count=%s interval=%.3fs timeout=%.3fs",
                    self._addr, self._ip_addr, s.size,
                    s.count if s.bounded else "unbounded", s.interval, s.timeout)

        try:
            transport = self.transport_factory(self._ipv4, s.source, s.privileged)
        except TransportUnavailable as e:
            logger.error("ping %s aborted: %s", self._addr, e)
            with self.state.lock:
                self.state.error = e
            self._set_reason("transport_unavailable")
            self._finish()
            raise

        self._transport = transport
        # stop() may have run before the transport existed
        if self._done.is_set():
            transport.close()

        self._threads = [
            threading.Thread(target=self._recv_loop, args=(transport,),
                             name=f"ping-recv-{self._addr}", daemon=True),
            threading.Thread(target=self._send_loop, args=(transport,),
                             name=f"ping-send-{self._addr}", daemon=True),
        ]
        for t in self._threads:
            t.start()

        if not self._done.wait(max(0.0, deadline - time.monotonic())):
            self._set_reason("timeout")
        stats = self._finish()

        if self.state.error is not None:
            raise self.state.error
        return stats

    def stop(self) -> None:
        """Ask a running pinger to finish. Safe from any thread, any number of times."""
        self._set_reason("stopped")
        self._done.set()
        transport = self._transport
        if transport is not None:
            transport.close()

    def statistics(self) -> Stats:
        with self.state.lock:
            return self.state.rtts.snapshot(self.state.sent, self.state.received,
                                            addr=self._addr, ip_addr=self._ip_addr)

    def _set_reason(self, reason: str) -> None:
        with self.state.lock:
            if self.state.stop_reason is None:
                self.state.stop_reason = reason

    def _finish(self) -> Stats:
        with self._finish_lock:
            if self._finished:
                return self.statistics()
            self._finished = True

            self._done.set()
            if self._transport is not None:
                self._transport.close()
            for t in self._threads:
                if t is not threading.current_thread():
                    t.join()
            with self.state.lock:
                self.state.phase = Phase.FINISHED
            stats = self.statistics()

        logger.info("--- %s ping statistics --- %d transmitted, %d received, %.1f%% loss (%s)",
                    self._addr, stats.packets_sent, stats.packets_recv,
                    stats.packet_loss, self.state.stop_reason)
        if self.on_finish is not None:
            self.on_finish(stats)
        return stats

    # ------------------------------------------------------------------
    # sender
    # ------------------------------------------------------------------
    def _send_loop(self, transport: Transport) -> None:
        s = self.settings
        while not self._done.is_set():
            with self.state.lock:
                if s.bounded and self.state.sent >= s.count:
                    return
                # book the send before it hits the wire; a fast reply must find it outstanding
                seq = self.state.next_sequence()
                self.state.ledger.mark_sent(seq & 0xFFFF)
                self.state.sent += 1
                sent = self.state.sent

            packet = build_echo_request(self._ipv4, self.id, seq, encode_payload(self.tracker, s.size))
            try:
                transport.send(packet, self._ip_addr)
            except TransportClosed:
                self._unbook(seq)
                return
            except OSError as e:
                self._unbook(seq)
                if self._done.is_set():
                    # stop() closed the socket under us
                    return
                logger.error("sending icmp_seq=%d to %s failed: %s", seq, self._ip_addr, e)
                with self.state.lock:
                    self.state.error = e
                self._set_reason("send_failed")
                self._done.set()
                return
            logger.debug("sent icmp_seq=%d to %s", seq, self._ip_addr)

            if s.bounded and sent >= s.count:
                return
            if self._done.wait(s.interval):
                return

    def _unbook(self, seq: int) -> None:
        with self.state.lock:
            self.state.ledger.forget(seq & 0xFFFF)
            self.state.sent -= 1

    # ------------------------------------------------------------------
    # receiver
    # ------------------------------------------------------------------
    def _recv_loop(self, transport: Transport) -> None:
        while not self._done.is_set():
            try:
                datagram = transport.read(self.settings.poll_interval)
            except TransportClosed:
                return
            except OSError as e:
                if self._done.is_set():
                    return
                logger.error("reading from ICMP socket failed: %s", e)
                with self.state.lock:
                    self.state.error = e
                self._set_reason("read_failed")
                self._done.set()
                return
            if datagram is not None:
                self._handle(datagram)

    def _handle(self, datagram: Datagram) -> Optional[Packet]:
        """Match one datagram against this engine. Returns the Packet if it counted."""
        received_ns = now_ns()
        try:
            msg = parse_echo(datagram["data"])
            if not is_echo_reply(msg, self._ipv4):
                logger.debug("ignoring ICMP type %d from %s", msg.type, datagram["src"])
                return None
            timestamp_ns, tracker = decode_payload(msg.payload)
        except MalformedPacket as e:
            logger.debug("dropping datagram from %s: %s", datagram["src"], e)
            return None

        # raw sockets hand back our identifier untouched, datagram sockets don't
        expected_id = self.id if self.settings.privileged else None
        if not match(tracker, self.tracker, msg.identifier, expected_id):
            logger.debug("dropping echo reply seq=%d from %s: not ours", msg.sequence, datagram["src"])
            return None

        s = self.settings
        rtt = rtt_from(timestamp_ns, received_ns)
        with self.state.lock:
            if not self.state.ledger.mark_received(msg.sequence):
                logger.debug("dropping duplicate or unknown icmp_seq=%d", msg.sequence)
                return None
            self.state.received += 1
            self.state.rtts.record(rtt)
            complete = s.bounded and self.state.received >= s.count

        packet = Packet(
            rtt=rtt,
            ip_addr=datagram["src"],
            addr=self._addr,
            nbytes=datagram["nbytes"],
            seq=msg.sequence,
            ttl=datagram["ttl"],
        )
        logger.debug("%d bytes from %s: icmp_seq=%d ttl=%d time=%.3f ms",
                     packet.nbytes, packet.ip_addr, packet.seq, packet.ttl, packet.rtt * 1000)
        if self.on_receive is not None:
            try:
                self.on_receive(packet)
            except Exception as e:
                logger.exception("on_receive callback failed on icmp_seq=%d", packet.seq)
                with self.state.lock:
                    self.state.error = e
                self._set_reason("callback_failed")
                self._done.set()
                return packet
        if complete:
            self._set_reason("count")
            self._done.set()
        return packet
