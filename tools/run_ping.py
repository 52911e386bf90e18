# tools/run_ping.py
# Usage examples:
#   python3 -m tools.run_ping 8.8.8.8 -c 5
#   python3 -m tools.run_ping example.com -c 10 -i 0.2 -s 56 --privileged
#   python3 -m tools.run_ping fake -c 5 --drop 2 4

import argparse
import logging
import signal
import sys

from pingcore.config import UNBOUNDED, Settings
from pingcore.engine.pinger import Pinger
from pingcore.errors import PingError


def print_packet(pkt):
    print(f"{pkt.nbytes} bytes from {pkt.ip_addr}: icmp_seq={pkt.seq} ttl={pkt.ttl} time={pkt.rtt * 1000:.3f} ms")


def print_stats(stats):
    print(f"\n--- {stats.addr} ping statistics ---")
    print(f"{stats.packets_sent} packets transmitted, {stats.packets_recv} packets received, "
          f"{stats.packet_loss:.1f}% packet loss")
    print(f"round-trip min/avg/max/stddev = {stats.min_rtt * 1000:.3f}/{stats.avg_rtt * 1000:.3f}/"
          f"{stats.max_rtt * 1000:.3f}/{stats.stddev_rtt * 1000:.3f} ms")


def settings_from(args) -> Settings:
    return Settings(
        count=args.count,
        interval=args.interval,
        timeout=args.timeout,
        size=args.size,
        source=args.source,
        privileged=args.privileged,
    )


def build_pinger(args) -> Pinger:
    kwargs = {}
    if args.target == "fake":
        from pingcore.transport.fake import FakeTransport
        fake = FakeTransport(ttl=64, drop=args.drop, delay=0.002)
        kwargs["transport_factory"] = fake.open
        kwargs["resolver"] = lambda addr: ("127.0.0.1", True)
    return Pinger(args.target, settings=settings_from(args),
                  on_receive=print_packet, on_finish=print_stats, **kwargs)


def build_argparser():
    ap = argparse.ArgumentParser(description="Send ICMP echo requests and report round-trip statistics")
    ap.add_argument("target", help="Destination host/IP (or 'fake' to use FakeTransport)")
    ap.add_argument("-c", "--count", type=int, default=UNBOUNDED, help="Stop after this many replies (-1: until Ctrl-C)")
    ap.add_argument("-i", "--interval", type=float, default=1.0, help="Seconds between packets")
    ap.add_argument("-t", "--timeout", type=float, default=100.0, help="Overall run timeout in seconds")
    ap.add_argument("-s", "--size", type=int, default=24, help="Payload size in bytes (min 16)")
    ap.add_argument("--source", default="", help="Source address to bind")
    ap.add_argument("--privileged", action="store_true", default=False,
                    help="Use a raw socket (root / CAP_NET_RAW) instead of datagram ICMP")
    ap.add_argument("--drop", type=int, nargs="*", default=[], help="Sequence numbers the fake transport drops")
    ap.add_argument("--debug", action="store_true", help="Verbose logging")
    return ap


def main(argv=None) -> int:
    args = build_argparser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        pinger = build_pinger(args)
    except PingError as e:
        print(f"ping: {e}", file=sys.stderr)
        return 2

    print(f"PING {pinger.addr} ({pinger.ip_addr}): {pinger.settings.size} data bytes")
    # Ctrl-C ends the run normally so the summary still prints
    signal.signal(signal.SIGINT, lambda signum, frame: pinger.stop())
    try:
        pinger.run()
    except (PingError, OSError) as e:
        print(f"ping: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
