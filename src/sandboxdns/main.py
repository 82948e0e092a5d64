from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import List

from . import etchosts
from .config.config_parser import build_controller, parse_config_file
from .config.logging_config import init_logging
from .errors import SandboxDNSError
from .lifecycle import RESOLVER_IP_SANDBOX

logger = logging.getLogger("sandboxdns.main")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile sandbox resolv.conf and hosts files"
    )
    parser.add_argument("--config", default="config.yaml", help="Path to YAML config")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Force debug logging"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("setup", help="Build hosts and resolv.conf for a sandbox")
    p.add_argument("sandbox_id")

    p = sub.add_parser("update", help="Re-filter resolv.conf for the IPv6 state")
    p.add_argument("sandbox_id")
    p.add_argument("--no-ipv6", action="store_true", help="Strip IPv6 nameservers")

    p = sub.add_parser("rebuild", help="Point resolv.conf at the embedded resolver")
    p.add_argument("sandbox_id")

    p = sub.add_parser("hosts", help="Add or delete hosts records")
    p.add_argument("action", choices=["add", "delete"])
    p.add_argument("sandbox_id")
    p.add_argument("ip")
    p.add_argument("names", nargs="+")

    p = sub.add_parser("serve", help="Start the embedded resolver and wait")
    p.add_argument("sandbox_id")
    p.add_argument(
        "--restore", action="store_true", help="Keep the existing resolv.conf"
    )
    return parser


def _wait_for_shutdown() -> None:
    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    try:
        stop.wait()
    except KeyboardInterrupt:
        pass


def main(argv: List[str] | None = None) -> int:
    """
    Entry point for the sandboxdns CLI.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code: 0 on success, 1 on error.

    Example use:
        sandboxdns --config sandboxes.yaml setup sb1
        sandboxdns --config sandboxes.yaml update sb1 --no-ipv6
    """
    args = _build_parser().parse_args(argv)

    try:
        app = parse_config_file(args.config)
    except (OSError, ValueError) as exc:
        print(str(exc))
        return 1

    log_cfg = app.logging.model_dump()
    if args.verbose:
        log_cfg["level"] = "debug"
    init_logging(log_cfg)
    logger.info("Loaded config from %s", args.config)

    controller = build_controller(app)
    sb = controller.sandbox(args.sandbox_id)
    if sb is None:
        logger.error("unknown sandbox %s", args.sandbox_id)
        return 1

    try:
        if args.command == "setup":
            sb.setup_resolution_files()
        elif args.command == "update":
            sb.restore_path()
            with sb.lock:
                outcome = sb.update_dns(not args.no_ipv6)
            print(outcome.value)
        elif args.command == "rebuild":
            sb.restore_path()
            with sb.lock:
                sb.resolver = sb.new_resolver(RESOLVER_IP_SANDBOX, True)
                sb.rebuild_dns()
        elif args.command == "hosts":
            sb.restore_path()
            recs = [etchosts.Record(hosts=" ".join(args.names), ip=args.ip)]
            if args.action == "add":
                result = sb.add_hosts_entries(recs)
            else:
                result = sb.delete_hosts_entries(recs)
            return 0 if result.ok else 1
        elif args.command == "serve":
            sb.restore_path()
            sb.start_resolver(restore=args.restore)
            if sb.resolver is None:
                return 1
            _wait_for_shutdown()
            sb.resolver.stop()
    except (OSError, SandboxDNSError) as exc:
        logger.error("%s failed for sandbox %s: %s", args.command, sb.id, exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
