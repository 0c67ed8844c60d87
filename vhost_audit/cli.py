import argparse
import logging
import os
import sys
from typing import Optional

from .auditor import VhostAuditor
from .config import DEFAULT_CONCURRENCY, DEFAULT_STATE_FILE, DEFAULT_TIMEOUT, AuditConfig
from .errors import AuditError, RegressionsFound
from .trail import AuditTrail

VERSION = "0.1.0"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level_name: Optional[str]) -> logging.LoggerAdapter:
    level = logging.getLevelName((level_name or "info").upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(format=LOG_FORMAT, stream=sys.stderr)
    logger = logging.getLogger("vhost_audit")
    logger.setLevel(level)
    return logging.LoggerAdapter(logger, {"app": "vhost-audit"})


def build_config(args: argparse.Namespace, config_path: str) -> AuditConfig:
    return AuditConfig.build(
        config_path=config_path,
        state_path=args.state_file,
        ignore_servers=args.exclude or "",
        concurrency=args.concurrency,
        timeout=args.timeout,
        verify_hash=getattr(args, "verify_hash", True),
        report_path=getattr(args, "report", None),
    )


def _trail(args: argparse.Namespace) -> Optional[AuditTrail]:
    return AuditTrail(args.audit_log) if args.audit_log else None


def command_index(args: argparse.Namespace, log: logging.LoggerAdapter) -> None:
    config = build_config(args, args.input)
    auditor = VhostAuditor(config, logger=log)
    baseline = auditor.index()
    trail = _trail(args)
    if trail:
        trail.record_index(config.config_path, baseline)
    if config.state_path != "-":
        print(f"Index complete. {len(baseline.server_statuses)} statuses saved to {config.state_path}")


def command_diff(args: argparse.Namespace, log: logging.LoggerAdapter) -> None:
    config = build_config(args, args.diff)
    auditor = VhostAuditor(config, logger=log)
    trail = _trail(args)
    try:
        auditor.diff()
    except RegressionsFound as e:
        if trail:
            trail.record_diff(config.config_path, auditor.config_hash, len(auditor.results), e.regressions)
        raise
    if trail:
        trail.record_diff(config.config_path, auditor.config_hash, len(auditor.results))
    print("Diff complete. No status changes found.")


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("-s", "--state-file", default=DEFAULT_STATE_FILE, help="baseline state file ('-' for stdio)")
    p.add_argument("-x", "--exclude", default="", help="comma separated list of server names to exclude")
    p.add_argument("-c", "--concurrency", type=int, default=DEFAULT_CONCURRENCY)
    p.add_argument("-t", "--timeout", default=DEFAULT_TIMEOUT, help="per-request timeout, e.g. 5s or 750ms")
    p.add_argument("-l", "--log-level", default=os.environ.get("LOG_LEVEL", "info"))
    p.add_argument("--audit-log", required=False, help="append a hash-chained JSONL record of the run")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Probe nginx virtual hosts and report status code drift")
    parser.add_argument("-v", "--version", action="version", version=f"vhost-audit {VERSION}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_index = subparsers.add_parser("index", help="Probe every server block and save a baseline")
    p_index.add_argument("-i", "--input", required=True, help="nginx config file ('-' for stdin)")
    _add_common(p_index)
    p_index.set_defaults(func=command_index)

    p_diff = subparsers.add_parser("diff", help="Probe again and compare with the saved baseline")
    p_diff.add_argument("-d", "--diff", required=True, help="nginx config file ('-' for stdin)")
    p_diff.add_argument("--no-verify-hash", dest="verify_hash", action="store_false",
                        help="skip the config hash check against the baseline")
    p_diff.add_argument("--report", required=False, help="write the regressions as JSON to this path")
    _add_common(p_diff)
    p_diff.set_defaults(func=command_diff)

    args = parser.parse_args(argv)
    log = setup_logging(args.log_level)
    try:
        args.func(args, log)
    except (AuditError, OSError) as e:
        log.error("errors during %s: %s", args.command, e)
        sys.exit(1)


if __name__ == "__main__":
    main()
