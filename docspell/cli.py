"""
DocSpell Command Line
=====================
Spellcheck the documentation comments of a Rust project.

    docspell [-v...|-q] check [--cfg PATH] [--checkers a,b] [--skip-readme]
                              [--code N] [--format text|json|csv] [-r] [paths...]
    docspell [-v...|-q] fix   [same options] [--auto] [--threshold F]
    docspell config (--stdout | --cfg PATH [--force])

Without a sub-command ``check`` is assumed.
"""

import argparse
import signal
import sys
import threading
from typing import List, Optional

from .config import CheckerConfig, KNOWN_BACKENDS, default_config_json, load_config, save_config
from .config_logging import (
    VERSION, ConfigurationError, ManifestError, NoBackendsAvailable,
    configure_logging, get_logger,
)
from .discovery import discover
from .engine import Engine, ExitCode
from .report import get_exporter, summarize

logger = get_logger('cli')

COMMANDS = ('check', 'fix', 'config')


def _add_run_arguments(parser: argparse.ArgumentParser):
    parser.add_argument('paths', nargs='*', help='Files, directories or Cargo.toml manifests')
    parser.add_argument('-r', '--recursive', action='store_true',
                        help='Descend into subdirectories of directory arguments')
    parser.add_argument('-c', '--cfg', type=str, help='Use a non default configuration file')
    parser.add_argument('--checkers', type=str,
                        help='Comma separated backends, intersected with the configured ones')
    parser.add_argument('--skip-readme', action='store_true',
                        help='Do not process README files listed in Cargo.toml manifests')
    parser.add_argument('-m', '--code', type=int, default=None,
                        help='Exit value when findings remain (default from config: 1)')
    parser.add_argument('--format', choices=['text', 'json', 'csv'], default='text',
                        help='Report format')
    parser.add_argument('-j', '--jobs', type=int, default=None, help='Worker threads')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='docspell',
                                     description='Spellcheck all your doc comments')
    parser.add_argument('--version', action='version', version=f'docspell {VERSION}')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='Verbosity level')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Silence all printed messages, overrules -v')

    subparsers = parser.add_subparsers(dest='command')

    check = subparsers.add_parser('check', help='Report spelling and grammar mistakes')
    _add_run_arguments(check)

    fix = subparsers.add_parser('fix', help='Review and apply corrections')
    _add_run_arguments(fix)
    fix.add_argument('--auto', action='store_true',
                     help='Apply confident suggestions without asking')
    fix.add_argument('--threshold', type=float, default=None,
                     help='Minimum confidence for --auto (default from config: 0.9)')

    config = subparsers.add_parser('config', help='Write the default configuration')
    target = config.add_mutually_exclusive_group(required=True)
    target.add_argument('--stdout', action='store_true', help='Print the configuration')
    target.add_argument('-c', '--cfg', type=str, help='Write the configuration to this file')
    config.add_argument('-f', '--force', action='store_true',
                        help='Overwrite an existing configuration file')
    config.add_argument('--checkers', type=str, help='Only enable these backends')

    return parser


def _normalize_argv(argv: List[str]) -> List[str]:
    """Insert the implicit ``check`` command."""
    for index, arg in enumerate(argv):
        if arg in COMMANDS or arg in ('-h', '--help', '--version'):
            return argv
        if arg == '-q' or arg == '--quiet' or arg == '--verbose' or (
                arg.startswith('-v') and set(arg[1:]) == {'v'}):
            continue
        return argv[:index] + ['check'] + argv[index:]
    return argv + ['check']


def _log_level(verbose: int) -> Optional[str]:
    if verbose >= 2:
        return 'DEBUG'
    if verbose == 1:
        return 'INFO'
    return None


def _parse_checkers(value: str) -> List[str]:
    checkers = [c.strip().lower() for c in value.split(',') if c.strip()]
    unknown = [c for c in checkers if c not in KNOWN_BACKENDS]
    if unknown:
        raise ConfigurationError(f"Unknown checker(s): {', '.join(unknown)}",
                                 known=list(KNOWN_BACKENDS))
    return checkers


def _fail(message: str) -> int:
    print(f"docspell: error: {message}", file=sys.stderr)
    return int(ExitCode.FATAL)


def run_config(args) -> int:
    config = CheckerConfig()
    if args.checkers:
        config.enabled_backends = _parse_checkers(args.checkers)
    if args.stdout:
        if args.checkers:
            import json
            sys.stdout.write(json.dumps(config.to_dict(), indent=2) + "\n")
        else:
            sys.stdout.write(default_config_json())
        return int(ExitCode.SUCCESS)
    save_config(args.cfg, config, force=args.force)
    logger.info("Configuration written", path=args.cfg)
    return int(ExitCode.SUCCESS)


def run_pipeline(args, cancel_event: threading.Event) -> int:
    config = load_config(args.cfg)
    if args.checkers:
        requested = _parse_checkers(args.checkers)
        for name in requested:
            if name not in config.enabled_backends:
                logger.warning(f"{name} was never configured")
        config = config.with_backends(requested)
    findings_code = args.code if args.code is not None else config.findings_exit_code

    files = discover(args.paths, recursive=args.recursive, skip_readme=args.skip_readme)
    logger.info("Files discovered", count=len(files))

    engine = Engine(config, cancel_event=cancel_event, jobs=args.jobs)
    run = engine.check(files)

    if args.command == 'fix':
        reviewer = None
        if sys.stdin.isatty() and not args.quiet:
            from .interactive import ConsoleReviewer
            reviewer = ConsoleReviewer()
        engine.fix(run, reviewer=reviewer, auto=args.auto, threshold=args.threshold)

    if not (args.quiet and args.format == 'text'):
        sys.stdout.write(get_exporter(args.format).export(run))
        if args.format != 'text':
            sys.stdout.write("\n")
    logger.info("Run finished", **summarize(run))
    return run.exit_code(findings_code)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point; returns the process exit status."""
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(_normalize_argv(argv))

    configure_logging(level=_log_level(args.verbose), quiet=args.quiet)

    if args.command == 'config':
        try:
            return run_config(args)
        except ConfigurationError as e:
            return _fail(e.message)

    cancel_event = threading.Event()

    def handle_signal(signum, frame):
        logger.warning("Interrupted, stopping", signal=signum)
        cancel_event.set()

    previous = {}
    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, handle_signal)

    try:
        return run_pipeline(args, cancel_event)
    except (ConfigurationError, ManifestError, NoBackendsAvailable) as e:
        return _fail(e.message)
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
        from .languagetool import close_clients
        close_clients()


if __name__ == '__main__':
    sys.exit(main())
