# src/cert_scan/main.py

import argparse
import json
import logging
import re
import sys
from typing import Dict, List

import coloredlogs
import shtab

from cert_scan import __version__
from cert_scan.connection import DEFAULT_PORT, DEFAULT_TIMEOUT, Dialer
from cert_scan.grade import Grade
from cert_scan.pki import default_families
from cert_scan.scan_common import Family, ScanResult

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'

GRADE_COLORS = {
    Grade.GOOD: '\033[92m',
    Grade.WARNING: '\033[93m',
    Grade.BAD: '\033[91m',
    Grade.SKIPPED: '\033[94m',
}


def get_log_level(level_name: str) -> int:
    """Map a log level name to its logging constant, defaulting to WARNING."""
    return getattr(logging, level_name.upper(), logging.WARNING)


def setup_logging(level: int) -> None:
    """Colored logs on an interactive stderr, plain logging otherwise."""
    if hasattr(sys.stderr, 'isatty') and sys.stderr.isatty():
        coloredlogs.install(level=level, fmt=LOG_FORMAT, stream=sys.stderr)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def select_families(families: Dict[str, Family], family_pattern: str, scanner_pattern: str) -> Dict[str, Family]:
    """Filter families by name, then their scanners by name. Families left empty are dropped."""
    family_regexp = re.compile(family_pattern)
    selected = {}
    for name, family in families.items():
        if not family_regexp.search(name):
            continue
        family = family.select(scanner_pattern)
        if len(family):
            selected[name] = family
    return selected


def run_scans(hosts: List[str], families: Dict[str, Family]) -> Dict[str, Dict[str, Dict[str, ScanResult]]]:
    """Run every selected scanner against every host: results[host][family][scanner]."""
    logger = logging.getLogger(__name__)
    results = {}
    for host in hosts:
        logger.info(f"--- Scanning host: {host} ---")
        results[host] = {}
        for family_name, family in families.items():
            results[host][family_name] = {}
            for scanner_name, scanner in family.items():
                logger.debug(f"Running {family_name}/{scanner_name} against {host}")
                result = scanner.scan(host)
                if result.error is not None:
                    logger.warning(f"{family_name}/{scanner_name} failed for {host}: {result.error}")
                results[host][family_name][scanner_name] = result
    return results


def result_to_dict(result: ScanResult) -> dict:
    if result.error is not None:
        return {"grade": None, "output": None, "error": str(result.error)}
    return {
        "grade": result.grade.name,
        "output": str(result.output) if result.output is not None else None,
        "error": None,
    }


def print_families(families: Dict[str, Family]) -> None:
    """Print each family and its scanners with their descriptions."""
    for family_name, family in families.items():
        print(f"\033[1m{family_name}\033[0m: {family.description}")
        for scanner_name, description in family.describe():
            print(f"  {scanner_name}: {description}")


def print_human_summary(results) -> None:
    """
    Print a colorized summary of scan results, one line per scanner.

    A scanner that failed shows its error in place of the grade.
    """
    separator = "\n" + "=" * 70 + "\n"
    for host, by_family in results.items():
        print(separator)
        print(f"\033[1mScan results for host: {host}\033[0m")
        for family_name, by_scanner in by_family.items():
            print(f"\n\033[1m{family_name}:\033[0m")
            for scanner_name, result in by_scanner.items():
                if result.error is not None:
                    print(f"  {scanner_name:<16}: \033[91m❌ Error ({result.error})\033[0m")
                    continue
                color = GRADE_COLORS.get(result.grade, '')
                line = f"  {scanner_name:<16}: {color}{result.grade!s}\033[0m"
                if result.output is not None:
                    output_lines = str(result.output).splitlines() or [""]
                    line += f" ({output_lines[0]})"
                    for extra in output_lines[1:]:
                        line += f"\n{'':<20}{extra}"
                print(line)


def create_parser() -> argparse.ArgumentParser:
    """
    Create and return the argument parser for the command-line interface.

    Returns:
        argparse.ArgumentParser: The configured argument parser.
    """
    parser = argparse.ArgumentParser(
        description='Scan hosts for certificate hygiene: expiration, chain validity, revocation, weak signatures.'
    )
    parser.add_argument(
        '--version',
        '-V',
        action='version',
        version=f'%(prog)s {__version__}',
        help="Show program's version number and exit"
    )
    parser.add_argument('hosts', nargs='*',
                        help='Hosts to scan (e.g., example.com or example.com:8443)')
    parser.add_argument('-f', '--family', type=str, default='.*',
                        help='Regular expression selecting the scanner families to run (default: all)')
    parser.add_argument('-s', '--scanner', type=str, default='.*',
                        help='Regular expression selecting the scanners to run within each family (default: all)')
    parser.add_argument('-P', '--connect-port', type=int, default=DEFAULT_PORT,
                        help=f'Port to connect to when the host does not name one (default: {DEFAULT_PORT})')
    parser.add_argument('-t', '--timeout', type=float, default=DEFAULT_TIMEOUT,
                        help=f'Connection timeout in seconds (default: {DEFAULT_TIMEOUT})')
    network_group = parser.add_mutually_exclusive_group()
    network_group.add_argument('-4', dest='network', action='store_const', const='tcp4', default='tcp',
                               help='Connect over IPv4 only')
    network_group.add_argument('-6', dest='network', action='store_const', const='tcp6',
                               help='Connect over IPv6 only')
    parser.add_argument('--no-aia', action='store_true',
                        help='Do not complete a leaf-only chain with intermediates fetched from AIA URLs')
    parser.add_argument('-j', '--json', action='store_true',
                        help='Print results as JSON on stdout')
    parser.add_argument('--list', action='store_true',
                        help='List the available families and scanners and exit')
    parser.add_argument('-l', '--loglevel', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], default='WARNING',
                        help='Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)')

    # Add shtab completion argument using the parser program name
    prog_name = parser.prog
    shtab.add_argument_to(parser, ['--print-completion'], preamble={
        "bash": f"""
# Load this into your shell environment by adding
# eval "$({prog_name} --print-completion bash)"
# to your .bashrc or .bash_profile
        """,
        "zsh": f"""
# Load this into your shell environment by adding
# eval "$({prog_name} --print-completion zsh)"
# to your .zshrc
        """,
    })
    return parser


def main(argv=None):
    """
    Parse command-line arguments, then list the scanners or run them against the given hosts.
    """
    parser = create_parser()
    # shtab handles --print-completion here and exits if it's present
    args = parser.parse_args(argv)

    setup_logging(get_log_level(args.loglevel))
    logger = logging.getLogger(__name__)

    dialer = Dialer(timeout=args.timeout, network=args.network,
                    default_port=args.connect_port, fetch_intermediates=not args.no_aia)
    families = select_families(default_families(dialer), args.family, args.scanner)

    if args.list:
        print_families(families)
        return 0

    if not args.hosts:
        parser.print_help()
        return 0

    if not families:
        logger.warning(f"No scanner matches family '{args.family}' and scanner '{args.scanner}'.")

    results = run_scans(args.hosts, families)
    if args.json:
        report = {host: {family: {name: result_to_dict(result) for name, result in by_scanner.items()}
                         for family, by_scanner in by_family.items()}
                  for host, by_family in results.items()}
        json.dump(report, sys.stdout, indent=2)
        print()
    else:
        print_human_summary(results)
    return 0


if __name__ == "__main__":
    sys.exit(main())
