"""Argument parsing functionality for carguix."""

import argparse
from constants import Constants


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="carguix",
        description="Generate Guix package definitions for Rust crates",
        add_help=True,
    )

    parser.add_argument("crate_name",
                        help="Name of the crate on crates.io",
                        nargs="?",
                        type=str)
    parser.add_argument("-m", "--manifest-path",
                        dest="MANIFEST_PATH",
                        help="Path to crate directory (containing Cargo.toml)",
                        action="store",
                        type=str)
    parser.add_argument("-v", "--version",
                        dest="VERSION",
                        help="Generate package definition for specific version of the crate (default: earliest)",
                        action="store",
                        type=str)
    parser.add_argument("-u", "--update",
                        dest="UPDATE",
                        help="Update crates.io index",
                        action="store_true")
    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Write the Guix module to this file instead of stdout",
                        action="store",
                        type=str)
    parser.add_argument("-j", "--jobs",
                        dest="JOBS",
                        help="Number of concurrent registry fetches (default: from config, else 1)",
                        action="store",
                        type=int)
    parser.add_argument("--policy",
                        dest="POLICY",
                        help="Version selection policy for requirements (default: earliest)",
                        action="store",
                        type=str.lower,
                        choices=Constants.POLICIES)
    parser.add_argument("--dev",
                        dest="INCLUDE_DEV",
                        help="Also resolve dev-dependencies",
                        action="store_true")
    parser.add_argument("--offline",
                        dest="OFFLINE",
                        help="Only use the locally cached index; never contact the registry",
                        action="store_true")
    parser.add_argument("--no-hash",
                        dest="NO_HASH",
                        help="Skip source hashing and emit a placeholder hash",
                        action="store_true")
    parser.add_argument("--with-metadata",
                        dest="WITH_METADATA",
                        help="Fill home page, synopsis, description and license from the crates.io API",
                        action="store_true")
    parser.add_argument("--index-path",
                        dest="INDEX_PATH",
                        help="Directory of the local index snapshot",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    args = parser.parse_args(argv)
    if not args.crate_name and not args.MANIFEST_PATH:
        parser.error("a crate name or --manifest-path is required")
    if args.MANIFEST_PATH and args.VERSION:
        parser.error("--version cannot be combined with --manifest-path")
    return args
