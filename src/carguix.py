"""carguix - Guix package definitions for Rust crates.

    Resolves the transitive dependencies of a crates.io crate and prints one
    Guix package definition per crate version.

    Returns:
        int: Exit code
"""
import logging
import sys
import tempfile

from args import parse_args
from constants import Constants, ExitCodes, _load_yaml_config, apply_config
from common.logging_utils import add_file_handler, configure_logging, extra_context, is_debug_enabled
from errors import (
    CarguixError,
    ConfigError,
    HashError,
    IndexUpdateError,
    ManifestError,
    ResolutionError,
)
from guix.emitter import render_graph
from guix.hash import HashStore, compute_hash
from guix.package import source_url
from registry.crates import (
    CratesRegistryClient,
    IndexSnapshot,
    LocalCrateClient,
    fetch_crate_metadata,
    load_local_crates,
)
from resolution.resolver import DependencyResolver
from versioning.models import SelectionPolicy
from versioning.selector import VersionSelector

logger = logging.getLogger(__name__)

_EXIT_CODES = [
    (ResolutionError, ExitCodes.RESOLUTION_ERROR),
    (IndexUpdateError, ExitCodes.CONNECTION_ERROR),
    (ConfigError, ExitCodes.FILE_ERROR),
    (ManifestError, ExitCodes.FILE_ERROR),
    (HashError, ExitCodes.HASH_ERROR),
]


def exit_code_for(err):
    """Map an error to the process exit code."""
    for error_type, code in _EXIT_CODES:
        if isinstance(err, error_type):
            return code.value
    if isinstance(err, OSError):
        return ExitCodes.FILE_ERROR.value
    return ExitCodes.RESOLUTION_ERROR.value


def log_error_chain(err):
    """Log an error and every cause chained to it."""
    logger.error("error: %s", err)
    cause = err.__cause__ or err.__context__
    while cause is not None:
        logger.error("caused by: %s", cause)
        cause = cause.__cause__ or cause.__context__


def build_resolver(args, snapshot, local_crates=()):
    """Create the registry client and resolver from CLI arguments and config.

    Local crates, when given, are answered from their manifests ahead of the registry.
    """
    client = CratesRegistryClient(snapshot, include_dev=args.INCLUDE_DEV)
    if local_crates:
        client = LocalCrateClient(client, local_crates)
    jobs = args.JOBS if args.JOBS is not None else Constants.DEFAULT_JOBS
    try:
        policy = SelectionPolicy(args.POLICY or Constants.DEFAULT_POLICY)
        return DependencyResolver(client, selector=VersionSelector(policy), jobs=jobs)
    except ValueError as exc:
        raise ConfigError(f"invalid resolver settings: {exc}") from exc


def run(args):
    """Resolve the requested crate and render the Guix module.

    Raises:
        CarguixError: On any failure; nothing is rendered in that case.

    Returns:
        str: The rendered Guix module.
    """
    apply_config(_load_yaml_config(args.CONFIG))

    root_name, root_version = args.crate_name, args.VERSION
    local_crates = []
    if args.MANIFEST_PATH:
        local_crates = load_local_crates(args.MANIFEST_PATH, include_dev=args.INCLUDE_DEV)
        root_name, root_version = local_crates[0].name, local_crates[0].version
        logger.info("using local crate %s from %s", local_crates[0].key, local_crates[0].path)
    local_metadata = {crate.key: crate.metadata for crate in local_crates}

    snapshot = IndexSnapshot(args.INDEX_PATH or Constants.INDEX_PATH, offline=args.OFFLINE)
    if args.UPDATE or not snapshot.exists():
        logger.info("fetching crates.io index...")
        snapshot.update()

    resolver = build_resolver(args, snapshot, local_crates)
    graph = resolver.resolve(root_name, root_version)
    logger.info("resolved %d crate versions", len(graph))

    def metadata_for(node):
        if node.key in local_metadata:
            return local_metadata[node.key]
        if args.WITH_METADATA:
            return fetch_crate_metadata(node.name, node.version)
        return None

    if args.NO_HASH:
        return render_graph(root_name, graph, lambda node: Constants.HASH_PLACEHOLDER, metadata_for)

    store = HashStore(Constants.HASH_DB_PATH)
    with tempfile.TemporaryDirectory(prefix="carguix") as tmpdir:
        def hash_for(node):
            return compute_hash(source_url(node), store, tmpdir)
        return render_graph(root_name, graph, hash_for, metadata_for)


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL)
    if args.LOG_FILE:
        add_file_handler(args.LOG_FILE)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    try:
        result = run(args)
        if args.OUTPUT:
            with open(args.OUTPUT, "w", encoding="utf-8") as fh:
                fh.write(result)
            logger.info("Guix module written to %s", args.OUTPUT)
        else:
            sys.stdout.write(result)
    except (CarguixError, OSError) as err:
        log_error_chain(err)
        sys.exit(exit_code_for(err))

    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
