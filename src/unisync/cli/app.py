"""
CLI Application - Command line entry point for unisync.

Commands operate on a JSON state file of SyncState records:

    unisync register --type GatewayRule --owner GatewayRule/default/block-ads \\
        --priority 10 --config '{"name": "block-ads", "action": "block"}'
    unisync list
    unisync plan
    unisync reconcile --execute
    unisync unregister --type GatewayRule --owner GatewayRule/default/block-ads
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from ..adapters import CloudflareApiFactory, EnvironmentConfigProvider, JsonFileSyncStateRepository
from ..application.sync import ReconcileResult, SyncEngine, SyncStateStore
from ..core.domain import CredentialsRef, EventBus, OwnerRef, ResourceType
from ..core.exceptions import UnisyncError
from ..core.ports import AppConfig
from .output import Console


DEFAULT_STATE_FILE = Path("unisync-state.json")

# Reconcile passes per SyncState in one CLI run (finalizer add + apply)
MAX_PASSES = 5


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="unisync",
        description="Aggregate declared configuration and sync it to Cloudflare",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--state-file", "-s",
        type=str,
        help=f"SyncState file (or set UNISYNC_STATE_FILE, default {DEFAULT_STATE_FILE})"
    )

    parser.add_argument(
        "--env-file",
        type=str,
        help="Path to a .env file"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="Show SyncStates and their status")
    list_cmd.add_argument("--type", "-t", dest="kind", help="Only this resource type")

    plan_cmd = commands.add_parser("plan", help="Show what reconcile would do (no changes)")
    plan_cmd.add_argument("name", nargs="?", help="SyncState name (default: all)")

    reconcile_cmd = commands.add_parser("reconcile", help="Sync SyncStates to Cloudflare")
    reconcile_cmd.add_argument("name", nargs="?", help="SyncState name (default: all)")
    reconcile_cmd.add_argument(
        "--execute",
        action="store_true",
        help="Actually execute changes (default is dry-run)"
    )
    reconcile_cmd.add_argument(
        "--no-confirm",
        action="store_true",
        help="Skip confirmation prompts (use with caution!)"
    )

    register_cmd = commands.add_parser("register", help="Register a configuration source")
    _add_source_arguments(register_cmd)
    register_cmd.add_argument("--priority", "-p", type=int, default=100, help="Lower wins (default 100)")
    register_cmd.add_argument(
        "--config", "-c",
        required=True,
        help="Config as JSON, or @path to a JSON file"
    )
    register_cmd.add_argument("--account", default="", help="Cloudflare account id")
    register_cmd.add_argument("--zone", default="", help="Cloudflare zone id")
    register_cmd.add_argument("--credentials", help="Named credentials (UNISYNC_CREDENTIALS_<NAME>)")

    unregister_cmd = commands.add_parser("unregister", help="Remove a configuration source")
    _add_source_arguments(unregister_cmd)

    return parser


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--type", "-t",
        dest="kind",
        required=True,
        choices=[t.kind for t in ResourceType],
        help="Resource type"
    )
    parser.add_argument("--owner", "-o", required=True, help="Kind/namespace/name of the source")
    parser.add_argument("--id", dest="external_id", help="Known external id")
    parser.add_argument("--key", dest="natural_key", help="Natural key appended to the placeholder")


# =============================================================================
# Commands
# =============================================================================

def _load_json(value: str) -> dict[str, Any]:
    text = Path(value[1:]).read_text() if value.startswith("@") else value
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("config must be a JSON object")
    return data


def run_list(repository: JsonFileSyncStateRepository, args: argparse.Namespace, console: Console) -> int:
    resource_type = ResourceType.from_kind(args.kind) if args.kind else None
    console.sync_states(repository.list(resource_type))
    return 0


def run_plan(engine: SyncEngine, names: list[str], console: Console) -> int:
    console.section(f"Plan for {len(names)} SyncState(s)")
    failed = 0
    for name in names:
        plan = engine.plan(name)
        console.plan(plan)
        if plan.action == "error":
            failed += 1
    return 1 if failed else 0


def run_reconcile(engine: SyncEngine, names: list[str], console: Console) -> int:
    console.section(f"Reconciling {len(names)} SyncState(s)")
    failed = 0
    for name in names:
        result = reconcile_until_settled(engine, name)
        console.reconcile_result(name, result)
        if result.action in ("error", "delete-failed"):
            failed += 1

    console.print()
    if failed:
        console.error(f"{failed} SyncState(s) failed")
        return 1
    console.success("Reconcile completed successfully!")
    return 0


def reconcile_until_settled(engine: SyncEngine, name: str) -> ReconcileResult:
    """Repeat immediate requeues (e.g. after adding the finalizer)."""
    result = engine.reconcile(name)
    passes = 1
    while result.requeue and result.requeue_after == 0 and passes < MAX_PASSES:
        result = engine.reconcile(name)
        passes += 1
    return result


def run_register(store: SyncStateStore, args: argparse.Namespace, console: Console) -> int:
    state = store.register_source(
        ResourceType.from_kind(args.kind),
        OwnerRef.parse(args.owner),
        _load_json(args.config),
        args.priority,
        external_id=args.external_id,
        natural_key=args.natural_key,
        account_id=args.account,
        zone_id=args.zone,
        credentials_ref=CredentialsRef(args.credentials) if args.credentials else None,
    )
    console.success(f"Registered {args.owner} in {state.name} ({len(state.sources)} source(s))")
    return 0


def run_unregister(store: SyncStateStore, args: argparse.Namespace, console: Console) -> int:
    owner = OwnerRef.parse(args.owner)
    state = store.unregister_source(
        ResourceType.from_kind(args.kind),
        owner,
        external_id=args.external_id,
        natural_key=args.natural_key,
    )
    if state is None:
        console.success(f"Unregistered {owner}")
    else:
        console.success(f"Unregistered {owner} from {state.name} ({len(state.sources)} remaining)")
    return 0


# =============================================================================
# Main
# =============================================================================

def build_engine(config: AppConfig, repository: JsonFileSyncStateRepository, credentials: dict[str, str]) -> SyncEngine:
    return SyncEngine(
        repository=repository,
        api_factory=CloudflareApiFactory(config.api, credentials=credentials),
        event_bus=EventBus(),
        config=config.engine,
    )


def run(args: argparse.Namespace) -> int:
    """Run a parsed command."""
    provider = EnvironmentConfigProvider(
        env_file=Path(args.env_file) if args.env_file else None,
        cli_overrides={"state_file": args.state_file, "verbose": args.verbose or None},
    )
    config = provider.load()

    setup_logging(config.verbose)
    logger = logging.getLogger("main")
    console = Console(color=not args.no_color, verbose=config.verbose)

    repository = JsonFileSyncStateRepository(config.state_file or DEFAULT_STATE_FILE)

    if args.command == "list":
        return run_list(repository, args, console)

    if args.command in ("register", "unregister"):
        store = SyncStateStore(repository, conflict_attempts=config.engine.conflict_attempts)
        if args.command == "register":
            return run_register(store, args, console)
        return run_unregister(store, args, console)

    engine = build_engine(config, repository, provider.credentials())
    names = [args.name] if args.name else [s.name for s in repository.list()]

    if args.command == "plan":
        return run_plan(engine, names, console)

    # reconcile
    if not args.execute:
        console.dry_run_banner()
        run_plan(engine, names, console)
        console.info("Use --execute to apply these changes")
        return 0

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        return 1

    if not args.no_confirm and not console.confirm(f"Apply changes for {len(names)} SyncState(s)?"):
        logger.info("Aborted.")
        return 0

    return run_reconcile(engine, names, console)


def main(argv: Optional[list[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        return run(args)
    except (UnisyncError, ValueError, OSError) as e:
        logging.getLogger("main").error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
