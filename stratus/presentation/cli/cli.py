"""
CLI Module

Architectural Intent:
- Command-line interface for the provider
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug flags for log level control
"""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from dataclasses import replace
from typing import Any

from stratus.application.dtos.configuration import ImportRequest, load_configuration
from stratus.composition_root import StratusContainer, create_container
from stratus.domain.errors import StratusError
from stratus.infrastructure.config import StateConfig, load_config
from stratus.infrastructure.logging import configure_logging

DEFAULT_FILE = "resources.json"


def _parse_attributes(pairs: list[str]) -> dict[str, Any]:
    attributes = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise StratusError(f"expected key=value, got {pair!r}")
        try:
            attributes[key] = json.loads(raw)
        except json.JSONDecodeError:
            attributes[key] = raw
    return attributes


def _masked(container: StratusContainer, type_name: str, attributes: dict[str, Any]) -> dict[str, Any]:
    schema = container.provider.resource(type_name).schema
    return {
        k: "(sensitive)" if k in schema and schema[k].sensitive and v else v
        for k, v in attributes.items()
    }


def _print_result(result) -> None:
    for label, addresses in (
        ("created", result.created),
        ("updated", result.updated),
        ("replaced", result.replaced),
        ("deleted", result.deleted),
    ):
        for address in sorted(addresses):
            print(f"[+] {address}: {label}")
    for address, error in sorted(result.failed.items()):
        print(f"[-] {address}: {error}")
    for address in result.skipped:
        print(f"[-] {address}: skipped, a dependency failed")


async def _run_command(args: argparse.Namespace, container: StratusContainer) -> int:
    if args.command == "plan":
        configuration = load_configuration(args.file)
        print(f"[*] Planning {args.file}...")
        plan = await container.plan.execute(configuration, refresh=not args.no_refresh)
        for change in plan.pending:
            print(change.describe())
        print(f"[*] Plan: {plan.summary()}")
        if args.detailed_exitcode and plan.has_changes:
            return 2
        return 0

    if args.command == "apply":
        configuration = load_configuration(args.file)
        print(f"[*] Applying {args.file}...")
        result = await container.apply.execute(configuration, refresh=not args.no_refresh)
        _print_result(result)
        if not result.success:
            print(f"[-] Apply failed: {result.summary()}")
            return 1
        print(f"[+] Apply complete: {result.summary()}")
        return 0

    if args.command == "destroy":
        configuration = load_configuration(args.file) if args.file else None
        print("[*] Destroying managed resources...")
        result = await container.destroy.execute(configuration, targets=args.target)
        _print_result(result)
        if not result.success:
            print(f"[-] Destroy failed: {len(result.failed)} resource(s) could not be deleted")
            return 1
        print(f"[+] Destroy complete: {len(result.deleted)} deleted")
        return 0

    if args.command == "import":
        request = ImportRequest(address=args.address, type=args.type, resource_id=args.id)
        record = await container.import_resource.execute(request)
        print(f"[+] Imported {record.id} as {record.address}")
        return 0

    if args.command == "refresh":
        result, _ = await container.refresh.execute()
        for address in result.vanished:
            print(f"[-] {address}: no longer exists, removed from state")
        for address, keys in sorted(result.drifted.items()):
            print(f"[*] {address}: drift in {', '.join(keys)}")
        for address, error in sorted(result.failed.items()):
            print(f"[-] {address}: {error}")
        print(f"[+] Refreshed {len(result.refreshed)} resource(s)")
        return 1 if result.failed else 0

    if args.command == "show":
        records = container.state_store.list()
        if args.address:
            records = [r for r in records if r.address == args.address]
            if not records:
                print(f"[-] {args.address} is not in state")
                return 1
        for record in records:
            body = record.to_dict()
            body["attributes"] = _masked(container, record.type, record.attributes)
            print(json.dumps(body, indent=2, sort_keys=True, default=str))
        return 0

    if args.command == "data":
        values = await container.read_data_source.execute(args.type, _parse_attributes(args.attr))
        print(json.dumps(values, indent=2, sort_keys=True, default=str))
        return 0

    if args.command == "types":
        print("Resources:")
        for name in container.provider.resource_types():
            print(f"  - {name}")
        print("Data sources:")
        for name in container.provider.data_source_types():
            print(f"  - {name}")
        return 0

    return 0


async def async_main():
    parser = argparse.ArgumentParser(
        description="Stratus: declarative resources for OpenStack-based clouds"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--config", "-c", default=None, help="Path to provider settings (stratus.json)"
    )
    parser.add_argument("--state", default=None, help="Path to the state database")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    plan_parser = subparsers.add_parser("plan", help="Show what apply would change")
    plan_parser.add_argument(
        "--file", "-f", default=DEFAULT_FILE, help="Path to the resource configuration"
    )
    plan_parser.add_argument(
        "--no-refresh", action="store_true", help="Plan against stored state as-is"
    )
    plan_parser.add_argument(
        "--detailed-exitcode",
        action="store_true",
        help="Exit with status 2 when there are changes",
    )

    apply_parser = subparsers.add_parser("apply", help="Converge resources onto the configuration")
    apply_parser.add_argument(
        "--file", "-f", default=DEFAULT_FILE, help="Path to the resource configuration"
    )
    apply_parser.add_argument(
        "--no-refresh", action="store_true", help="Skip refreshing stored state first"
    )

    destroy_parser = subparsers.add_parser("destroy", help="Delete all managed resources")
    destroy_parser.add_argument(
        "--file", "-f", default=None, help="Configuration providing delete timeouts"
    )
    destroy_parser.add_argument(
        "--target", "-t", action="append", default=None,
        help="Only destroy this address and its dependents (repeatable)",
    )

    import_parser = subparsers.add_parser("import", help="Adopt an existing resource by id")
    import_parser.add_argument("address", help="Address to store the resource under")
    import_parser.add_argument("type", help="Resource type")
    import_parser.add_argument("id", help="Cloud id of the resource")

    subparsers.add_parser("refresh", help="Re-read managed resources and report drift")

    show_parser = subparsers.add_parser("show", help="Print stored state")
    show_parser.add_argument("address", nargs="?", help="Only show this address")

    data_parser = subparsers.add_parser("data", help="Read a data source")
    data_parser.add_argument("type", help="Data source type")
    data_parser.add_argument(
        "--attr", "-a", action="append", default=[], help="Argument as key=value (repeatable)"
    )

    subparsers.add_parser("types", help="List supported resource and data source types")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    config = load_config(args.config)
    if args.state:
        config = replace(config, state=StateConfig(path=args.state))

    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = config.log_level
    verbose = args.verbose or args.debug

    try:
        configure_logging(level=level, json_format=config.log_json)
        container = create_container(config)
    except StratusError as e:
        print(f"[-] {e}")
        sys.exit(1)

    try:
        status = await _run_command(args, container)
    except StratusError as e:
        print(f"[-] {e}")
        if verbose:
            traceback.print_exc()
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n[*] Interrupted.")
        sys.exit(130)
    finally:
        await container.close()

    if status:
        sys.exit(status)


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
