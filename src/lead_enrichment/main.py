"""
Lead enrichment command line interface
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import colorama
import yaml
from colorama import Fore, Style

from .config.config import ENVIRONMENT
from .config.config_manager import get_config_manager
from .core.exceptions import ConfigurationError
from .core.models import KNOWN_FIELDS, ContactRecord, JobStatus
from .enrichment.engine_factory import create_engine
from .enrichment.orchestrator import DEFAULT_FIELDS
from .enrichment.sources import SOURCE_CLASSES
from .utils.logging_config import setup_logging

STATUS_COLORS = {
    JobStatus.COMPLETED: Fore.GREEN,
    JobStatus.EXHAUSTED: Fore.YELLOW,
    JobStatus.FAILED: Fore.RED,
}


def show_status(tenant_id: str) -> int:
    """Show registered providers and whether their API keys are present"""
    config_manager = get_config_manager()

    print(f"\n{Fore.CYAN}ENRICHMENT PROVIDERS:{Style.RESET_ALL}")
    print("-" * 60)
    for provider_id, cls in SOURCE_CLASSES.items():
        configured = config_manager.is_vendor_configured(provider_id)
        marker = f"{Fore.GREEN}[OK] CONFIGURED" if configured else f"{Fore.RED}[FAIL] NOT CONFIGURED"
        print(f"  {cls.display_name:<18} {marker}{Style.RESET_ALL}  "
              f"(${cls.cost_per_lookup:.2f}/lookup, fields: {', '.join(cls.supported_fields)})")

    engine = create_engine(tenant_id, config_manager)
    waterfalls = asyncio.run(engine.admin.list_waterfalls(tenant_id))
    print(f"\n{Fore.CYAN}WATERFALLS (tenant {tenant_id}):{Style.RESET_ALL}")
    print("-" * 60)
    if not waterfalls:
        print("  None configured; fields use the registry's priority order")
    for config in waterfalls:
        print(f"  {config.field_name:<14} {' -> '.join(config.provider_order)}  "
              f"(min confidence {config.min_confidence}, max attempts {config.max_attempts})")

    engine_config = config_manager.engine_config
    print(f"\n{Fore.CYAN}ENGINE:{Style.RESET_ALL}")
    print("-" * 60)
    print(f"  Circuit breaker: opens after {engine_config.failure_threshold} failures "
          f"for {engine_config.open_duration_seconds:.0f}s")
    print(f"  Best-effort results: {'accepted' if engine_config.accept_best_effort else 'rejected'}")
    print(f"  Cache backend: {config_manager.cache_config.backend}")
    print(f"  Environment: {ENVIRONMENT.value}")
    return 0


def load_contact(path: Path, tenant_id: str) -> ContactRecord:
    """Read a contact description from a YAML (or JSON) file"""
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Contact file {path} must contain a mapping")
    data.setdefault('id', path.stem)
    data['tenant_id'] = tenant_id
    return ContactRecord.from_dict(data)


async def run_enrichment(tenant_id: str, contact: ContactRecord, fields: List[str]) -> Dict[str, Any]:
    engine = create_engine(tenant_id)
    engine.contacts.add(contact)
    try:
        job = await engine.orchestrator.enrich(tenant_id, contact.id, fields)
    finally:
        await engine.cleanup()
    return job.to_dict()


def enrich_command(tenant_id: str, contact_file: str, fields: Optional[List[str]]) -> int:
    contact = load_contact(Path(contact_file), tenant_id)
    job = asyncio.run(run_enrichment(tenant_id, contact, fields or list(DEFAULT_FIELDS)))

    status = JobStatus(job['status'])
    color = STATUS_COLORS.get(status, Fore.WHITE)
    print(json.dumps(job, indent=2, default=str))
    print(f"\n{color}Job {status.value}: ${job['total_cost']:.2f} spent"
          + (f", unresolved: {', '.join(job['unresolved_fields'])}" if job['unresolved_fields'] else "")
          + Style.RESET_ALL)
    return 1 if status == JobStatus.FAILED else 0


async def run_health_checks(tenant_id: str) -> Dict[str, bool]:
    engine = create_engine(tenant_id)
    try:
        return await engine.monitor.run_health_checks()
    finally:
        await engine.cleanup()


def health_command(tenant_id: str) -> int:
    report = asyncio.run(run_health_checks(tenant_id))
    if not report:
        print(f"{Fore.YELLOW}No providers configured; set vendor API keys first{Style.RESET_ALL}")
        return 1

    for provider_id, healthy in report.items():
        marker = f"{Fore.GREEN}[OK]" if healthy else f"{Fore.RED}[FAIL]"
        print(f"  {provider_id:<16} {marker}{Style.RESET_ALL}")
    return 0 if all(report.values()) else 1


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lead-enrichment",
        description="Lead enrichment waterfall engine",
    )
    parser.add_argument("--config", help="Path to the waterfall YAML config file")
    parser.add_argument("--tenant", default="default", help="Tenant id (default: default)")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show providers, waterfalls and engine settings")

    enrich_parser = subparsers.add_parser("enrich", help="Enrich a contact described in a YAML file")
    enrich_parser.add_argument("contact_file", help="YAML file with the contact's known fields")
    enrich_parser.add_argument("--fields", nargs="+", choices=sorted(KNOWN_FIELDS),
                               help=f"Fields to resolve (default: {' '.join(DEFAULT_FIELDS)})")

    subparsers.add_parser("health", help="Run vendor health checks")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    colorama.init()
    args = create_parser().parse_args(argv)

    config_manager = get_config_manager(args.config)
    setup_logging(config_manager.logging_config, args.log_level)

    try:
        if args.command == "status":
            return show_status(args.tenant)
        if args.command == "enrich":
            return enrich_command(args.tenant, args.contact_file, args.fields)
        if args.command == "health":
            return health_command(args.tenant)
    except (ConfigurationError, OSError) as e:
        print(f"{Fore.RED}Error: {e}{Style.RESET_ALL}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
