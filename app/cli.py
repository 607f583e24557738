import sys
import pathlib

# Ensure the root directory (where pyproject.toml lives) is on sys.path
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer  # type: ignore

from metascrape.extensions.manager import ExtensionManager
from metascrape.scraping.fetch import DEFAULT_TIMEOUT_SECONDS, USER_AGENT, HttpxNetworkTool
from metascrape.scraping.gating import PreferenceStore, StaticPreferenceStore, YamlPreferenceStore
from metascrape.scraping.models import PaperRecord
from metascrape.scraping.registry import DEFAULT_ORDER, ScraperRegistry, build_default_registry
from metascrape.utils.config_loader import ConfigLoader
from metascrape.utils.log_service import LogService
from metascrape.utils.logger import LoggerManager
from metascrape.utils.task_paths import TaskPaths

app = typer.Typer(help="Enrich bibliographic records from DBLP and DOI metadata.")

DEFAULT_CONFIG = ROOT / "config" / "scrapers.yaml"
DEFAULT_EXTENSIONS_DIR = ROOT / "extensions"

paths = TaskPaths()

cli_logger = LoggerManager.get_logger(name="cli", level="DEBUG", task_paths=paths, use_json=True)


def _load_config(config_path: Optional[Path]) -> Optional[ConfigLoader]:
    if config_path is None or not config_path.exists():
        cli_logger.info("cli.config.default", extra={"extra_data": {"path": str(config_path)}})
        return None
    return ConfigLoader(config_path)


def _preferences(config: Optional[ConfigLoader]) -> PreferenceStore:
    return YamlPreferenceStore(config) if config else StaticPreferenceStore()


def _log_service(config: Optional[ConfigLoader]) -> LogService:
    level = config.get("logging.level", "INFO") if config else "INFO"
    logger = LoggerManager.get_logger("metascrape", level=str(level), use_json=True, task_paths=paths)
    return LogService(logger)


def _network(config: Optional[ConfigLoader]) -> HttpxNetworkTool:
    timeout = config.get("network.timeout", DEFAULT_TIMEOUT_SECONDS) if config else DEFAULT_TIMEOUT_SECONDS
    user_agent = config.get("network.user_agent", USER_AGENT) if config else USER_AGENT
    return HttpxNetworkTool(timeout=float(timeout), user_agent=str(user_agent))


async def _install_extensions(
    registry: ScraperRegistry,
    sources: List[str],
    extensions_dir: Path,
    config: Optional[ConfigLoader],
    log_service: LogService,
) -> List[str]:
    manager = ExtensionManager(extensions_dir, config=config, log_service=log_service)
    for source in sources:
        info = await manager.install(source)
        if info is None:
            typer.echo(f"Extension {source} could not be installed, see logs", err=True)
    return manager.register_scrapers(registry)


async def _run_enrich(
    record: PaperRecord,
    order: Optional[List[str]],
    force: bool,
    config: Optional[ConfigLoader],
    extensions: List[str],
    extensions_dir: Path,
) -> PaperRecord:
    log_service = _log_service(config)
    async with _network(config) as network:
        registry = build_default_registry(_preferences(config), network, log_service)
        extension_sources = await _install_extensions(registry, extensions, extensions_dir, config, log_service)
        run_order = order or DEFAULT_ORDER + extension_sources
        cli_logger.info(
            "cli.enrich.start",
            extra={"extra_data": {"title": record.title, "doi": record.doi, "order": run_order, "force": force}},
        )
        return await registry.enrich(record, run_order, force=force)


async def _collect_sources(
    config: Optional[ConfigLoader],
    extensions: List[str],
    extensions_dir: Path,
) -> List[tuple]:
    log_service = _log_service(config)
    async with _network(config) as network:
        registry = build_default_registry(_preferences(config), network, log_service)
        await _install_extensions(registry, extensions, extensions_dir, config, log_service)
        return [(name, registry.is_builtin(name), registry.preference_key(name)) for name in registry.names()]


@app.command()
def enrich(
    title: str = typer.Option("", "--title", help="Paper title as currently known."),
    doi: Optional[str] = typer.Option(None, "--doi", help="DOI, if known."),
    pub_time: str = typer.Option("", "--pub-time", help="Publication year."),
    publication: str = typer.Option("", "--publication", help="Venue as currently known (e.g. 'arXiv')."),
    order: Optional[str] = typer.Option(None, "--order", help="Comma-separated source names to run, in order."),
    force: bool = typer.Option(False, "--force", help="Query sources even when gating disables them."),
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Path to scrapers YAML config."),
    extension: Optional[List[str]] = typer.Option(
        None, "--extension", help="Extension path or package to install first (repeatable)."
    ),
    extensions_dir: Path = typer.Option(DEFAULT_EXTENSIONS_DIR, "--extensions-dir", help="Where extensions are installed."),
) -> None:
    """
    Enriches one record and prints it as JSON.
    """
    if not title and not doi:
        typer.echo("Provide at least --title or --doi.", err=True)
        raise typer.Exit(code=1)

    config = _load_config(config_path)
    record = PaperRecord(title=title, doi=doi, pub_time=pub_time, publication=publication)
    run_order = [name.strip() for name in order.split(",") if name.strip()] if order else None

    record = asyncio.run(_run_enrich(record, run_order, force, config, extension or [], extensions_dir))

    cli_logger.info("cli.enrich.done", extra={"extra_data": record.snapshot()})
    typer.echo(json.dumps(record.snapshot(), indent=2, ensure_ascii=False))


@app.command("list-scrapers")
def list_scrapers(
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Path to scrapers YAML config."),
    extension: Optional[List[str]] = typer.Option(
        None, "--extension", help="Extension path or package to install first (repeatable)."
    ),
    extensions_dir: Path = typer.Option(DEFAULT_EXTENSIONS_DIR, "--extensions-dir", help="Where extensions are installed."),
) -> None:
    """
    Lists registered sources and whether each one is enabled.
    """
    config = _load_config(config_path)
    preferences = _preferences(config)
    sources = asyncio.run(_collect_sources(config, extension or [], extensions_dir))

    for name, builtin, preference_key in sources:
        kind = "builtin" if builtin else "extension"
        enabled = preference_key is None or preferences.get(preference_key).enabled
        state = "enabled" if enabled else "disabled"
        typer.echo(f"{name:<16} {kind:<10} {state}")


if __name__ == "__main__":
    app()
