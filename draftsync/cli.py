"""CLI interface for inspecting and syncing encounter drafts."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import DraftClient
from .config import AutoSaveOptions, config
from .exceptions import DraftAPIError
from .models import CacheEntry, DraftRecord, DraftStatus
from .output import OutputFormatter
from .sync import AutoSaveEngine, DraftCache, SyncOperations
from .utils import cache_key_for, format_timestamp_ms, now_ms

logger = logging.getLogger(__name__)


def parse_draft_key(value: str) -> Optional[int]:
    """Parse a draft identifier given on the command line.

    Args:
        value: Encounter id or "temp" for the local-only draft

    Returns:
        Encounter id, or None for the temporary draft

    Raises:
        click.BadParameter: If the value is neither
    """
    if value == "temp":
        return None
    if value.isdigit() and int(value) > 0:
        return int(value)
    raise click.BadParameter(f"expected an encounter id or 'temp', got {value!r}")


def _entry_row(entry: CacheEntry) -> dict[str, Any]:
    text = entry.transcription_text or ""
    return {
        "key": entry.key,
        "patient": entry.patient_id or "-",
        "status": entry.status.value,
        "modified": format_timestamp_ms(entry.timestamp),
        "text": text if len(text) <= 40 else text[:37] + "...",
    }


def _make_client(ctx: Any) -> DraftClient:
    return DraftClient(api_key=ctx.obj["api_key"], api_url=ctx.obj["api_url"])


@click.group()
@click.option(
    "--api-key", "-k", envvar="DRAFTSYNC_API_KEY", help="Draft server API key"
)
@click.option(
    "--api-url", "-u", envvar="DRAFTSYNC_API_URL", help="Draft server API base URL"
)
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="DRAFTSYNC_CACHE_DIR",
    help="Directory holding cached drafts",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="draftsync")
@click.pass_context
def main(
    ctx: Any,
    api_key: Optional[str],
    api_url: Optional[str],
    cache_dir: Optional[Path],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """draftsync - Inspect and sync auto-saved encounter drafts."""
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["api_url"] = api_url
    ctx.obj["cache"] = DraftCache(cache_dir or config.cache_dir)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("draftsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--api-key",
    "-k",
    prompt="Enter your draft server API key",
    help="Draft server API key",
)
@click.option("--api-url", "-u", default=None, help="Draft server API base URL")
@click.pass_context
def init(ctx: Any, api_key: str, api_url: Optional[str]) -> None:
    """Store the API key (and optionally the server URL).

    Settings are written to ~/.config/draftsync/config.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        config.save_api_key(api_key)
        if api_url:
            config.save_api_url(api_url)
    except OSError as e:
        out.error(f"Failed to save configuration: {e}")
        ctx.exit(1)

    out.success("Configuration saved successfully")
    out.info(f"Config file: {config.get_config_path()}")


@main.command()
@click.pass_context
def drafts(ctx: Any) -> None:
    """List cached drafts that can still be resumed."""
    out: OutputFormatter = ctx.obj["out"]
    cache: DraftCache = ctx.obj["cache"]

    entries = cache.list_entries(now_ms())
    if not entries:
        if out.json_output:
            out.output_json([])
        else:
            out.info("No cached drafts")
        return

    out.output_table(
        [_entry_row(entry) for entry in entries],
        ["key", "patient", "status", "modified", "text"],
        {
            "key": "Key",
            "patient": "Patient",
            "status": "Status",
            "modified": "Last modified",
            "text": "Transcription",
        },
    )


@main.command()
@click.argument("draft", type=str)
@click.pass_context
def show(ctx: Any, draft: str) -> None:
    """Show one cached draft (DRAFT is an encounter id or 'temp')."""
    out: OutputFormatter = ctx.obj["out"]
    cache: DraftCache = ctx.obj["cache"]

    key = cache_key_for(parse_draft_key(draft))
    entry = cache.read(key)
    if entry is None:
        out.error(f"No cached draft for {draft}")
        ctx.exit(1)

    if out.json_output:
        out.output_json(entry.to_dict())
        return

    stale = now_ms() - entry.timestamp >= cache.max_age_ms
    items = [
        ("Key", entry.key),
        ("Status", entry.status.value + (" (stale)" if stale else "")),
        ("Last modified", format_timestamp_ms(entry.timestamp)),
        ("Patient", entry.patient_id or "-"),
    ]
    for name, value in sorted((entry.form_fields or {}).items()):
        items.append((f"Field {name}", str(value)))
    out.print_summary("Cached draft", items)
    if entry.transcription_text:
        out.print("")
        out.print(entry.transcription_text)


@main.command()
@click.argument("draft", type=str)
@click.pass_context
def clear(ctx: Any, draft: str) -> None:
    """Remove one cached draft (DRAFT is an encounter id or 'temp')."""
    out: OutputFormatter = ctx.obj["out"]
    cache: DraftCache = ctx.obj["cache"]

    key = cache_key_for(parse_draft_key(draft))
    if cache.clear(key):
        out.success(f"Cleared cached draft {key}")
    else:
        out.warning(f"No cached draft for {draft}")


async def _pull(client: DraftClient, encounter_id: int) -> Optional[tuple]:
    async with client:
        return await SyncOperations(client).pull(encounter_id)


@main.command()
@click.argument("encounter_id", type=click.IntRange(min=1))
@click.option(
    "--cache", "write_cache", is_flag=True, help="Write the server copy to the cache"
)
@click.pass_context
def pull(ctx: Any, encounter_id: int, write_cache: bool) -> None:
    """Fetch the server copy of an encounter draft."""
    out: OutputFormatter = ctx.obj["out"]
    cache: DraftCache = ctx.obj["cache"]

    try:
        result = asyncio.run(_pull(_make_client(ctx), encounter_id))
    except DraftAPIError as e:
        out.error(str(e))
        ctx.exit(1)

    if result is None:
        out.warning(f"Encounter {encounter_id} has no saved draft")
        return

    partial, timestamp = result
    record = DraftRecord.empty(encounter_id, now_ms()).merged(
        partial, timestamp if timestamp is not None else now_ms()
    )
    record.status = DraftStatus.SAVED
    entry = CacheEntry.from_record(cache_key_for(encounter_id), record)

    if out.json_output:
        out.output_json(entry.to_dict())
    else:
        out.print_summary(
            f"Encounter {encounter_id}",
            [
                ("Patient", entry.patient_id or "-"),
                ("Last modified", format_timestamp_ms(entry.timestamp)),
                ("Transcription", entry.transcription_text or "-"),
            ],
        )

    if write_cache:
        if cache.save(entry.key, record):
            out.success(f"Cached as {entry.key}")
        else:
            out.error("Failed to write cache entry")
            ctx.exit(1)


async def _push(
    client: DraftClient, cache: DraftCache, encounter_id: int
) -> tuple[bool, AutoSaveEngine]:
    engine = AutoSaveEngine(
        AutoSaveOptions(encounter_id=encounter_id), client=client, cache=cache
    )
    async with client, engine:
        saved = await engine.force_save()
    return saved, engine


@main.command()
@click.argument("encounter_id", type=click.IntRange(min=1))
@click.pass_context
def push(ctx: Any, encounter_id: int) -> None:
    """Send the cached draft of an encounter to the server.

    Only text fields are cached, so audio, video and images are not sent.
    """
    out: OutputFormatter = ctx.obj["out"]
    cache: DraftCache = ctx.obj["cache"]

    if cache.load(cache_key_for(encounter_id), now_ms()) is None:
        out.error(f"No fresh cached draft for encounter {encounter_id}")
        ctx.exit(1)

    saved, engine = asyncio.run(_push(_make_client(ctx), cache, encounter_id))

    if out.json_output:
        out.output_json(engine.status.to_dict())
    if saved:
        out.success(f"Draft for encounter {encounter_id} saved")
    else:
        out.error(f"Failed to save draft for encounter {encounter_id}")
        ctx.exit(1)


if __name__ == "__main__":
    main()
