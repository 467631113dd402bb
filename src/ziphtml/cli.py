"""Command-line interface for ziphtml."""

import logging
from pathlib import Path

import click
import yaml

from . import __version__
from .archive import Archive, AssetIndex
from .config import (
    CONFIG_FILENAME,
    ZiphtmlConfig,
    config_to_dict,
    create_default_config,
    find_config_file,
    load_config,
)
from .document import apply_edit, apply_edits
from .errors import ZiphtmlError
from .export import (
    export_to_archive,
    package_archive,
    render_preview_page,
    sanitize_filename,
)
from .session import (
    export_session,
    import_session,
    new_session,
    open_tab,
    save_active_tab,
)


@click.group()
@click.version_option(version=__version__, prog_name="ziphtml")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
def main(verbose):
    """Edit the text of HTML documents inside ZIP archives.

    ziphtml opens a ZIP of HTML pages and images, numbers every piece of
    visible text in a page, lets you replace any of it, and packs the
    edited pages back into a ZIP. Editing sessions can be saved and
    restored later.

    \b
    Quick start:
      ziphtml list site.zip                       # HTML pages and images
      ziphtml texts site.zip index.html           # Numbered text nodes
      ziphtml edit site.zip index.html -s 2="Hi"  # Replace text node 2
      ziphtml edit site.zip index.html -i         # Prompt for every node
      ziphtml preview site.zip index.html         # Standalone preview page
      ziphtml session save site.zip -p index.html -o work.session
      ziphtml session restore work.session -o updated.zip
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Config file path",
)


def _load_config(
    config_path: str | None, start: str | None = None, output: str | None = None
) -> ZiphtmlConfig:
    try:
        return load_config(
            config_path=Path(config_path) if config_path else None,
            start_path=Path(start) if start else None,
            output_override=output,
        )
    except ZiphtmlError as e:
        raise click.ClickException(str(e))


def _load_archive(path: str) -> Archive:
    try:
        return Archive.from_path(Path(path))
    except ZiphtmlError as e:
        raise click.ClickException(str(e))


def _parse_set_options(values: tuple) -> dict[int, str]:
    """Parse repeated ``-s INDEX=TEXT`` options."""
    edits = {}
    for value in values:
        index, sep, text = value.partition("=")
        if not sep:
            raise click.BadParameter(
                f"Expected INDEX=TEXT, got {value!r}", param_hint="'-s/--set'"
            )
        try:
            edits[int(index.strip())] = text
        except ValueError:
            raise click.BadParameter(
                f"Text node index must be a number, got {index!r}",
                param_hint="'-s/--set'",
            )
    return edits


def _read_edits_file(path: str) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise click.ClickException(f"Invalid YAML in {path}: {e}")
    except OSError as e:
        raise click.ClickException(f"Cannot read edits file {path}: {e}")

    if not isinstance(data, dict):
        raise click.ClickException(f"Edits file {path} must contain a mapping")
    return data


def _coerce_edits(data: dict, source: str) -> dict[int, str]:
    edits = {}
    for index, text in data.items():
        try:
            edits[int(index)] = "" if text is None else str(text)
        except (TypeError, ValueError):
            raise click.ClickException(
                f"Text node index must be a number in {source}, got {index!r}"
            )
    return edits


def _output_path(config: ZiphtmlConfig) -> Path:
    """Resolve the output archive path, sanitizing its file name."""
    path = Path(config.output)
    return path.with_name(sanitize_filename(path.name))


def _write_bytes(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise click.ClickException(f"Cannot write {path}: {e}")


def _open_page(archive: Archive, page: str, config: ZiphtmlConfig):
    assets = AssetIndex.from_archive(archive, config.image_extensions)
    state = new_session(archive, config.html_extensions, config.skip_tags)
    try:
        doc = open_tab(state, archive, assets, page, encoding=config.encoding)
    except ZiphtmlError as e:
        raise click.ClickException(str(e))
    return state, doc


def _prompt_edits(doc) -> int:
    """Prompt for a replacement of every text node. Returns edits made."""
    changed = 0
    for record in list(doc.text_nodes):
        click.echo(f"[{record.index}] Original: {record.original.strip()}")
        value = click.prompt(
            "    New text", default=record.updated, show_default=False
        )
        if value != record.updated:
            apply_edit(doc, record.index, value)
            changed += 1
    return changed


@main.command("list")
@click.argument("archive_path", metavar="ARCHIVE", type=click.Path(exists=True))
@config_option
def list_entries(archive_path, config_path):
    """List the HTML documents and images in an archive."""
    config = _load_config(config_path, archive_path)
    archive = _load_archive(archive_path)

    html_paths = archive.html_paths(config.html_extensions)
    image_paths = archive.image_paths(config.image_extensions)

    click.echo("HTML files:")
    for path in html_paths:
        click.echo(f"  {path}")
    if not html_paths:
        click.echo("  (none)")

    click.echo("Images:")
    for path in image_paths:
        click.echo(f"  {path}")
    if not image_paths:
        click.echo("  (none)")


@main.command()
@click.argument("archive_path", metavar="ARCHIVE", type=click.Path(exists=True))
@click.argument("page")
@config_option
def texts(archive_path, page, config_path):
    """Show the numbered text nodes of PAGE.

    The numbers are the INDEX values accepted by ``ziphtml edit -s``.
    """
    config = _load_config(config_path, archive_path)
    archive = _load_archive(archive_path)
    _, doc = _open_page(archive, page, config)

    if not doc.text_nodes:
        click.echo("No editable text found")
        return

    width = len(str(len(doc.text_nodes)))
    for record in doc.text_nodes:
        click.echo(f"{record.index:>{width}}  {record.original.strip()}")


@main.command()
@click.argument("archive_path", metavar="ARCHIVE", type=click.Path(exists=True))
@click.argument("page")
@click.option(
    "-s",
    "--set",
    "set_values",
    multiple=True,
    metavar="INDEX=TEXT",
    help="Replace text node INDEX with TEXT (can specify multiple)",
)
@click.option(
    "-f",
    "--file",
    "edits_file",
    type=click.Path(exists=True),
    help="YAML file mapping text node index to new text",
)
@click.option(
    "-i", "--interactive", is_flag=True, help="Prompt for every text node in turn"
)
@click.option(
    "-o",
    "--output",
    "output",
    type=click.Path(),
    help="Output archive (default: from config, 'updated.zip')",
)
@config_option
def edit(
    archive_path, page, set_values, edits_file, interactive, output, config_path
):
    """Edit text in PAGE and write the updated archive.

    Edits from --file are applied first, then --set values, then the
    interactive prompts. Unknown indexes are ignored.

    \b
    Examples:
      ziphtml edit site.zip index.html -s 1="Welcome" -s 4="Contact us"
      ziphtml edit site.zip about/team.html -f edits.yaml -o site-new.zip
      ziphtml edit site.zip index.html -i
    """
    edits = {}
    if edits_file:
        edits.update(_coerce_edits(_read_edits_file(edits_file), edits_file))
    edits.update(_parse_set_options(set_values))

    if not edits and not interactive:
        raise click.UsageError("No edits given (use -s, -f or -i)")

    config = _load_config(config_path, archive_path, output)
    archive = _load_archive(archive_path)
    state, doc = _open_page(archive, page, config)

    unknown = sorted(index for index in edits if doc.record(index) is None)
    for index in unknown:
        click.echo(f"Warning: {page} has no text node {index}", err=True)

    before = [record.updated for record in doc.text_nodes]
    apply_edits(doc, edits)
    changed = sum(
        record.updated != text for record, text in zip(doc.text_nodes, before)
    )
    if interactive:
        changed += _prompt_edits(doc)

    try:
        save_active_tab(state, archive, config.encoding)
    except ZiphtmlError as e:
        raise click.ClickException(str(e))

    out_path = _output_path(config)
    _write_bytes(out_path, package_archive(archive))
    click.echo(f"Saved: {page} ({changed} edit(s))")
    click.echo(f"Wrote: {out_path}")


@main.command()
@click.argument("archive_path", metavar="ARCHIVE", type=click.Path(exists=True))
@click.argument("page")
@click.option(
    "-s",
    "--set",
    "set_values",
    multiple=True,
    metavar="INDEX=TEXT",
    help="Preview with text node INDEX replaced by TEXT",
)
@click.option(
    "-o",
    "--output",
    "output",
    type=click.Path(),
    help="Output HTML file (default: <page>.preview.html)",
)
@config_option
def preview(archive_path, page, set_values, output, config_path):
    """Write a standalone preview of PAGE with images embedded."""
    config = _load_config(config_path, archive_path)
    archive = _load_archive(archive_path)
    _, doc = _open_page(archive, page, config)
    apply_edits(doc, _parse_set_options(set_values))

    if output:
        out_path = Path(output)
    else:
        stem = sanitize_filename(Path(page).stem, default="page")
        out_path = Path(f"{stem}.preview.html")

    _write_bytes(out_path, render_preview_page(doc).encode("utf-8"))
    click.echo(f"Wrote: {out_path}")


@main.group()
def session():
    """Save and restore editing sessions."""
    pass


@session.command("save")
@click.argument("archive_path", metavar="ARCHIVE", type=click.Path(exists=True))
@click.option(
    "-p",
    "--page",
    "pages",
    multiple=True,
    help="Open PAGE in a tab (can specify multiple)",
)
@click.option(
    "-f",
    "--file",
    "edits_file",
    type=click.Path(exists=True),
    help="YAML file mapping page to {index: text} edits",
)
@click.option(
    "-o",
    "--output",
    "output",
    type=click.Path(),
    required=True,
    help="Session file to write",
)
@config_option
def session_save(archive_path, pages, edits_file, output, config_path):
    """Save ARCHIVE and edits for one or more pages as a session file.

    Edits are kept as session records; the archive itself is saved
    unchanged until the session is restored and exported.

    \b
    Examples:
      ziphtml session save site.zip -p index.html -o work.session
      ziphtml session save site.zip -f edits.yaml -o work.session
    """
    page_edits = {}
    if edits_file:
        for page, edits in _read_edits_file(edits_file).items():
            if not isinstance(edits, dict):
                raise click.ClickException(
                    f"Edits for {page} in {edits_file} must be a mapping"
                )
            page_edits[str(page)] = _coerce_edits(edits, edits_file)

    config = _load_config(config_path, archive_path)
    archive = _load_archive(archive_path)
    assets = AssetIndex.from_archive(archive, config.image_extensions)
    state = new_session(archive, config.html_extensions, config.skip_tags)

    for page in [*pages, *(p for p in page_edits if p not in pages)]:
        try:
            doc = open_tab(state, archive, assets, page, encoding=config.encoding)
        except ZiphtmlError as e:
            raise click.ClickException(str(e))
        apply_edits(doc, page_edits.get(page, {}))

    try:
        blob = export_session(archive, state)
    except ZiphtmlError as e:
        raise click.ClickException(str(e))

    out_path = Path(output)
    _write_bytes(out_path, blob)
    click.echo(f"Saved session: {out_path} ({len(state.tabs)} tab(s))")


@session.command("show")
@click.argument("session_path", metavar="SESSION", type=click.Path(exists=True))
@config_option
def session_show(session_path, config_path):
    """Show the tabs and edits stored in a session file."""
    config = _load_config(config_path, session_path)
    state = _import(session_path, config)[2]

    click.echo(f"Selected: {state.selected_path or '(none)'}")
    click.echo(f"Tabs: {len(state.tabs)}")
    for tab in state.tabs:
        marker = "*" if tab.id == state.active_tab_id else " "
        edited = [r for r in tab.text_nodes if r.updated != r.original]
        click.echo(f"{marker} {tab.name} ({tab.path}): {len(edited)} edit(s)")
        for record in edited:
            click.echo(
                f"    [{record.index}] {record.original.strip()!r} -> "
                f"{record.updated.strip()!r}"
            )


@session.command("restore")
@click.argument("session_path", metavar="SESSION", type=click.Path(exists=True))
@click.option(
    "-o",
    "--output",
    "output",
    type=click.Path(),
    help="Output archive (default: from config, 'updated.zip')",
)
@config_option
def session_restore(session_path, output, config_path):
    """Restore a session, save every tab and write the updated archive.

    Tabs are saved in order, so when two tabs edit the same page the last
    one wins.
    """
    config = _load_config(config_path, session_path, output)
    archive, _, state = _import(session_path, config)

    for tab in state.tabs:
        export_to_archive(tab, archive, encoding=config.encoding)
        click.echo(f"Saved: {tab.path}")

    out_path = _output_path(config)
    _write_bytes(out_path, package_archive(archive))
    click.echo(f"Wrote: {out_path}")


def _import(session_path: str, config: ZiphtmlConfig):
    try:
        blob = Path(session_path).read_bytes()
    except OSError as e:
        raise click.ClickException(f"Cannot read {session_path}: {e}")

    try:
        return import_session(
            blob,
            encoding=config.encoding,
            html_extensions=config.html_extensions,
            image_extensions=config.image_extensions,
        )
    except ZiphtmlError as e:
        raise click.ClickException(str(e))


@main.group()
def config():
    """Manage ziphtml configuration."""
    pass


@config.command("init")
@click.option(
    "-d",
    "--directory",
    type=click.Path(),
    default=".",
    help="Directory to create config in",
)
def config_init(directory):
    """Create a new .ziphtml.yaml configuration file."""
    try:
        config_path = create_default_config(Path(directory))
        click.echo(f"Created: {config_path}")
    except ZiphtmlError as e:
        raise click.ClickException(str(e))


@config.command("show")
@config_option
def config_show(config_path):
    """Display current configuration.

    Shows merged configuration from file, environment, and defaults.
    """
    cfg = _load_config(config_path)
    data = config_to_dict(cfg)
    click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))


@config.command("where")
@click.option(
    "-d",
    "--directory",
    type=click.Path(exists=True),
    help="Directory to search from",
)
def config_where(directory):
    """Show which config file would be used.

    Searches up the directory tree for .ziphtml.yaml.
    """
    start = Path(directory) if directory else Path.cwd()
    config_path = find_config_file(start)

    if config_path:
        click.echo(f"Config file: {config_path}")
    else:
        click.echo(f"No {CONFIG_FILENAME} found (searched from {start})")


if __name__ == "__main__":
    main()
