# -*- coding: utf-8 -*-
"""
CLI for theca.

Usage:
    theca add "buy milk" --status started
    theca list --datesort --reverse -l 5
    theca search -R "^buy"
    theca 3                      # same as `theca view 3`
    theca -p work transfer 3 home
"""
# typer reads the Annotated parameter hints at runtime, so annotations stay eager here

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional
import os
import sys

import typer
import yaml
from typer.core import TyperGroup
from typing_extensions import Annotated

from . import __version__, store
from .codec import note_to_dict
from .config import Settings, load_settings, resolve_passphrase
from .errors import ThecaError, log_exception
from .logging_config import configure_quiet_mode, enable_debug_mode
from .logic import OpenProfile, new_profile, open_profile_path
from .migrate import migrate
from .models import Note, Status

DATEFMT_SHORT = "%Y-%m-%d %H:%M:%S"
COLSEP = "  "

# Quiet by default; THECA_VERBOSE=1 turns on debug output from the start
if os.environ.get("THECA_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode()


# -----------------------------------------------------------------------------
# Invocation state
# -----------------------------------------------------------------------------

@dataclass
class CliState:
    settings: Settings
    profile: str
    path: Optional[Path]
    key: Optional[str]
    encrypted: bool
    yes: bool
    _passphrase: Optional[bytes] = field(default=None, repr=False)

    def passphrase(self) -> bytes:
        """Resolve the key once per invocation; prompt only if needed."""
        if self._passphrase is None:
            self._passphrase = resolve_passphrase(
                self.key, lambda: typer.prompt("Key", hide_input=True)
            )
        return self._passphrase

    def new_passphrase(self) -> bytes:
        return resolve_passphrase(
            self.key,
            lambda: typer.prompt("New key", hide_input=True, confirmation_prompt=True),
        )

    def profile_file(self, name: Optional[str] = None) -> Path:
        if self.path is not None and name is None:
            return self.path
        return store.profile_path(self.settings.profiles_folder, name or self.profile)

    def open(self, name: Optional[str] = None) -> OpenProfile:
        return open_profile_path(self.profile_file(name), self.passphrase, self.settings.kdf_params)

    def confirm(self, message: str) -> None:
        if not self.yes and not typer.confirm(message, default=False):
            typer.echo("ok bye ♥")
            raise typer.Exit(0)


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


@contextmanager
def _handle_errors():
    """Turn core errors into a one-line message and a distinct exit code."""
    try:
        yield
    except ThecaError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(exc.exit_code)
    except (ValueError, FileExistsError) as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(1)


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------

def _short(ts: datetime) -> str:
    return ts.astimezone().strftime(DATEFMT_SHORT)


def _bold(text: str) -> str:
    return typer.style(text, bold=True) if sys.stdout.isatty() else text


def _pretty_line(label: str, value: str) -> None:
    typer.echo(_bold(label) + value)


def _echo_yaml(notes: List[Note]) -> None:
    if not notes:
        typer.echo("[]")
        return
    typer.echo(yaml.safe_dump([note_to_dict(n) for n in notes], sort_keys=False, allow_unicode=True).rstrip())


def _print_notes(notes: List[Note], condensed: bool = False, search_body: bool = False) -> None:
    """Print notes as aligned columns: id, title, status, last touched."""
    titles = [
        n.title + (" (+)" if n.body and not search_body else "")
        for n in notes
    ]
    statuses = [(str(n.status)[:1] if condensed else str(n.status)) for n in notes]
    id_w = max([2] + [len(str(n.id)) for n in notes])
    title_w = max([5] + [len(t) for t in titles])
    status_w = max([0 if condensed else 6] + [len(s) for s in statuses])

    if not condensed:
        header = COLSEP.join(["id".ljust(id_w), "title".ljust(title_w), "status".ljust(status_w), "last touched"])
        typer.echo(_bold(header))
        typer.echo("-" * len(header))
    for note, title, status in zip(notes, titles, statuses):
        cols = [str(note.id).ljust(id_w), title.ljust(title_w)]
        if status_w:
            cols.append(status.ljust(status_w))
        cols.append(_short(note.last_touched))
        typer.echo(COLSEP.join(cols))
        if search_body:
            for line in note.body.splitlines():
                typer.echo(f"\t{line}")


def _print_note(note: Note, condensed: bool) -> None:
    if condensed:
        _pretty_line("id: ", str(note.id))
        _pretty_line("title: ", note.title)
        if note.status is not Status.NONE:
            _pretty_line("status: ", str(note.status))
        _pretty_line("last touched: ", _short(note.last_touched))
        if note.body:
            _pretty_line("body: ", note.body)
        return
    sections = [("id", str(note.id)), ("title", note.title)]
    if note.status is not Status.NONE:
        sections.append(("status", str(note.status)))
    sections.append(("last touched", _short(note.last_touched)))
    if note.body:
        sections.append(("body", note.body))
    for label, value in sections:
        typer.echo(_bold(f"{label}\n{'-' * len(label)}"))
        typer.echo(f"{value}\n")


# -----------------------------------------------------------------------------
# Editor and stdin
# -----------------------------------------------------------------------------

def drop_to_editor(body: str) -> Optional[str]:
    """Open $VISUAL/$EDITOR on *body*; return the new text, or None if unchanged."""
    edited = typer.edit(body, extension=".md", require_save=True)
    if edited is None or edited == body:
        return None
    return edited


def _read_body(state: CliState, body: Optional[str], editor: bool, current: str, encrypted: bool) -> Optional[str]:
    if body == "-":
        return typer.get_text_stream("stdin").read()
    if body is not None:
        return body
    if editor:
        if encrypted:
            state.confirm(
                "## [WARNING] ##\n\ncontinuing will write the body of the decrypted note to a temporary\n"
                "file, increasing the possibility it could be recovered later.\n\nAre you sure you want to continue?"
            )
        return drop_to_editor(current)
    return None


def _parse_status(value: Optional[str]) -> Optional[Status]:
    if value is None:
        return None
    try:
        return Status.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))


# -----------------------------------------------------------------------------
# App
# -----------------------------------------------------------------------------

def _version_callback(value: bool):
    if value:
        print(f"theca {__version__}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


class ThecaGroup(TyperGroup):
    """Treat a bare note id (``theca 3``) as ``theca view 3``."""

    def resolve_command(self, ctx, args):
        if args and args[0].isdigit():
            args = ["view", *args]
        return super().resolve_command(ctx, args)


app = typer.Typer(
    name="theca",
    cls=ThecaGroup,
    help="a simple, fully featured, command line note taking tool",
    no_args_is_help=False,
    invoke_without_command=True,
    rich_markup_mode=None,
)

StatusOption = Annotated[Optional[str], typer.Option(
    "--status", "-s", help="Status: none, started or urgent"
)]
LimitOption = Annotated[int, typer.Option("--limit", "-l", min=0, help="Show at most LIMIT notes (0 = all)")]
DatesortOption = Annotated[bool, typer.Option("--datesort", "-d", help="Sort by last touched date")]
ReverseOption = Annotated[bool, typer.Option("--reverse", "-r", help="Reverse the order")]
YamlOption = Annotated[bool, typer.Option("--yaml", help="Output as YAML")]
CondensedOption = Annotated[bool, typer.Option("--condensed", "-c", help="Use the condensed print format")]


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    profile: Annotated[Optional[str], typer.Option(
        "--profile", "-p", help="Profile to use (default from config)",
    )] = None,
    profiles_folder: Annotated[Optional[str], typer.Option(
        "--profiles-folder", envvar="THECA_PROFILE_FOLDER", help="Folder containing profile files",
    )] = None,
    path: Annotated[Optional[Path], typer.Option(
        "--path", help="Explicit profile file (overrides --profile and --profiles-folder)",
    )] = None,
    key: Annotated[Optional[str], typer.Option(
        "--key", "-k", envvar="THECA_KEY", show_envvar=False, help="Encryption key",
    )] = None,
    encrypted: Annotated[bool, typer.Option(
        "--encrypted", help="Encrypt new profiles (prompts for a key)",
    )] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
):
    """a simple, fully featured, command line note taking tool"""
    with _handle_errors():
        settings = load_settings(profiles_folder)
    ctx.obj = CliState(
        settings=settings,
        profile=profile or settings.default_profile,
        path=path,
        key=key,
        encrypted=encrypted,
        yes=yes,
    )
    if ctx.invoked_subcommand is None:
        with _handle_errors():
            notes = ctx.obj.open().list_notes()
        if notes:
            _print_notes(notes)
        else:
            typer.echo("this profile is empty")


@app.command()
def add(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="Title of the note")],
    body: Annotated[Optional[str], typer.Argument(help="Body of the note ('-' reads stdin)")] = None,
    status: StatusOption = None,
    editor: Annotated[bool, typer.Option("--editor", "-e", help="Write the body in $EDITOR")] = False,
):
    """Add a new note."""
    state = _state(ctx)
    with _handle_errors():
        handle = state.open()
        text = _read_body(state, body, editor, "", handle.encrypted) or ""
        note_id = handle.add(title, text, _parse_status(status) or Status.NONE)
        handle.save()
    typer.echo(f"note {note_id} added")


@app.command()
def edit(
    ctx: typer.Context,
    id: Annotated[int, typer.Argument(help="ID of the note to edit")],
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="New title")] = None,
    body: Annotated[Optional[str], typer.Option("--body", "-b", help="New body ('-' reads stdin)")] = None,
    status: StatusOption = None,
    editor: Annotated[bool, typer.Option("--editor", "-e", help="Edit the body in $EDITOR")] = False,
):
    """Edit an existing note."""
    state = _state(ctx)
    with _handle_errors():
        handle = state.open()
        current = handle.get(id)
        new_body = _read_body(state, body, editor, current.body, handle.encrypted)
        new_status = _parse_status(status)
        if title is None and new_body is None and new_status is None:
            handle.discard()
            typer.echo(f"note {id} unchanged")
            return
        handle.edit(id, title=title, body=new_body, status=new_status)
        handle.save()
    typer.echo(f"edited note {id}")


@app.command("del")
def delete(
    ctx: typer.Context,
    ids: Annotated[List[int], typer.Argument(help="ID(s) of the notes to delete")],
):
    """Delete notes."""
    state = _state(ctx)
    with _handle_errors():
        handle = state.open()
        state.confirm(f"delete note(s) {', '.join(map(str, ids))}?")
        deleted, not_found = handle.delete(ids)
        handle.save()
    for note_id in deleted:
        typer.echo(f"deleted note {note_id}")
    for note_id in not_found:
        typer.echo(f"note {note_id} doesn't exist", err=True)


@app.command()
def view(
    ctx: typer.Context,
    id: Annotated[int, typer.Argument(help="ID of the note")],
    condensed: CondensedOption = False,
    as_yaml: YamlOption = False,
):
    """Show a single note."""
    with _handle_errors():
        note = _state(ctx).open().get(id)
    if as_yaml:
        typer.echo(yaml.safe_dump(note_to_dict(note), sort_keys=False, allow_unicode=True).rstrip())
    else:
        _print_note(note, condensed)


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    limit: LimitOption = 0,
    datesort: DatesortOption = False,
    reverse: ReverseOption = False,
    status: StatusOption = None,
    condensed: CondensedOption = False,
    as_yaml: YamlOption = False,
):
    """List notes."""
    with _handle_errors():
        notes = _state(ctx).open().list_notes(datesort, reverse, limit, _parse_status(status))
    if as_yaml:
        _echo_yaml(notes)
    elif notes:
        _print_notes(notes, condensed)
    else:
        typer.echo("this profile is empty")


@app.command()
def search(
    ctx: typer.Context,
    pattern: Annotated[str, typer.Argument(help="Text (or regex) to look for")],
    body: Annotated[bool, typer.Option("--body", "-b", help="Search note bodies instead of titles")] = False,
    regex: Annotated[bool, typer.Option("--regex", "-R", help="Treat PATTERN as a regular expression")] = False,
    limit: LimitOption = 0,
    datesort: DatesortOption = False,
    reverse: ReverseOption = False,
    status: StatusOption = None,
    condensed: CondensedOption = False,
    as_yaml: YamlOption = False,
):
    """Search notes."""
    with _handle_errors():
        notes = _state(ctx).open().search(
            pattern,
            in_body=body,
            as_regex=regex,
            status=_parse_status(status),
            sort_by_date=datesort,
            reverse=reverse,
            limit=limit,
        )
    if as_yaml:
        _echo_yaml(notes)
    elif notes:
        _print_notes(notes, condensed, search_body=body)
    else:
        typer.echo("nothing found")


@app.command()
def transfer(
    ctx: typer.Context,
    id: Annotated[int, typer.Argument(help="ID of the note to move")],
    target: Annotated[str, typer.Argument(help="Name of the target profile")],
):
    """Move a note to another profile."""
    state = _state(ctx)
    with _handle_errors():
        source = state.open()
        dest = state.open(target)
        new_id = source.transfer(id, dest)
    typer.echo(f"transferred [{source.name}: note {id} -> {dest.name}: note {new_id}]")


@app.command("new-profile")
def new_profile_cmd(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Name of the new profile")],
    encrypted: Annotated[bool, typer.Option("--encrypted", help="Encrypt the new profile")] = False,
):
    """Create a new, empty profile."""
    state = _state(ctx)
    encrypted = encrypted or state.encrypted
    with _handle_errors():
        folder = state.settings.profiles_folder
        if not folder.exists():
            state.confirm(f"{folder} doesn't exist, would you like to create it?")
        path = store.profile_path(folder, name)
        if store.exists(path):
            state.confirm(f"profile {path} already exists, would you like to overwrite it?")
        passphrase = state.new_passphrase() if encrypted else None
        new_profile(folder, name, encrypted, passphrase, state.settings.kdf_params, overwrite=True).discard()
    typer.echo(f"created profile '{name}'")


@app.command("list-profiles")
def list_profiles(ctx: typer.Context):
    """List the profiles in the profile folder."""
    folder = _state(ctx).settings.profiles_folder
    with _handle_errors():
        profiles = store.list_profiles(folder)
    typer.echo(f"# profiles in {folder}")
    for name, encrypted in profiles:
        typer.echo(f"    {name}" + (" [encrypted]" if encrypted else ""))


@app.command()
def info(ctx: typer.Context):
    """Show information about the profile."""
    with _handle_errors():
        stats = _state(ctx).open().stats()
    _pretty_line("name: ", stats.name)
    _pretty_line("encrypted: ", str(stats.encrypted).lower())
    _pretty_line("notes: ", str(stats.notes))
    if stats.notes:
        _pretty_line("statuses: ", ", ".join(
            f"{s.value.lower()}: {stats.statuses.get(s, 0)}" for s in Status
        ))
        _pretty_line("note ages: ", f"oldest: {_short(stats.oldest)}, newest: {_short(stats.newest)}")


@app.command()
def clear(ctx: typer.Context):
    """Delete every note in the profile."""
    state = _state(ctx)
    with _handle_errors():
        handle = state.open()
        state.confirm("are you sure you want to delete all the notes in this profile?")
        count = handle.clear()
        handle.save()
    typer.echo(f"cleared {count} note(s)")


@app.command("encrypt-profile")
def encrypt_profile(
    ctx: typer.Context,
    new_key: Annotated[Optional[str], typer.Option("--new-key", help="Key to encrypt with (prompts if missing)")] = None,
):
    """Encrypt the profile (or change its key)."""
    state = _state(ctx)
    with _handle_errors():
        handle = state.open()
        if handle.encrypted and new_key is None:
            typer.echo(f"Profile '{handle.name}' is already encrypted.")
            return
        passphrase = new_key.encode("utf-8") if new_key is not None else state.new_passphrase()
        handle.encrypt(passphrase)
        handle.save()
    typer.echo(f"encrypted '{handle.name}'")


@app.command("decrypt-profile")
def decrypt_profile(ctx: typer.Context):
    """Store the profile as plaintext."""
    with _handle_errors():
        handle = _state(ctx).open()
        if not handle.encrypted:
            typer.echo(f"Profile '{handle.name}' is not encrypted.")
            return
        handle.decrypt()
        handle.save()
    typer.echo(f"decrypted '{handle.name}'")


@app.command("migrate-legacy")
def migrate_legacy(
    source: Annotated[Path, typer.Argument(help="theca 1.x profile (.json)")],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Where to write the new profile")] = None,
    force: Annotated[bool, typer.Option("--force", help="Overwrite an existing target")] = False,
):
    """Convert a plaintext theca 1.x JSON profile to the current format."""
    with _handle_errors():
        target = migrate(source, output, force)
    typer.echo(f"migrated {source} -> {target}")


def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except ThecaError as e:
        typer.echo(f"error: {e}", err=True)
        raise SystemExit(e.exit_code)
    except Exception as e:
        # Log full traceback to file, show clean message to user
        log_path = log_exception(e, context="theca CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
