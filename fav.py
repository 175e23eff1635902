"""
Pick one of your favorite shell commands with fzf and print it.

Favorites live in ~/.config/personal_cfg/history_fav.json:

    {"commands": [{"name": "...", "description": "...", "command": "..."}]}

The chosen command is written to stdout as a single line and nothing else,
so a shell wrapper can drop it into the edit buffer, e.g. for zsh:

    fav() { local cmd=$(command fav "$@"); [[ -n $cmd ]] && print -z -- "$cmd" }
"""
from __future__ import annotations

import json
import logging
import shutil
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

import typer
from typer.core import TyperCommand
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

# ------------------------------------------------------------
# App setup
# ------------------------------------------------------------
app = typer.Typer(
    add_completion=False,
    help="Fuzzy-pick one of your favorite shell commands and print it.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
err_console = Console(stderr=True)
logger = logging.getLogger("fav")

FAV_FILE = Path(".config") / "personal_cfg" / "history_fav.json"
FZF = "fzf"

# Each fzf line: "display |> command"
DELIM = " |> "
# fzf reads --delimiter as a regex
DELIM_PATTERN = r" \|> "

# fzf exits 1 on no match, 130 on ctrl-c/esc
FZF_CANCEL_CODES = (1, 130)

# ------------------------------------------------------------
# Errors
# ------------------------------------------------------------
class FavError(Exception):
    """Anything that ends a run with exit status 1."""

class DependencyMissing(FavError):
    pass

class StoreUnreadable(FavError):
    pass

class StoreMalformed(FavError):
    pass

class StoreEmpty(FavError):
    pass

class SelectorFailed(FavError):
    pass

class DecodeFailed(FavError):
    pass

# ------------------------------------------------------------
# Model / config
# ------------------------------------------------------------
class SearchMode(str, Enum):
    NAME = "name"
    DESCRIPTION = "description"
    ALL = "all"

@dataclass(frozen=True)
class Favorite:
    name: str
    description: str
    command: str

@dataclass(frozen=True)
class Config:
    store_path: Path
    fzf_path: Optional[str]

def resolve_config(store: Optional[Path] = None, home: Optional[Path] = None) -> Config:
    """Resolve the favorites path and the fzf binary once, at startup."""
    if store is None:
        store = (home or Path.home()) / FAV_FILE
    return Config(store_path=Path(store).expanduser(), fzf_path=shutil.which(FZF))

# ------------------------------------------------------------
# Favorites store
# ------------------------------------------------------------
def load_favorites(path: Path) -> List[Favorite]:
    """
    Read the JSON store and return its entries in file order.

    Raises StoreUnreadable (missing file, bad JSON), StoreMalformed (wrong
    shape) or StoreEmpty (``"commands": []``).
    """
    try:
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as e:
        raise StoreUnreadable(f"Could not read favorites file at {path}: {e}") from e

    commands = data.get("commands") if isinstance(data, dict) else None
    if not isinstance(commands, list):
        raise StoreMalformed(
            f'Invalid favorites file at {path}: missing or invalid "commands" array'
        )
    if not commands:
        raise StoreEmpty(f"No commands found in favorites file at {path}")
    return [_to_favorite(path, idx, raw) for idx, raw in enumerate(commands)]

def _to_favorite(path: Path, idx: int, raw) -> Favorite:
    if not isinstance(raw, dict):
        raise StoreMalformed(f"Invalid favorites file at {path}: commands[{idx}] is not an object")
    for key in ("name", "description", "command"):
        if not isinstance(raw.get(key), str):
            raise StoreMalformed(
                f'Invalid favorites file at {path}: commands[{idx}] has no string "{key}"'
            )
    return Favorite(name=raw["name"], description=raw["description"], command=raw["command"])

# ------------------------------------------------------------
# fzf line format
# ------------------------------------------------------------
def display_text(fav: Favorite, mode: SearchMode) -> str:
    if mode is SearchMode.NAME:
        return fav.name
    if mode is SearchMode.DESCRIPTION:
        return fav.description
    return f"{fav.name} • {fav.description}"

def encode_line(fav: Favorite, mode: SearchMode) -> str:
    return f"{display_text(fav, mode)}{DELIM}{fav.command}"

def encode_favorites(favorites: Sequence[Favorite], mode: SearchMode) -> str:
    return "\n".join(encode_line(fav, mode) for fav in favorites)

def decode_selection(line: str) -> str:
    """Return the command from a selected line (text after the last DELIM)."""
    parts = line.rsplit(DELIM, 1)
    if len(parts) < 2:
        raise DecodeFailed(f"Invalid selection format: {line!r}")
    return parts[1].strip()

# ------------------------------------------------------------
# Fuzzfinder
# ------------------------------------------------------------
def fzf_options(query: str = "") -> List[str]:
    opts = [
        "--delimiter", DELIM_PATTERN,
        "--with-nth", "1",
        "--preview", "echo {-1}",
        "--preview-window", "down:3:wrap:border",
        "--prompt", "❯ ",
        "--height", "60%",
        "--layout", "reverse",
        "--border", "rounded",
        "--info", "inline",
        "--color",
        "border:#586e75,header:#93a1a1,gutter:#002b36,prompt:#b58900,pointer:#cb4b16,"
        "marker:#dc322f,fg+:#eee8d5,bg+:#073642,hl+:#b58900",
        "--bind",
        "ctrl-u:preview-page-up,ctrl-d:preview-page-down,"
        "ctrl-f:preview-page-down,ctrl-b:preview-page-up",
        "--header", "Enter: select • Ctrl+C: cancel • Ctrl+U/D: scroll preview",
        "--margin", "1,2",
    ]
    if query:
        opts += ["--query", query]
    return opts

class Runner(Protocol):
    def run(self, lines: str, options: Sequence[str]) -> Tuple[str, int]:
        ...

class FzfRunner:
    """Runs the real fzf binary; the UI is drawn on the terminal, not stdout."""

    def __init__(self, executable: str):
        self.executable = executable

    def run(self, lines: str, options: Sequence[str]) -> Tuple[str, int]:
        cmd = [self.executable, *options]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            p = subprocess.run(cmd, input=lines.encode(), stdout=subprocess.PIPE)
        except OSError as e:
            raise SelectorFailed(f"Could not start fzf: {e}") from e
        return p.stdout.decode(), p.returncode

def require_fzf(config: Config) -> str:
    if not config.fzf_path:
        raise DependencyMissing("fzf is required but not installed (not found on PATH)")
    return config.fzf_path

def select(
    favorites: Sequence[Favorite], mode: SearchMode, query: str, runner: Runner
) -> Optional[str]:
    """Let the user pick a favorite. Returns None on cancel or empty selection."""
    out, status = runner.run(encode_favorites(favorites, mode), fzf_options(query))
    logger.debug("fzf exited with status %d", status)
    if status in FZF_CANCEL_CODES:
        return None
    if status != 0:
        raise SelectorFailed(f"fzf failed with exit code {status}")

    lines = [line for line in out.splitlines() if line.strip()]
    if not lines:
        return None
    return decode_selection(lines[-1])

def pick_favorite(
    config: Config, mode: SearchMode, query: str = "", runner: Optional[Runner] = None
) -> Optional[str]:
    # fzf check comes first so a missing binary is reported before store problems
    fzf_bin = require_fzf(config)
    logger.debug("Loading favorites from %s", config.store_path)
    favorites = load_favorites(config.store_path)
    logger.debug("Loaded %d favorite(s)", len(favorites))
    if runner is None:
        runner = FzfRunner(fzf_bin)
    return select(favorites, mode, query, runner)

# ------------------------------------------------------------
# CLI
# ------------------------------------------------------------
MODE_KEY = "fav.mode"

EXAMPLES = """Examples:

fav docker          search names for "docker"

fav -d clean        search descriptions for "clean"

fav -a git          search names and descriptions for "git"

fav -- -rf          search names for "-rf" (a term starting with a dash)
"""

MODE_PARAMS = {
    "name": SearchMode.NAME,
    "description": SearchMode.DESCRIPTION,
    "all_": SearchMode.ALL,
}

class FavCommand(TyperCommand):
    """Picks the search mode from the last mode flag on the command line."""

    def parse_args(self, ctx, args):
        # click keeps one value per flag; its parser order lists every occurrence
        _, _, order = self.make_parser(ctx).parse_args(args=list(args))
        modes = [MODE_PARAMS[p.name] for p in order if p.name in MODE_PARAMS]
        ctx.meta[MODE_KEY] = modes[-1] if modes else SearchMode.NAME
        return super().parse_args(ctx, args)

def _setup_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )

def _report(err: FavError) -> None:
    err_console.print(f"[bold red]Error:[/] {escape(str(err))}", soft_wrap=True, highlight=False)

@app.command(cls=FavCommand, epilog=EXAMPLES)
def main(
    ctx: typer.Context,
    terms: Optional[List[str]] = typer.Argument(
        None, metavar="[SEARCH_TERM]", help="Initial fzf query (last one wins)", show_default=False
    ),
    name: bool = typer.Option(
        False, "--name", "-n", help="Search names only (default)",
    ),
    description: bool = typer.Option(
        False, "--description", "-d", help="Search descriptions only",
    ),
    all_: bool = typer.Option(
        False, "--all", "-a", help="Search both names and descriptions",
    ),
    store: Optional[Path] = typer.Option(
        None, "--file", "-f", envvar="FAV_FILE", show_default=False,
        help="Favorites JSON file [default: ~/.config/personal_cfg/history_fav.json]",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
):
    """Fuzzy-search your favorite commands with fzf and print the chosen one."""
    _setup_logging(verbose)
    mode = ctx.meta.get(MODE_KEY, SearchMode.NAME)
    query = terms[-1] if terms else ""
    config = resolve_config(store)

    try:
        command = pick_favorite(config, mode, query)
    except FavError as e:
        _report(e)
        raise typer.Exit(1)

    if command is not None:
        # raw command only, for the shell wrapper
        sys.stdout.write(command + "\n")

# ------------------------------------------------------------
# Main
# ------------------------------------------------------------
if __name__ == "__main__":
    app()
