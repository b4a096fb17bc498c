#!/usr/bin/env python3
"""
Git Code Stats - Author Contribution Chart (v1.0.0)

Summarises "who wrote how much code" in a git working tree and draws it as a
pie chart in the terminal:
- Distinct author discovery from the commit history
- One `git log --shortstat` query per author, run on a bounded thread pool
- Exact author-name matching (no substring or regex surprises)
- Fixed colour palette with wraparound for large teams
- YAML/JSON configuration files and chart presets

Version: 1.0.0
"""

import json
import os
import re
import subprocess
import sys
import time
import traceback
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import click
import yaml
from colorama import Fore, Style, just_fix_windows_console
from tqdm import tqdm

from pie_chart import DEFAULT_FILL, ChartRecord, PieChart

# Version information
VERSION = "1.0.0"

DEFAULT_MAX_WORKERS = 32
SORT_CHOICES = ("discovery", "value")

PALETTE = (
    Fore.RED,
    Fore.GREEN,
    Fore.BLUE,
    Fore.YELLOW,
    Fore.MAGENTA,
    Fore.CYAN,
    Fore.LIGHTRED_EX,
    Fore.LIGHTGREEN_EX,
    Fore.LIGHTBLUE_EX,
    Fore.LIGHTYELLOW_EX,
    Fore.LIGHTMAGENTA_EX,
    Fore.LIGHTCYAN_EX,
)

BANNER = r"""
   ___ _ _       ___          _        __ _        _
  / _ (_) |_    / __\___   __| | ___  / _\ |_ __ _| |_ ___
 / /_\/ | __|  / /  / _ \ / _` |/ _ \ \ \| __/ _` | __/ __|
/ /_\\| | |_  / /__| (_) | (_| |  __/ _\ \ || (_| | |_\__ \
\____/|_|\__| \____/\___/ \__,_|\___| \__/\__\__,_|\__|___/
"""


# ============================================================================
# ERRORS
# ============================================================================


class GitStatsError(RuntimeError):
    """Fatal condition: the whole run is aborted and no partial result is shown"""


class ProcessSpawnError(GitStatsError):
    """git is missing or could not be started"""


class OutputEncodingError(GitStatsError):
    """git wrote something to stdout that is not valid UTF-8"""


class ParseInvariantViolation(GitStatsError):
    """
    A group matched by SHORTSTAT_PATTERN did not parse as an integer.
    The pattern only captures digits, so this signals a bug rather than bad input.
    """


# ============================================================================
# CONFIGURATION FILE SUPPORT
# ============================================================================

CONFIG_NAMES = [
    ".git-code-stats.yaml",
    ".git-code-stats.yml",
    ".git-code-stats.json",
]

PRESETS = {
    "compact": {"radius": 5, "aspect_ratio": 2},
    "standard": {"radius": 9, "aspect_ratio": 3},
    "large": {"radius": 13, "aspect_ratio": 3, "sort_by": "value"},
}


def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.
    An empty file yields an empty configuration.
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    file_ext = os.path.splitext(config_path)[1].lower()

    with open(config_path, "r", encoding="utf-8") as f:
        if file_ext in [".yaml", ".yml"]:
            data = yaml.safe_load(f)
        elif file_ext == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {file_ext}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration must be a mapping: {config_path}")
    return data


def find_config_file(repo_path: str) -> Optional[str]:
    """
    Auto-discover configuration file in repository or current directory.
    Searches for: .git-code-stats.yaml, .git-code-stats.yml, .git-code-stats.json
    """
    search_paths = [
        repo_path,
        os.getcwd(),
    ]

    for search_dir in search_paths:
        for config_name in CONFIG_NAMES:
            config_path = os.path.join(search_dir, config_name)
            if os.path.exists(config_path):
                return config_path

    return None


class ConfigResolver:
    """
    Resolve configuration with precedence: CLI > Config File > Preset > Defaults
    """

    def __init__(
        self,
        cli_args: Dict[str, Any],
        config_path: Optional[str],
        preset_name: Optional[str],
        repo_path: str,
    ):
        self.cli = {k: v for k, v in cli_args.items() if v is not None}
        self.config = {}
        self.preset = {}
        self.config_path = None

        if config_path:
            self.config = load_config_file(config_path)
            self.config_path = config_path
        else:
            auto_path = find_config_file(repo_path)
            if auto_path:
                try:
                    self.config = load_config_file(auto_path)
                    self.config_path = auto_path
                except (OSError, ValueError, yaml.YAMLError) as e:
                    print(
                        f"Warning: Found config file but failed to load: {e}",
                        file=sys.stderr,
                    )

        # Normalize config keys (kebab-case to snake_case)
        self.config = {k.replace("-", "_"): v for k, v in self.config.items()}

        # CLI preset overrides config preset
        final_preset_name = preset_name or self.config.get("preset")
        self.preset = PRESETS.get(final_preset_name, {}) if final_preset_name else {}

    def get(self, key: str, default: Any = None) -> Any:
        """Resolve value based on precedence"""
        if key in self.cli:
            return self.cli[key]
        if key in self.config:
            return self.config[key]
        if key in self.preset:
            return self.preset[key]
        return default


# ============================================================================
# PROGRESS REPORTING
# ============================================================================


class ProgressReporter:
    """
    Console output for a run
    - Color-coded messages (colorama)
    - Progress bar while author stats are collected (tqdm)
    - Quiet and verbose modes
    """

    def __init__(
        self, quiet: bool = False, verbose: bool = False, use_colors: bool = True
    ):
        self.quiet = quiet
        self.verbose = verbose
        self.use_colors = use_colors
        self.start_time = time.time()
        self.stage_times = {}

    def _colorize(self, text: str, color: str) -> str:
        """Apply color if enabled"""
        if self.use_colors:
            return f"{color}{text}{Style.RESET_ALL}"
        return text

    def banner(self):
        if self.quiet:
            return
        print(self._colorize(BANNER, Fore.GREEN))

    def diagnostic(self, marker: str, message: str):
        """One-line notice shown even in quiet mode"""
        print(f"{self._colorize(marker, Fore.RED)} {self._colorize(message, Fore.BLUE)}")

    def stage_start(self, stage_name: str, message: str = ""):
        """Mark the start of a processing stage"""
        if self.quiet:
            return
        self.stage_times[stage_name] = time.time()

        stage_text = self._colorize(f"🔄 {stage_name}", Fore.BLUE + Style.BRIGHT)
        print(stage_text)
        if message:
            print(f"   {message}")

    def stage_complete(self, stage_name: str, stats: Dict = None):
        """Mark completion of a processing stage"""
        if self.quiet:
            return
        elapsed = time.time() - self.stage_times.get(stage_name, time.time())

        complete_text = self._colorize(
            f"✅ {stage_name} complete ({elapsed:.2f}s)", Fore.GREEN + Style.BRIGHT
        )
        print(complete_text)

        if stats and self.verbose:
            for key, value in stats.items():
                print(f"   {key}: {value}")

    def create_progress_bar(
        self, total: int, desc: str = "Processing"
    ) -> Optional[tqdm]:
        """Progress bar over authors, or None when quiet"""
        if self.quiet:
            return None

        return tqdm(
            total=total,
            desc=self._colorize(desc, Fore.BLUE),
            unit=" authors",
            ncols=100,
            leave=False,
        )

    def info(self, message: str):
        """Display informational message"""
        if not self.quiet:
            info_text = self._colorize("ℹ️  ", Fore.BLUE)
            print(f"{info_text}{message}")

    def warning(self, message: str):
        """Display warning message"""
        if not self.quiet:
            warning_text = self._colorize("⚠️  ", Fore.YELLOW + Style.BRIGHT)
            print(f"{warning_text}{message}")

    def error(self, message: str):
        """Display error message (always shown)"""
        error_text = self._colorize(f"❌ ERROR: {message}", Fore.RED + Style.BRIGHT)
        print(error_text, file=sys.stderr)

    def summary(self, stats: Dict[str, Any]):
        """Display final summary"""
        if self.quiet:
            return
        elapsed = time.time() - self.start_time

        separator = self._colorize("=" * 70, Fore.CYAN)
        header = self._colorize("📊 CONTRIBUTION SUMMARY", Fore.MAGENTA + Style.BRIGHT)

        print(f"\n{separator}")
        print(header)
        print(separator)
        for key, value in stats.items():
            print(f"   {key}: {value}")

        time_text = self._colorize(f"⏱️  Total time: {elapsed:.2f}s", Fore.YELLOW)
        print(f"\n{time_text}")
        print(f"{separator}\n")


# ============================================================================
# DATA STRUCTURES & MODELS
# ============================================================================


@dataclass(frozen=True)
class CommitDelta:
    """Numbers from one shortstat line"""

    files_changed: int = 0
    lines_inserted: int = 0
    lines_deleted: int = 0


@dataclass
class AuthorStats:
    """Totals over every shortstat line of one author's history"""

    author: str
    files_changed: int = 0
    lines_inserted: int = 0
    lines_deleted: int = 0

    def add(self, delta: CommitDelta):
        self.files_changed += delta.files_changed
        self.lines_inserted += delta.lines_inserted
        self.lines_deleted += delta.lines_deleted

    def to_dict(self) -> Dict:
        return {
            "author": self.author,
            "files_changed": self.files_changed,
            "lines_inserted": self.lines_inserted,
            "lines_deleted": self.lines_deleted,
        }


@dataclass(frozen=True)
class AuthorEntry:
    """Merged result for one author: their stats plus the chart colour"""

    stats: AuthorStats
    color: str

    @property
    def lines_inserted(self) -> int:
        return self.stats.lines_inserted


@dataclass
class RunMetrics:
    authors: int = 0
    workers: int = 0
    total_time: float = 0.0
    timings: Dict[str, float] = field(default_factory=dict)


# ============================================================================
# GIT COMMAND RUNNER
# ============================================================================


class GitCommandRunner:
    """
    Runs git queries against one repository and returns their raw stdout.

    Every call spawns exactly one `git -C <repo_path> ...` process and blocks
    until it exits. Output is returned untouched; parsing is the caller's job.
    """

    def __init__(self, repo_path: str = ".", reporter: Optional[ProgressReporter] = None):
        self.repo_path = os.path.abspath(repo_path)
        self.reporter = reporter or ProgressReporter(quiet=True)

    def run(self, args: Sequence[str], report_failure: bool = True) -> str:
        """
        Execute a git query.

        Args:
            args: git arguments, e.g. ["log", "--format=%aN"]. Each item is
                passed to the process as one argument, never through a shell.
            report_failure: Warn about a non-zero exit status in verbose mode

        Returns:
            stdout of the process decoded as UTF-8

        Raises:
            ProcessSpawnError: git could not be started
            OutputEncodingError: stdout is not valid UTF-8
        """
        cmd = ["git", "-C", self.repo_path, *args]
        try:
            result = subprocess.run(cmd, capture_output=True, check=False)
        except OSError as e:
            raise ProcessSpawnError(f"Failed to execute {' '.join(cmd)}: {e}") from e

        # A non-zero status still has meaningful stdout (e.g. empty for a
        # repository without commits)
        if result.returncode != 0 and report_failure and self.reporter.verbose:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            self.reporter.warning(
                f"git {' '.join(args)} exited with status {result.returncode}: {stderr}"
            )

        try:
            return result.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise OutputEncodingError(
                f"Output of git {' '.join(args)} is not valid UTF-8: {e}"
            ) from e


def is_inside_work_tree(runner) -> bool:
    """True when the runner's repository path is inside a git working tree"""
    try:
        # Outside a repository git exits 128; that is the expected "false" answer
        output = runner.run(["rev-parse", "--is-inside-work-tree"], report_failure=False)
    except ProcessSpawnError:
        return False
    return output.strip() == "true"


# ============================================================================
# AUTHOR DISCOVERY
# ============================================================================


def parse_authors(text: str) -> List[str]:
    """
    Turn one-name-per-line output into distinct author names.

    Lines are trimmed and blank lines dropped. Names compare by exact string
    equality and come back sorted case-sensitively.
    """
    names = {line.strip() for line in text.splitlines()}
    names.discard("")
    return sorted(names)


def discover_authors(runner) -> List[str]:
    """All distinct author names in the history of the current branch"""
    return parse_authors(runner.run(["log", "--format=%aN"]))


# ============================================================================
# STAT EXTRACTION
# ============================================================================

# " 3 files changed, 10 insertions(+), 2 deletions(-)"
# git omits a zero insertion or deletion clause, so both are optional. A
# pattern requiring all three clauses skips lines such as
# " 2 files changed, 7 insertions(+)" and undercounts most commits.
SHORTSTAT_PATTERN = re.compile(
    r"(\d+) files? changed"
    r"(?:, (\d+) insertions?\(\+\))?"
    r"(?:, (\d+) deletions?\(-\))?"
)

_ERE_SPECIAL = re.compile(r"([\\.\[\](){}*+?|^$])")


def author_filter(author: str) -> str:
    """
    Extended regex for `git log --author` matching exactly ``author``.

    git matches --author against "Name <email>", so the escaped name is
    anchored at the start and followed by the space before the email.
    """
    escaped = _ERE_SPECIAL.sub(r"\\\1", author)
    return f"^{escaped} <"


def parse_shortstat_line(line: str) -> Optional[CommitDelta]:
    """
    Parse a shortstat summary line.

    Returns:
        CommitDelta, or None when the line is not a summary line. A summary
        without insertion and deletion counts is treated as not matching.
    """
    match = SHORTSTAT_PATTERN.search(line)
    if match is None:
        return None

    files, inserted, deleted = match.groups()
    if inserted is None and deleted is None:
        return None

    try:
        return CommitDelta(
            files_changed=int(files),
            lines_inserted=int(inserted) if inserted is not None else 0,
            lines_deleted=int(deleted) if deleted is not None else 0,
        )
    except ValueError as e:
        raise ParseInvariantViolation(
            f"Matched shortstat group is not an integer in {line!r}"
        ) from e


def parse_history(author: str, text: str) -> AuthorStats:
    """
    Accumulate every shortstat line of ``text`` into totals for ``author``.

    Commit headers, messages and blank lines are skipped. The result's
    author is always the given name, whatever the text contains.
    """
    stats = AuthorStats(author=author)
    for line in text.splitlines():
        delta = parse_shortstat_line(line)
        if delta is not None:
            stats.add(delta)
    return stats


def extract_author_stats(runner, author: str) -> AuthorStats:
    output = runner.run(
        [
            "log",
            "--shortstat",
            "--no-color",
            "--extended-regexp",
            f"--author={author_filter(author)}",
        ]
    )
    return parse_history(author, output)


# ============================================================================
# PARALLEL AGGREGATION
# ============================================================================


def color_for_index(index: int) -> str:
    """Palette colour for the author at ``index`` in discovery order"""
    return PALETTE[index % len(PALETTE)]


def default_workers(author_count: int) -> int:
    return max(1, min(DEFAULT_MAX_WORKERS, author_count))


def aggregate(
    runner,
    authors: Sequence[str],
    workers: Optional[int] = None,
    progress_bar: Optional[tqdm] = None,
) -> Dict[str, AuthorEntry]:
    """
    Collect stats for every author in parallel and merge them.

    Each author is one task on a bounded thread pool. A task only reads its
    own author name and returns its own AuthorStats, so nothing is shared
    while the pool runs. The mapping is built after every task has finished.

    Args:
        runner: Object with a ``run(args) -> str`` method
        authors: Distinct author names in discovery order
        workers: Pool size (default: one per author, capped at DEFAULT_MAX_WORKERS)
        progress_bar: Advanced once per finished author, from this thread only

    Returns:
        Mapping author -> AuthorEntry, in discovery order

    Raises:
        GitStatsError: any task failed; nothing is returned
    """
    if not authors:
        return {}

    results: List[Optional[AuthorStats]] = [None] * len(authors)

    with ThreadPoolExecutor(max_workers=workers or default_workers(len(authors))) as executor:
        futures = {
            executor.submit(extract_author_stats, runner, author): index
            for index, author in enumerate(authors)
        }
        try:
            for future in as_completed(futures):
                results[futures[future]] = future.result()
                if progress_bar is not None:
                    progress_bar.update(1)
        except Exception:
            for future in futures:
                future.cancel()
            raise

    # All tasks have joined; only this thread touches the merged mapping
    merged: Dict[str, AuthorEntry] = {}
    for index, (author, stats) in enumerate(zip(authors, results)):
        merged[author] = AuthorEntry(stats=stats, color=color_for_index(index))
    return merged


# ============================================================================
# PRESENTATION
# ============================================================================


def to_chart_records(
    aggregated: Dict[str, AuthorEntry],
    sort_by: str = "discovery",
    fill: str = DEFAULT_FILL,
) -> List[ChartRecord]:
    """
    One chart record per author, valued by lines inserted.

    Authors with zero insertions keep their record. ``sort_by="value"``
    orders by descending value, then label.
    """
    if sort_by not in SORT_CHOICES:
        raise ValueError(f"Unknown sort order: {sort_by}")

    records = [
        ChartRecord(
            label=author, value=entry.lines_inserted, color=entry.color, fill=fill
        )
        for author, entry in aggregated.items()
    ]
    if sort_by == "value":
        records.sort(key=lambda r: (-r.value, r.label))
    return records


def build_summary(aggregated: Dict[str, AuthorEntry], metrics: RunMetrics) -> Dict[str, Any]:
    summary = {}
    for author, entry in aggregated.items():
        s = entry.stats
        summary[author] = (
            f"{s.files_changed:,} files changed, "
            f"+{s.lines_inserted:,} / -{s.lines_deleted:,}"
        )
    summary["Authors"] = metrics.authors
    summary["Workers"] = metrics.workers
    for stage, seconds in metrics.timings.items():
        summary[f"{stage} time"] = f"{seconds:.2f}s"
    summary["Pipeline time"] = f"{metrics.total_time:.2f}s"
    return summary


# ============================================================================
# CLI INTERFACE
# ============================================================================


def validate_fill(ctx, param, value):
    if value is not None and (len(value) != 1 or value.isspace()):
        raise click.BadParameter("must be a single visible character")
    return value


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument(
    "repo_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    required=False,
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path (.yaml or .json)",
)
@click.option(
    "--preset",
    type=click.Choice(sorted(PRESETS)),
    help="Use predefined chart configuration",
)
@click.option(
    "-j",
    "--workers",
    type=click.IntRange(min=1),
    help="Maximum number of git queries running at once",
)
@click.option("--radius", type=click.IntRange(min=1), help="Chart radius in rows")
@click.option(
    "--aspect-ratio",
    type=click.IntRange(min=1),
    help="Horizontal stretch of the chart",
)
@click.option("--no-legend", is_flag=True, default=None, help="Hide the legend")
@click.option("--fill", callback=validate_fill, help="Single character used to fill the chart")
@click.option(
    "--sort-by",
    type=click.Choice(SORT_CHOICES),
    help="Order of chart slices (default: discovery order)",
)
@click.option(
    "-q", "--quiet", is_flag=True, default=None, help="Only print the chart"
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=None,
    help="Show per-author totals and timings",
)
@click.option("--no-color", is_flag=True, default=None, help="Disable colored output")
@click.version_option(version=VERSION)
def main(repo_path, config, preset, **kwargs):
    """
    Git Code Stats - lines inserted per author, drawn as a terminal pie chart.

    Analyses REPO_PATH (default: the current directory).
    """
    resolver = ConfigResolver(kwargs, config, preset, repo_path)

    quiet = resolver.get("quiet", False)
    verbose = resolver.get("verbose", False)
    use_colors = not resolver.get("no_color", False)

    just_fix_windows_console()
    reporter = ProgressReporter(quiet=quiet, verbose=verbose, use_colors=use_colors)
    runner = GitCommandRunner(repo_path, reporter)

    if not is_inside_work_tree(runner):
        reporter.diagnostic("[!]", "Git repository not found in the current directory.")
        return

    if not quiet:
        click.clear()
    reporter.banner()
    if resolver.config_path and verbose:
        reporter.info(f"Configuration: {resolver.config_path}")

    metrics = RunMetrics()
    start_time = time.time()

    try:
        reporter.stage_start("Author Discovery", f"Repository: {repo_path}")
        stage_start = time.time()
        authors = discover_authors(runner)
        metrics.timings["Discovery"] = time.time() - stage_start
        metrics.authors = len(authors)
        reporter.stage_complete("Author Discovery", {"Authors": len(authors)})

        metrics.workers = resolver.get("workers") or default_workers(len(authors))

        reporter.stage_start("Git Stats", "Getting git stats...")
        stage_start = time.time()
        progress_bar = reporter.create_progress_bar(
            total=len(authors), desc="Getting git stats"
        )
        try:
            aggregated = aggregate(
                runner, authors, workers=metrics.workers, progress_bar=progress_bar
            )
        finally:
            if progress_bar:
                progress_bar.close()
        metrics.timings["Git stats"] = time.time() - stage_start
        reporter.stage_complete("Git Stats", {"Workers": metrics.workers})

        records = to_chart_records(
            aggregated,
            sort_by=resolver.get("sort_by", "discovery"),
            fill=resolver.get("fill", DEFAULT_FILL),
        )
        chart = PieChart(
            radius=resolver.get("radius", 9),
            aspect_ratio=resolver.get("aspect_ratio", 3),
            legend=not resolver.get("no_legend", False),
            use_colors=use_colors,
        )
        click.echo(chart.render(records))

    except Exception as e:
        reporter.error(f"Analysis failed: {str(e)}")
        if verbose:
            traceback.print_exc()
        sys.exit(1)

    metrics.total_time = time.time() - start_time
    if verbose:
        reporter.summary(build_summary(aggregated, metrics))


if __name__ == "__main__":
    main()
