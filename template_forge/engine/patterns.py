"""Code pattern pruning.

A code pattern pairs a glob with a regex.  When the item owning a pattern
marked ``action: "keep"`` is unselected, every match of the regex is
deleted from every file the glob resolves to.  Other actions are reserved
and do nothing.

Glob resolution follows the conventions of JavaScript tooling: ``**``
spans directories, ``{a,b}`` alternatives are expanded, dot-files are only
matched when the pattern names them, only files are returned, and paths
listed in the project's ``.gitignore`` are excluded.

This stage is best-effort: a failure on one file is reported and the
remaining files are still processed.
"""

from __future__ import annotations

import asyncio
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from pydantic import BaseModel, Field

from template_forge.engine.models import CodePattern
from template_forge.errors import CodePatternError
from template_forge.utils import print_detail, print_warning, read_source, write_source

_BRACE_RE = re.compile(r"\{([^{}]*)\}")


class PruneResult(BaseModel):
    """Outcome of applying one code pattern."""

    file_glob: str
    regex: str
    action: str | None = None
    matched_files: list[str] = Field(default_factory=list)
    changed_files: list[str] = Field(default_factory=list)
    failures: list[str] = Field(default_factory=list, description="Per-file error messages")


# ---------------------------------------------------------------------------
# Glob helpers
# ---------------------------------------------------------------------------


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives into separate globs.

    Examples::

        expand_braces("src/**/*.{ts,vue}") -> ["src/**/*.ts", "src/**/*.vue"]
    """
    match = _BRACE_RE.search(pattern)
    if match is None or "," not in match.group(1):
        return [pattern]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(pattern[: match.start()] + option + pattern[match.end() :]))
    return expanded


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a gitignore-style glob into an anchored regex.

    ``*`` and ``?`` never cross ``/``; ``**`` spans any number of segments.
    """
    out: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("/**", i) and i + 3 == len(pattern):
            out.append("/.*")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        elif pattern[i] == "[":
            close = pattern.find("]", i + 1)
            if close == -1:
                out.append(re.escape("["))
                i += 1
            else:
                body = pattern[i + 1 : close].replace("\\", "\\\\")
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = close + 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out) + r"\Z")


@dataclass
class IgnoreRule:
    """One line of a ``.gitignore`` file."""

    regex: re.Pattern[str]
    negated: bool
    directory_only: bool
    anchored: bool


def parse_gitignore(text: str) -> list[IgnoreRule]:
    rules: list[IgnoreRule] = []
    for raw in text.splitlines():
        line = raw.rstrip()
        if not line or line.startswith("#"):
            continue
        negated = line.startswith("!")
        if negated:
            line = line[1:]
        if line.startswith("\\"):
            line = line[1:]
        directory_only = line.endswith("/")
        line = line.rstrip("/")
        anchored = "/" in line
        line = line.lstrip("/")
        if not line:
            continue
        rules.append(
            IgnoreRule(
                regex=glob_to_regex(line),
                negated=negated,
                directory_only=directory_only,
                anchored=anchored,
            )
        )
    return rules


def _rule_matches(rule: IgnoreRule, rel_path: str, is_dir: bool) -> bool:
    if rule.directory_only and not is_dir:
        return False
    subject = rel_path if rule.anchored else rel_path.rsplit("/", 1)[-1]
    return bool(rule.regex.match(subject))


def _last_match(rules: list[IgnoreRule], rel_path: str, is_dir: bool) -> bool:
    ignored = False
    for rule in rules:
        if _rule_matches(rule, rel_path, is_dir):
            ignored = not rule.negated
    return ignored


def is_ignored(rel_path: str, rules: list[IgnoreRule], is_dir: bool = False) -> bool:
    """Whether *rel_path* is excluded by *rules*.

    Rules apply in order and the last matching rule decides.  A path under
    an excluded directory stays excluded: a negation cannot re-include it.
    """
    parts = rel_path.split("/")
    for depth in range(1, len(parts)):
        if _last_match(rules, "/".join(parts[:depth]), True):
            return True
    return _last_match(rules, rel_path, is_dir)


def load_gitignore(project_dir: Path) -> list[IgnoreRule]:
    path = project_dir / ".gitignore"
    if not path.is_file():
        return []
    return parse_gitignore(path.read_text(encoding="utf-8", errors="replace"))


def _is_hidden(rel_path: str, pattern: str) -> bool:
    if pattern.startswith(".") or "/." in pattern:
        return False
    return any(part.startswith(".") for part in rel_path.split("/"))


def find_matching_files(
    project_dir: str | Path,
    pattern: str,
    respect_gitignore: bool = True,
) -> list[str]:
    """Resolve *pattern* to the sorted list of matching file paths.

    Paths are relative to *project_dir* and use ``/`` separators.

    Raises:
        CodePatternError: If the glob is empty or absolute.
    """
    root = Path(project_dir)
    if not pattern or Path(pattern).is_absolute():
        raise CodePatternError(pattern, "glob must be a non-empty path relative to the project")

    rules = load_gitignore(root) if respect_gitignore else []
    matches: set[str] = set()
    for expanded in expand_braces(pattern):
        expanded = expanded.removeprefix("./")
        try:
            regex = glob_to_regex(expanded)
        except re.error as exc:
            raise CodePatternError(pattern, f"invalid glob ({exc})") from exc
        for rel_path in _walk_files(root, _literal_base(expanded), rules):
            if not regex.match(rel_path) or _is_hidden(rel_path, expanded):
                continue
            if rules and is_ignored(rel_path, rules):
                continue
            matches.add(rel_path)
    return sorted(matches)


def _literal_base(pattern: str) -> str:
    """Leading directory segments of *pattern* that contain no wildcards."""
    base: list[str] = []
    for part in pattern.split("/")[:-1]:
        if any(ch in part for ch in "*?["):
            break
        base.append(part)
    return "/".join(base)


def _walk_files(root: Path, base: str, rules: list[IgnoreRule]) -> Iterator[str]:
    """Yield project-relative paths of the files under ``root / base``.

    Excluded directories are not descended into.
    """
    start = root / base if base else root
    if not start.is_dir():
        return
    for dirpath, dirnames, filenames in os.walk(start):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"
        if rules:
            dirnames[:] = [d for d in dirnames if not is_ignored(prefix + d, rules, is_dir=True)]
        dirnames.sort()
        for name in sorted(filenames):
            if os.path.isfile(os.path.join(dirpath, name)):
                yield prefix + name


# ---------------------------------------------------------------------------
# Regex handling
# ---------------------------------------------------------------------------

_JS_NAMED_GROUP_RE = re.compile(r"\(\?<(?![=!])")
_JS_BACKREF_RE = re.compile(r"\\k<([A-Za-z_]\w*)>")


def compile_pattern(source: str) -> re.Pattern[str]:
    """Compile a pattern written for JavaScript ``RegExp``.

    Named groups (``(?<name>...)``) and named back-references
    (``\\k<name>``) are rewritten to Python syntax.

    Raises:
        re.error: If the pattern is invalid.
    """
    translated = _JS_NAMED_GROUP_RE.sub("(?P<", source)
    translated = _JS_BACKREF_RE.sub(r"(?P=\1)", translated)
    return re.compile(translated)


def _prune_file(path: Path, regex: re.Pattern[str]) -> bool:
    content = read_source(path)
    updated = regex.sub("", content)
    if updated == content:
        return False
    write_source(path, updated)
    return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def prune_pattern(
    project_dir: str | Path,
    pattern: CodePattern,
    respect_gitignore: bool = True,
) -> PruneResult:
    """Apply one code pattern to the project.

    Raises:
        CodePatternError: The regex or glob is invalid, or the glob search
            failed.  Errors on individual files are recorded on the result
            instead.
    """
    root = Path(project_dir)
    result = PruneResult(file_glob=pattern.file, regex=pattern.regex_source, action=pattern.action)
    print_detail(
        f"  Processing code pattern: Action='{pattern.action or 'remove'}', "
        f"Pattern='{pattern.regex_source}', Files='{pattern.file}'"
    )

    if not pattern.removes_matches:
        print_detail(
            f"    - Action '{pattern.action}' not implemented for code patterns yet, skipping."
        )
        return result

    try:
        regex = compile_pattern(pattern.regex_source)
    except re.error as exc:
        raise CodePatternError(pattern.regex_source, f"invalid regex ({exc})") from exc

    try:
        result.matched_files = await asyncio.to_thread(
            find_matching_files, root, pattern.file, respect_gitignore
        )
    except OSError as exc:
        raise CodePatternError(pattern.file, f"glob search failed ({exc})") from exc

    print_detail(f"    Found {len(result.matched_files)} file(s): [{', '.join(result.matched_files)}]")

    for rel_path in result.matched_files:
        try:
            changed = await asyncio.to_thread(_prune_file, root / rel_path, regex)
        except (OSError, UnicodeDecodeError) as exc:
            error = CodePatternError(pattern.regex_source, str(exc), path=rel_path)
            print_warning(f"    ⚠️ Error processing file {rel_path}: {exc}")
            result.failures.append(str(error))
            continue
        if changed:
            print_detail(f"    - Applied removal pattern to {rel_path}")
            result.changed_files.append(rel_path)

    if result.changed_files:
        print_detail(f"    Processed {len(result.changed_files)} file(s) for this pattern.")
    return result
