"""Manifest patching: removal of keys tied to unselected items.

Two manifest representations are supported, searched in priority order
(source-embedded first, plain JSON last); only the first one found is
patched:

* ``manifest.json`` -- parsed, keys deleted, re-serialised.
* ``manifest.config.{ts,js,mjs}`` -- a JavaScript/TypeScript object
  literal.  The source is tokenised (strings, template literals, and
  comments are skipped) and each ``key: value`` property is cut out
  structurally, together with the comma that separated it from its
  neighbours.  When the source cannot be tokenised (unterminated string,
  unbalanced brackets) a regex-based fallback is used instead, and its
  result is rejected if it changed the bracket balance.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from template_forge.errors import ManifestPatchError
from template_forge.utils import dump_json, print_detail, print_success, read_source, write_source

DEFAULT_MANIFEST_CANDIDATES: tuple[str, ...] = (
    "manifest.config.ts",
    "manifest.config.js",
    "manifest.config.mjs",
    "manifest.json",
)


class ManifestSyntaxError(ValueError):
    """The object-literal source could not be tokenised."""


class ManifestPatchResult(BaseModel):
    """Outcome of patching one manifest file."""

    path: str = Field(..., description="Manifest file name")
    removed_keys: list[str] = Field(default_factory=list)
    strategy: Optional[str] = Field(
        default=None, description="'json', 'syntax' (tokenised) or 'pattern' (regex fallback)"
    )

    @property
    def changed(self) -> bool:
        return bool(self.removed_keys)


# ---------------------------------------------------------------------------
# Tokeniser
# ---------------------------------------------------------------------------

_PUNCTUATION = "{}[](),:"
_OPENERS = {"{": "}", "[": "]", "(": ")"}
_CLOSERS = {"}", "]", ")"}
_NAME_RE = re.compile(r"[A-Za-z_$][\w$]*")


@dataclass
class Token:
    kind: str  # "punct", "string", "template", "name" or "other"
    text: str
    start: int
    end: int

    def is_punct(self, chars: str) -> bool:
        return self.kind == "punct" and self.text in chars


def _scan_quoted(source: str, start: int) -> int:
    quote = source[start]
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n":
            break
        i += 1
    raise ManifestSyntaxError(f"unterminated string starting at offset {start}")


def _scan_template(source: str, start: int) -> int:
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "`":
            return i + 1
        if source.startswith("${", i):
            i = _scan_interpolation(source, i + 2)
            continue
        i += 1
    raise ManifestSyntaxError(f"unterminated template literal starting at offset {start}")


def _scan_interpolation(source: str, start: int) -> int:
    depth = 1
    i = start
    while i < len(source):
        ch = source[i]
        if ch in "\"'":
            i = _scan_quoted(source, i)
            continue
        if ch == "`":
            i = _scan_template(source, i)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    raise ManifestSyntaxError(f"unterminated interpolation starting at offset {start}")


def tokenize(source: str) -> list[Token]:
    """Split JavaScript/TypeScript source into the tokens that matter for
    object-literal structure.  Whitespace and comments are dropped.

    Raises:
        ManifestSyntaxError: On unterminated strings, templates or comments.
    """
    tokens: list[Token] = []
    i = 0
    n = len(source)
    while i < n:
        ch = source[i]
        if ch.isspace():
            i += 1
        elif source.startswith("//", i):
            newline = source.find("\n", i)
            i = n if newline == -1 else newline
        elif source.startswith("/*", i):
            close = source.find("*/", i + 2)
            if close == -1:
                raise ManifestSyntaxError(f"unterminated comment starting at offset {i}")
            i = close + 2
        elif ch in "\"'":
            end = _scan_quoted(source, i)
            tokens.append(Token("string", source[i:end], i, end))
            i = end
        elif ch == "`":
            end = _scan_template(source, i)
            tokens.append(Token("template", source[i:end], i, end))
            i = end
        elif ch in _PUNCTUATION:
            tokens.append(Token("punct", ch, i, i + 1))
            i += 1
        else:
            match = _NAME_RE.match(source, i)
            if match:
                tokens.append(Token("name", match.group(), i, match.end()))
                i = match.end()
            else:
                tokens.append(Token("other", ch, i, i + 1))
                i += 1
    return tokens


def match_brackets(tokens: list[Token]) -> tuple[dict[int, int], list[Optional[int]]]:
    """Pair every opening bracket with its closer.

    Returns:
        ``(pairs, parents)`` where ``pairs`` maps the index of each opener to
        the index of its closer and ``parents[i]`` is the index of the
        innermost opener enclosing token ``i`` (``None`` at top level).

    Raises:
        ManifestSyntaxError: If brackets are mismatched or unbalanced.
    """
    pairs: dict[int, int] = {}
    parents: list[Optional[int]] = []
    stack: list[int] = []
    for index, token in enumerate(tokens):
        if token.kind == "punct" and token.text in _CLOSERS:
            if not stack or _OPENERS[tokens[stack[-1]].text] != token.text:
                raise ManifestSyntaxError(
                    f"unexpected '{token.text}' at offset {token.start}"
                )
            opener = stack.pop()
            pairs[opener] = index
        parents.append(stack[-1] if stack else None)
        if token.kind == "punct" and token.text in _OPENERS:
            stack.append(index)
    if stack:
        opener = tokens[stack[-1]]
        raise ManifestSyntaxError(f"unclosed '{opener.text}' at offset {opener.start}")
    return pairs, parents


# ---------------------------------------------------------------------------
# Structural key removal
# ---------------------------------------------------------------------------


def _key_text(token: Token) -> Optional[str]:
    if token.kind == "name":
        return token.text
    if token.kind == "string":
        return token.text[1:-1]
    return None


def _find_property_span(source: str, key: str) -> Optional[tuple[int, int]]:
    """Locate the first ``key: value`` property and the text range to cut.

    The range includes the leading comma when there is one, else the
    trailing comma (and the whitespace after it), else just the property.
    """
    tokens = tokenize(source)
    pairs, parents = match_brackets(tokens)

    for i, token in enumerate(tokens):
        if _key_text(token) != key:
            continue
        if i == 0 or i + 1 >= len(tokens):
            continue
        parent = parents[i]
        if parent is None or tokens[parent].text != "{":
            continue
        if not tokens[i - 1].is_punct("{,") or not tokens[i + 1].is_punct(":"):
            continue

        # Walk the value up to a comma or closer at this nesting level.
        j = i + 2
        value_end = tokens[i + 1].end
        while j < len(tokens):
            current = tokens[j]
            if current.is_punct(",}])"):
                break
            if current.kind == "punct" and current.text in _OPENERS:
                j = pairs[j]
            value_end = tokens[j].end
            j += 1
        following = tokens[j] if j < len(tokens) else None

        previous = tokens[i - 1]
        if previous.is_punct(","):
            return previous.start, value_end
        if following is not None and following.is_punct(","):
            end = following.end
            while end < len(source) and source[end].isspace():
                end += 1
            return token.start, end
        return token.start, value_end
    return None


def _strip_dangling_commas(source: str) -> str:
    """Drop commas directly followed by ``,``/``}``/``]`` or directly after ``{``/``[``."""
    tokens = tokenize(source)
    dangling: list[Token] = []
    for i, token in enumerate(tokens):
        if not token.is_punct(","):
            continue
        after = tokens[i + 1] if i + 1 < len(tokens) else None
        before = tokens[i - 1] if i > 0 else None
        if (after is not None and after.is_punct(",}]")) or (
            before is not None and before.is_punct("{[")
        ):
            dangling.append(token)
    for token in reversed(dangling):
        source = source[: token.start] + source[token.end :]
    return source


def remove_object_keys(source: str, keys: list[str]) -> tuple[str, list[str]]:
    """Remove every ``key: value`` property named in *keys* from *source*.

    Returns:
        ``(new_source, removed_keys)``.

    Raises:
        ManifestSyntaxError: If *source* cannot be tokenised.
    """
    removed: list[str] = []
    for key in keys:
        found = False
        while True:
            span = _find_property_span(source, key)
            if span is None:
                break
            start, end = span
            source = source[:start] + source[end:]
            found = True
        if found:
            removed.append(key)
    if removed:
        source = _strip_dangling_commas(source)
    return source, removed


# ---------------------------------------------------------------------------
# Regex fallback
# ---------------------------------------------------------------------------

# A value: an object or array nested up to two levels, a quoted string, or a
# bare scalar running to the end of the line.
_VALUE = (
    r"(?:\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}"
    r"|\[[^\[\]]*(?:\[[^\[\]]*\][^\[\]]*)*\]"
    r'|"[^"\n]*"'
    r"|'[^'\n]*'"
    r"|[^,{}\[\]\r\n]*?)"
)
_CLEANUP_RE = re.compile(r",(\s*,|\s*\}|\s*\])")


def _key_expression(key: str) -> str:
    escaped = re.escape(key)
    return rf"(?<![\w$.])(?:{escaped}|\"{escaped}\"|'{escaped}')\s*:\s*"


def _bracket_balance(text: str) -> tuple[int, int, int]:
    return (
        text.count("{") - text.count("}"),
        text.count("[") - text.count("]"),
        text.count("(") - text.count(")"),
    )


def remove_object_keys_by_pattern(source: str, keys: list[str]) -> tuple[str, list[str]]:
    """Regex-based key removal for sources the tokeniser rejects.

    For each key three strategies are tried in order: the property with its
    leading comma, with its trailing comma, then bare.

    Raises:
        ManifestSyntaxError: If the edit changed the bracket balance.
    """
    original_balance = _bracket_balance(source)
    removed: list[str] = []
    for key in keys:
        key_expr = _key_expression(key)
        strategies = (
            re.compile(rf",\s*{key_expr}{_VALUE}(?=\s*(?:[,}}\]]|\Z))"),
            re.compile(rf"{key_expr}{_VALUE}\s*,[ \t]*(?:\r?\n[ \t]*)?"),
            re.compile(rf"{key_expr}{_VALUE}(?=\s*(?:[}}\]]|\Z))"),
        )
        for regex in strategies:
            source, count = regex.subn("", source)
            if count:
                removed.append(key)
                break
    if removed:
        source = _CLEANUP_RE.sub(r"\1", source)
    if _bracket_balance(source) != original_balance:
        raise ManifestSyntaxError("pattern-based edit left unbalanced brackets")
    return source, removed


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def find_manifest(
    project_dir: str | Path,
    candidates: tuple[str, ...] | list[str] = DEFAULT_MANIFEST_CANDIDATES,
) -> Optional[Path]:
    """Return the first manifest candidate that exists under *project_dir*."""
    for name in candidates:
        path = Path(project_dir) / name
        if path.is_file():
            return path
    return None


def _patch_json(path: Path, keys: list[str]) -> list[str]:
    raw = read_source(path)
    manifest = json.loads(raw)
    if not isinstance(manifest, dict):
        raise ManifestPatchError(path, "manifest.json root is not an object")
    removed = [key for key in keys if key in manifest]
    for key in removed:
        del manifest[key]
    if removed:
        content = dump_json(manifest)
        if "\r\n" in raw:
            content = content.replace("\n", "\r\n")
        write_source(path, content)
    return removed


def _patch_source(path: Path, keys: list[str]) -> tuple[list[str], str]:
    content = read_source(path)
    try:
        updated, removed = remove_object_keys(content, keys)
        strategy = "syntax"
    except ManifestSyntaxError:
        updated, removed = remove_object_keys_by_pattern(content, keys)
        strategy = "pattern"
    if removed:
        write_source(path, updated)
    return removed, strategy


async def patch_manifest(
    project_dir: str | Path,
    keys: list[str],
    keep: bool = False,
    candidates: tuple[str, ...] | list[str] = DEFAULT_MANIFEST_CANDIDATES,
) -> Optional[ManifestPatchResult]:
    """Remove *keys* from the project's manifest.

    Args:
        project_dir: Project root.
        keys: Top-level manifest keys owned by an item.
        keep: When true the keys stay and nothing is written.
        candidates: Manifest file names in priority order.

    Returns:
        The patch result, or ``None`` when no manifest exists.

    Raises:
        ManifestPatchError: The manifest could not be read, parsed, or written.
    """
    manifest_path = await asyncio.to_thread(find_manifest, project_dir, tuple(candidates))
    if manifest_path is None:
        print_detail("  No manifest file found or updated.")
        return None

    print_detail(
        f"  Updating manifest: {'Keeping' if keep else 'Removing'} keys [{', '.join(keys)}]"
    )
    if keep or not keys:
        return ManifestPatchResult(path=manifest_path.name)

    try:
        if manifest_path.suffix == ".json":
            removed = await asyncio.to_thread(_patch_json, manifest_path, keys)
            strategy = "json"
        else:
            removed, strategy = await asyncio.to_thread(_patch_source, manifest_path, keys)
    except ManifestPatchError:
        raise
    except (OSError, ValueError) as exc:
        raise ManifestPatchError(manifest_path, str(exc)) from exc

    for key in removed:
        print_detail(f"    - Removed key '{key}' from {manifest_path.name}")
    if removed:
        print_success(f"  ✔ Successfully updated {manifest_path.name}")
    return ManifestPatchResult(path=manifest_path.name, removed_keys=removed, strategy=strategy)
