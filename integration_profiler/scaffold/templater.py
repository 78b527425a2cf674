"""Placeholder token substitution for cluster profile config files.

Tokens are literal substrings replaced by plain strings; each line is
scanned exactly once.
"""
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from integration_profiler.core.errors import TemplateError
from integration_profiler.core.logger import get_logger
from integration_profiler.models.cluster import (
    CONFIG_PLACEHOLDER,
    PARTITION_TOKEN,
    QUEUE_TOKEN,
    ClusterSpec,
    ConfigVariant,
)

logger = get_logger(__name__)

COMMENT_MARKER = "#"
PLACEHOLDER_PREFIX = CONFIG_PLACEHOLDER

WORKERS_TOKEN = "NumWorkers = 100000"
MATLAB_ROOT_TOKEN = "ClusterMatlabRoot = "
HOST_TOKEN = "ClusterHost ="
SHARED_FS_TOKEN = "HasSharedFilesystem = true"
CLUSTER_NAME_TOKEN = "cluster_name"
PROFILE_NAME_TOKEN = "profile_name"

# Tokens that never apply to a given config variant
VARIANT_EXCEPTIONS = {
    ConfigVariant.CLUSTER: frozenset({MATLAB_ROOT_TOKEN, HOST_TOKEN}),
    ConfigVariant.REMOTE_CLUSTER: frozenset({MATLAB_ROOT_TOKEN}),
}


class TokenMap:
    """Ordered literal-to-replacement mapping applied in a single pass.

    When several tokens match at the same position, the one inserted first
    wins. Replacement text is never rescanned, so a replacement containing
    another token does not trigger a second substitution.
    """

    def __init__(self, tokens: Optional[Dict[str, str]] = None):
        self._tokens: Dict[str, str] = {}
        for token, replacement in (tokens or {}).items():
            self.add(token, replacement)

    def add(self, token: str, replacement: str) -> None:
        if not token:
            raise ValueError("Tokens must be non-empty")
        self._tokens[token] = replacement

    def without(self, skipped: Iterable[str]) -> "TokenMap":
        """Return a copy lacking the given tokens, preserving order."""
        skipped = set(skipped)
        return TokenMap({t: r for t, r in self._tokens.items() if t not in skipped})

    def items(self):
        return self._tokens.items()

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, token: str) -> bool:
        return token in self._tokens

    def apply(self, line: str) -> str:
        """Substitute every token occurrence in one left-to-right pass."""
        if not self._tokens:
            return line
        pattern = re.compile("|".join(re.escape(t) for t in self._tokens))
        return pattern.sub(lambda match: self._tokens[match.group(0)], line)


def build_token_map(spec: ClusterSpec) -> TokenMap:
    """Build the substitution table for one cluster.

    Insertion order is part of the contract; see :class:`TokenMap`.
    """
    tokens = TokenMap()
    tokens.add(WORKERS_TOKEN, f"NumWorkers = {spec.workers}")
    tokens.add(MATLAB_ROOT_TOKEN, f"ClusterMatlabRoot = {spec.matlab_root or ''}")
    tokens.add(HOST_TOKEN, f"ClusterHost = {spec.hostname or ''}")
    tokens.add(SHARED_FS_TOKEN, f"HasSharedFilesystem = {str(spec.shared_filesystem).lower()}")
    tokens.add(CLUSTER_NAME_TOKEN, spec.slug)
    tokens.add(PROFILE_NAME_TOKEN, spec.name)
    tokens.add(QUEUE_TOKEN, "")
    tokens.add(PARTITION_TOKEN, "")
    return tokens


def tokens_for(tokens: TokenMap, spec: ClusterSpec, variant: ConfigVariant) -> TokenMap:
    """Drop the tokens that do not apply to this (file, scheduler) pair."""
    skipped = set(spec.scheduler.skipped_tokens)
    skipped |= VARIANT_EXCEPTIONS.get(variant, frozenset())
    return tokens.without(skipped)


def rewrite_lines(lines: Iterable[str], tokens: TokenMap) -> List[str]:
    """Apply tokens to every non-comment line.

    Lines that become empty are dropped; lines that were already blank stay.
    """
    result = []
    for line in lines:
        if line.startswith(COMMENT_MARKER):
            result.append(line)
            continue
        modified = tokens.apply(line)
        if modified or not line:
            result.append(modified)
    return result


def rewrite(path: Path, tokens: TokenMap) -> None:
    """Rewrite a file in place.

    Raises:
        TemplateError: If the file cannot be read or written.
    """
    path = Path(path)
    try:
        lines = path.read_text().splitlines()
    except OSError as e:
        raise TemplateError(f"Failed to read {path}: {e}") from e

    rewritten = rewrite_lines(lines, tokens)

    try:
        path.write_text("".join(line + "\n" for line in rewritten))
    except OSError as e:
        raise TemplateError(f"Failed to write {path}: {e}") from e


def rename_placeholder(path: Path, slug: str, placeholder: str = PLACEHOLDER_PREFIX) -> Path:
    """Replace the placeholder in a file's name with the cluster slug.

    Only the final path component is touched.

    Returns:
        The new path (unchanged if the name has no placeholder).
    """
    path = Path(path)
    new_name = path.name.replace(placeholder, slug)
    if new_name == path.name:
        return path

    target = path.with_name(new_name)
    try:
        path.rename(target)
    except OSError as e:
        raise TemplateError(f"Failed to rename {path} to {target}: {e}") from e

    logger.debug(f"Renamed {path.name} -> {new_name}")
    return target
