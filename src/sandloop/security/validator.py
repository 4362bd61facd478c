"""
Sandloop Security Validator

Decides whether a path or command may be used inside a sandbox.
Every function here is pure: no filesystem access, no caching, no
shared state. Sessions sharing one SandboxPolicy may call them
concurrently.

Path validation order:
    1. Reject traversal ("..") and home expansion ("~") tokens outright
    2. Resolve: absolute paths must already be under the sandbox root,
       relative paths are joined to it
    3. Canonicalize (collapse ".", redundant separators)
    4. Containment: the canonical path must still be under the root.
       This is the authoritative check; step 1 alone is not sufficient.
    5. Denylist: credential files, system directories and the sandbox's
       own infrastructure files are refused even inside the root
"""

from __future__ import annotations

import posixpath
import re
from fnmatch import fnmatchcase

from sandloop.core.models import SandboxPolicy, ValidationResult

_TRAVERSAL_TOKEN = ".."
_HOME_TOKEN = "~"


def validate_path(raw_path: str, policy: SandboxPolicy) -> ValidationResult:
    """Validate a model-supplied path against the sandbox policy.

    On success the result carries both the canonical absolute path and
    the root-relative path handed to execution backends. On rejection
    suggested_path is set when a corrected path inside the sandbox can
    be derived.
    """
    if not isinstance(raw_path, str):
        return ValidationResult.reject(f"Path must be a string, got {type(raw_path).__name__}")
    if "\x00" in raw_path:
        return ValidationResult.reject("Path contains a NUL byte")

    root = policy.sandbox_root

    if raw_path != raw_path.strip():
        return ValidationResult.reject(
            f"Path {raw_path!r} has leading or trailing whitespace",
            suggested_path=_suggest(raw_path, policy),
        )

    # 1. Defense in depth: string-level tokens, before any resolution
    if _TRAVERSAL_TOKEN in raw_path:
        return ValidationResult.reject(
            f"Path '{raw_path}' contains a parent-directory traversal ('..') "
            f"that could escape the sandbox {root}",
            suggested_path=_suggest(raw_path, policy),
        )
    if _HOME_TOKEN in raw_path:
        return ValidationResult.reject(
            f"Path '{raw_path}' uses home-directory expansion ('~') which points outside the sandbox {root}",
            suggested_path=_suggest(raw_path, policy),
        )

    # 2. Resolve
    if raw_path.startswith("/"):
        if not _is_within(_collapse_separators(raw_path), root):
            return ValidationResult.reject(
                f"Absolute path '{raw_path}' is outside the sandbox {root}",
                suggested_path=_suggest(raw_path, policy),
            )
        joined = raw_path
    else:
        joined = posixpath.join(root, raw_path) if raw_path else root

    # 3. Canonicalize
    canonical = _canonicalize(joined)

    # 4. Containment
    if not _is_within(canonical, root):
        return ValidationResult.reject(
            f"Path '{raw_path}' resolves to {canonical}, which escapes the sandbox {root}",
            suggested_path=_suggest(raw_path, policy),
        )

    relative = _relative_to_root(canonical, root)

    # 5. Denylist
    pattern = _match_denylist(canonical, relative, root, policy.path_denylist_patterns)
    if pattern is not None:
        return ValidationResult.reject(
            f"Access to '{relative}' is denied by sandbox policy (matches '{pattern}')"
        )

    return ValidationResult.ok(resolved_path=canonical, relative_path=relative)


def validate_command(raw_command: str, policy: SandboxPolicy) -> ValidationResult:
    """Reject commands matching the policy's command denylist.

    Allow-by-default: anything not matched is permitted. This never
    inspects the sandbox filesystem.
    """
    if not isinstance(raw_command, str):
        return ValidationResult.reject(f"Command must be a string, got {type(raw_command).__name__}")
    command = raw_command.strip()
    if not command:
        return ValidationResult.reject("Command is empty")
    if "\x00" in command:
        return ValidationResult.reject("Command contains a NUL byte")

    for candidate in (command, _unquote(command)):
        for pattern in policy.command_denylist_patterns:
            if re.search(pattern, candidate, flags=re.IGNORECASE):
                return ValidationResult.reject(
                    f"Command '{_abbreviate(command)}' is blocked by the command denylist (matches {pattern!r})"
                )
    return ValidationResult.ok()


def validate_workspace_binding(policy: SandboxPolicy, claimed_workspace_id: str | None) -> ValidationResult:
    """Check that a session targets the workspace its policy was provisioned for."""
    if claimed_workspace_id != policy.authorized_workspace_id:
        return ValidationResult.reject(
            f"Workspace '{claimed_workspace_id}' is not authorized for this session "
            f"(bound to '{policy.authorized_workspace_id}')"
        )
    return ValidationResult.ok()


# ─── Helpers ────────────────────────────────────────────────


def _collapse_separators(path: str) -> str:
    return re.sub(r"/{2,}", "/", path)


def _canonicalize(path: str) -> str:
    canonical = posixpath.normpath(_collapse_separators(path))
    return canonical.rstrip("/") or "/"


def _is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root + "/")


def _relative_to_root(canonical: str, root: str) -> str:
    if canonical == root:
        return "."
    return canonical[len(root) + 1:]


def _match_denylist(canonical: str, relative: str, root: str, patterns: tuple[str, ...]) -> str | None:
    components = [part for part in relative.split("/") if part and part != "."]
    for pattern in patterns:
        if "/" in pattern:
            # absolute patterns covering the root itself do not apply inside it
            if pattern.startswith("/") and fnmatchcase(root, pattern):
                continue
            if fnmatchcase(canonical, pattern) or fnmatchcase(relative, pattern):
                return pattern
        elif any(fnmatchcase(part, pattern) for part in components):
            return pattern
    return None


def _suggest(raw_path: str, policy: SandboxPolicy) -> str | None:
    """Best-effort corrected path inside the sandbox, or None."""
    root = policy.sandbox_root
    candidate = raw_path.replace(_TRAVERSAL_TOKEN, "").replace(_HOME_TOKEN, "")
    candidate = _collapse_separators(candidate.strip())
    if candidate.startswith("/") and not _is_within(_canonicalize(candidate), root):
        candidate = candidate.lstrip("/")
    candidate = re.sub(r"^(\./)+", "", candidate)
    if not candidate or candidate in (".", "/"):
        return None

    result = validate_path(candidate, policy)
    if result.is_valid and result.resolved_path != root:
        return result.resolved_path
    return None


def _abbreviate(text: str, limit: int = 80) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _unquote(command: str) -> str:
    """Drop quotes, backslash escapes and bare "--" so `rm -rf -- '/etc'` reads as `rm -rf /etc`."""
    unquoted = re.sub(r"[\"'\\]", "", command)
    return re.sub(r"(?<=\s)--(?=\s|$)", "", unquoted)
