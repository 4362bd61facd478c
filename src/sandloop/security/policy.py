"""
Sandbox policy defaults.

One SandboxPolicy replaces the separate workspace allow-list and
path-pattern checks: the workspace binding and both denylists are
plain fields, so every session is validated by the same code path.
"""

from __future__ import annotations

from collections.abc import Iterable

from sandloop.core.models import SandboxPolicy

# Glob patterns. With a "/" they match the absolute or root-relative
# path; without one they match any single path component.
DEFAULT_PATH_DENYLIST: tuple[str, ...] = (
    # system directories
    "/etc", "/etc/*",
    "/proc/*",
    "/sys/*",
    "/root/*",
    "/home/*",
    "/var/*",
    "/boot/*",
    "/dev/*",
    # credentials
    ".env",
    ".env.*",
    "*.pem",
    "*.key",
    "id_rsa*",
    "id_ed25519*",
    ".ssh",
    ".aws",
    ".git-credentials",
    ".npmrc",
    ".netrc",
    # sandbox infrastructure
    "Dockerfile",
    "docker-compose*.yml",
    "docker-compose*.yaml",
    ".dockerignore",
)

# Regular expressions, matched case-insensitively anywhere in the command.
DEFAULT_COMMAND_DENYLIST: tuple[str, ...] = (
    # privilege escalation, by bare name or full binary path
    r"(^|[\s;&|(`/])sudo(?=\s|$|[;&|)])",
    r"(^|[\s;&|(`/])su(\s+-|\s+root\b|\s*$)",
    r"(^|[\s;&|(`/])doas(?=\s|$|[;&|)])",
    r"\bchmod\s+([0-7]*[4-7][0-7]{3}|[ugoa]*\+[rwx]*s)\b",
    # remote script piped, substituted or process-substituted into an interpreter
    r"\b(curl|wget|fetch)\b[^|;&]*\|\s*(sudo\s+)?(ba|z|k|da|fi)?sh\b",
    r"\b(curl|wget|fetch)\b[^|;&]*\|\s*(sudo\s+)?(python[0-9.]*|perl|ruby|node)\b",
    r"\b(ba|z|k|da)?sh\b.*(\$\(|<\(|`)\s*(curl|wget|fetch)\b",
    r"(\bsource|(^|[;&|]\s*)\.)\s+<\(\s*(curl|wget|fetch)\b",
    # recursive deletion of root-level paths
    r"\brm\s+(-[a-z]*\s+)*-[a-z]*r[a-z]*\s+(-[a-z]*\s+)*(--no-preserve-root\s+)?(/|/\*|/[^\s/]+/\*|/[^\s/]+/?|~/?|\$home/?)(\s|;|&|\||$)",
    r"\brm\s+(-[a-z]*\s+)*--recursive\s+(-[a-z]*\s+)*(/|/\*|/[^\s/]+/\*|/[^\s/]+/?|~/?)(\s|;|&|\||$)",
    r"--no-preserve-root",
    # writes to system configuration
    r">>?\s*/(etc|boot|usr|lib|bin|sbin)/",
    r"\btee\s+(-a\s+)?/(etc|boot|usr|lib|bin|sbin)/",
    r"\b(cp|mv|ln)\s+.*\s/(etc|boot)/",
    # network listeners
    r"\b(nc|ncat|netcat)\b[^;&|]*\s-[a-z]*l",
    r"\bsocat\b.*\b(tcp|udp)[46]?-listen\b",
    r"\bpython[0-9.]*\s+-m\s+(http\.server|simplehttpserver)\b",
    r"\bphp\s+-s\b",
    # dynamic code execution from a string
    r"(^|[;&|(`]\s*)eval(?=\s|$|[;&|)])",
    r"\bpython[0-9.]*\s+(-[a-z]*\s+)*-c\b",
    r"\bnode\s+(-[a-z]*\s+)*(-e|--eval|-p)\b",
    r"\b(perl|ruby)\s+(-[a-z]*\s+)*-e\b",
    r"\bbase64\s+(-d|--decode)\b.*\|\s*(ba|z)?sh\b",
    # destructive disk operations
    r"\bmkfs(\.[a-z0-9]+)?\b",
    r"\bdd\b.*\bof=/dev/",
    r":\(\)\s*\{\s*:\|:&\s*\};:",
    r"(^|[;&|(`]\s*)(sudo\s+)?(\S*/)?(shutdown|reboot|halt|poweroff)(?=\s|$|[;&|)])",
)


def build_policy(
    sandbox_root: str,
    workspace_id: str,
    *,
    extra_path_patterns: Iterable[str] = (),
    extra_command_patterns: Iterable[str] = (),
    include_defaults: bool = True,
) -> SandboxPolicy:
    """Create a SandboxPolicy from the defaults plus deployment-specific additions."""
    path_patterns = list(DEFAULT_PATH_DENYLIST) if include_defaults else []
    command_patterns = list(DEFAULT_COMMAND_DENYLIST) if include_defaults else []
    path_patterns.extend(p for p in extra_path_patterns if p not in path_patterns)
    command_patterns.extend(p for p in extra_command_patterns if p not in command_patterns)
    return SandboxPolicy(
        sandbox_root=sandbox_root,
        authorized_workspace_id=workspace_id,
        path_denylist_patterns=tuple(path_patterns),
        command_denylist_patterns=tuple(command_patterns),
    )


def project_sandbox_root(project_name: str, base: str = "/app/workspace") -> str:
    """Container working directory for a project.

    Directory names inside the workspace image use underscores, so
    "my-app" lives at /app/workspace/my_app.
    """
    normalized = project_name.strip().replace("-", "_").strip("/")
    if not normalized or "/" in normalized or normalized in (".", ".."):
        raise ValueError(f"Invalid project name: {project_name!r}")
    return f"{base.rstrip('/')}/{normalized}"
