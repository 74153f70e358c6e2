"""Version selection for Cargo requirements using semantic versioning.

The default policy picks the *earliest* satisfying version. Downstream package
definitions are expected to be reproducible against that choice, so it must
not be changed to latest-wins.
"""

import re
from typing import List, Optional, Sequence, Tuple

import semantic_version

from errors import VersionNotFoundError
from .models import SelectionPolicy, Version

_OPERATOR_RE = re.compile(r'^(<=|>=|==|=|<|>|\^|~)')
_WILDCARDS = ('*', 'x', 'X')


def _bounds(op: str, numbers: List[int], prerelease: str) -> List[str]:
    """Comparators with full versions for one Cargo comparator.

    ``numbers`` holds the 1 to 3 version components that were given.
    """
    major = numbers[0]
    minor = numbers[1] if len(numbers) > 1 else 0
    patch = numbers[2] if len(numbers) > 2 else 0
    lower = f"{major}.{minor}.{patch}{prerelease}"
    given = len(numbers)

    if op == '^':
        if major > 0 or given == 1:
            upper = f"{major + 1}.0.0"
        elif minor > 0 or given == 2:
            upper = f"0.{minor + 1}.0"
        else:
            upper = f"0.0.{patch + 1}"
        return [f">={lower}", f"<{upper}"]
    if op == '~':
        upper = f"{major + 1}.0.0" if given == 1 else f"{major}.{minor + 1}.0"
        return [f">={lower}", f"<{upper}"]
    if op == '=':
        if given == 3:
            return [f"=={lower}"]
        upper = f"{major + 1}.0.0" if given == 1 else f"{major}.{minor + 1}.0"
        return [f">={lower}", f"<{upper}"]
    if op == '>' and given < 3:
        bumped = f"{major + 1}.0.0" if given == 1 else f"{major}.{minor + 1}.0"
        return [f">={bumped}"]
    if op == '<=' and given < 3:
        bumped = f"{major + 1}.0.0" if given == 1 else f"{major}.{minor + 1}.0"
        return [f"<{bumped}"]
    return [f"{op}{lower}"]


def _normalize_clause(clause: str) -> List[str]:
    """Translate one Cargo comparator into semantic_version SimpleSpec comparators.

    Returns an empty list for a bare wildcard, which matches every version.
    """
    m = _OPERATOR_RE.match(clause)
    op = m.group(1) if m else ''
    body = clause[len(op):]
    if not body:
        raise ValueError(f"comparator '{clause}' has no version")
    if op == '==':
        op = '='

    # Build metadata may itself contain '-', so it goes before the pre-release split.
    body = body.split('+', 1)[0]
    core, sep, prerelease = body.partition('-')
    parts = core.split('.')
    if len(parts) > 3:
        raise ValueError(f"comparator '{clause}' has too many components")

    numbers: List[int] = []
    for part in parts:
        if part in _WILDCARDS:
            break
        if not part.isdigit():
            raise ValueError(f"comparator '{clause}' is not a version")
        numbers.append(int(part))

    if len(numbers) < len(parts):
        # Wildcards only make sense as trailing components of a plain or '=' comparator.
        if op not in ('', '=') or any(p not in _WILDCARDS for p in parts[len(numbers):]):
            raise ValueError(f"comparator '{clause}' has a misplaced wildcard")
        if not numbers:
            return []
        return _bounds('=', numbers, '')

    # Cargo treats a bare version as a caret requirement.
    return _bounds(op or '^', numbers, sep + prerelease)


def to_simple_spec(requirement: str) -> Optional[semantic_version.SimpleSpec]:
    """Parse a Cargo requirement string.

    Returns None when the requirement accepts any version.

    Raises:
        ValueError: If the requirement is malformed.
    """
    clauses = []
    for raw in requirement.split(','):
        clause = raw.replace(' ', '')
        if not clause:
            raise ValueError(f"empty comparator in requirement '{requirement}'")
        clauses.extend(_normalize_clause(clause))
    if not clauses:
        return None
    return semantic_version.SimpleSpec(','.join(clauses))


def sort_versions(available: Sequence[Version]) -> List[Tuple[semantic_version.Version, Version]]:
    """Return (parsed, original) pairs in ascending order; unparseable entries are skipped."""
    parsed = []
    for v in available:
        try:
            parsed.append((semantic_version.Version(v), v))
        except ValueError:
            continue  # Skip invalid versions
    parsed.sort(key=lambda pair: pair[0])
    return parsed


def pick_exact(name: str, version: Version, available: Sequence[Version]) -> Version:
    """Check that an exact version is listed."""
    if version in available:
        return version
    raise VersionNotFoundError(name, f"={version}")


def select_version(
    requirement: Optional[str],
    available: Sequence[Version],
    name: str = "",
    policy: SelectionPolicy = SelectionPolicy.EARLIEST,
) -> Version:
    """Pick one version out of ``available`` for ``requirement``.

    Args:
        requirement: Cargo requirement string, or None when nothing narrows the
            choice (pre-releases are then eligible too).
        available: Versions published for the crate.
        name: Crate name, used for diagnostics.
        policy: Which satisfying version to return.

    Raises:
        VersionNotFoundError: If nothing satisfies the requirement or the
            requirement cannot be parsed.
    """
    candidates = sort_versions(available)
    if not candidates:
        raise VersionNotFoundError(name, requirement)

    if requirement is None:
        matching = candidates
    else:
        try:
            spec = to_simple_spec(requirement)
        except ValueError as exc:
            raise VersionNotFoundError(name, requirement) from exc
        allow_prerelease = any('-' in clause.split('+', 1)[0] for clause in requirement.split(','))
        matching = []
        for parsed, original in candidates:
            if parsed.prerelease and not allow_prerelease:
                continue
            if spec is None or spec.match(parsed):
                matching.append((parsed, original))

    if not matching:
        raise VersionNotFoundError(name, requirement)

    if policy == SelectionPolicy.LATEST:
        return matching[-1][1]
    return matching[0][1]


class VersionSelector:
    """Named selection policy bound to the resolver."""

    def __init__(self, policy: SelectionPolicy = SelectionPolicy.EARLIEST):
        self.policy = policy

    def select(self, requirement: Optional[str], available: Sequence[Version], name: str = "") -> Version:
        return select_version(requirement, available, name=name, policy=self.policy)
