"""
Public/protected classification of page paths.

Classification is a pure function over a path and a rule list so new public
routes are added through configuration, not by editing the gate.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence, Tuple

from app.vars import GatewaySettings

# A final segment shaped like "name.ext"
_FILE_EXTENSION = re.compile(r"^[^/]*[^/.]\.[A-Za-z][A-Za-z0-9]{0,9}$")


class PathClassification(str, Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PROTECTED_ADMIN = "protected-admin"


class RuleKind(str, Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    STATIC_ASSET = "static_asset"


@dataclass(frozen=True)
class PathRule:
    kind: RuleKind
    value: str = ""

    def matches(self, path: str) -> bool:
        if self.kind is RuleKind.EXACT:
            return path == self.value
        if self.kind is RuleKind.PREFIX:
            return path.startswith(self.value)
        return looks_like_static_asset(path)


def looks_like_static_asset(path: str) -> bool:
    """True when the last path segment carries a file extension."""
    if not path or path.endswith("/"):
        return False
    return bool(_FILE_EXTENSION.match(path.rsplit("/", 1)[-1]))


def build_rules(
    exact_paths: Iterable[str],
    prefixes: Iterable[str],
    static_assets: bool = True,
) -> Tuple[PathRule, ...]:
    exact_paths = tuple(exact_paths)
    rules = [PathRule(RuleKind.EXACT, p) for p in exact_paths]
    # The root page is always public
    if "/" not in exact_paths:
        rules.append(PathRule(RuleKind.EXACT, "/"))
    rules.extend(PathRule(RuleKind.PREFIX, p) for p in prefixes)
    if static_assets:
        rules.append(PathRule(RuleKind.STATIC_ASSET))
    return tuple(rules)


def rules_from_settings(settings: GatewaySettings) -> Tuple[PathRule, ...]:
    return build_rules(
        settings.public_paths,
        settings.public_path_prefixes,
        settings.public_static_assets,
    )


def is_public_path(path: str, rules: Sequence[PathRule]) -> bool:
    return any(rule.matches(path) for rule in rules)


def classify_path(
    path: str, rules: Sequence[PathRule], admin_prefix: str = "/admin/"
) -> PathClassification:
    if is_public_path(path, rules):
        return PathClassification.PUBLIC
    if admin_prefix and path.startswith(admin_prefix):
        return PathClassification.PROTECTED_ADMIN
    return PathClassification.PROTECTED
