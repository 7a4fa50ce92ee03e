"""Finding Categorizer -- group findings into risk-tiered categories."""

from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Iterable

from gatekeep.core.config import DEFAULT_TIERS, TierConfig
from gatekeep.core.models import Category, Finding

UNCATEGORIZED = "uncategorized"
LOWEST_TIER = 1
HIGHEST_TIER = 3


def _is_pattern(entry: str) -> bool:
    return any(ch in entry for ch in "*?[")


@dataclass
class TierTable:
    """Rule id -> risk tier lookup, plus optional semantic classes.

    Exact rule names win over patterns.  When a rule matches several tiers
    the highest one applies.  Unknown rules get ``default_tier``.
    """

    tiers: dict[int, list[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_TIERS.items()}
    )
    default_tier: int = HIGHEST_TIER
    classes: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: TierConfig) -> TierTable:
        return cls(
            tiers={k: list(v) for k, v in config.tiers.items()},
            default_tier=config.default_tier,
            classes={k: list(v) for k, v in config.classes.items()},
        )

    def tier_for(self, rule_id: str) -> int:
        if not rule_id:
            return self.default_tier
        exact = [t for t, rules in self.tiers.items() if rule_id in rules]
        if exact:
            return max(exact)
        matched = [
            t
            for t, rules in self.tiers.items()
            if any(_is_pattern(r) and fnmatchcase(rule_id, r) for r in rules)
        ]
        return max(matched) if matched else self.default_tier

    def class_for(self, rule_id: str) -> str | None:
        for name in sorted(self.classes):
            if rule_id in self.classes[name]:
                return name
        for name in sorted(self.classes):
            if any(_is_pattern(r) and fnmatchcase(rule_id, r) for r in self.classes[name]):
                return name
        return None

    def placement(self, finding: Finding) -> tuple[str, int, str]:
        """(category name, tier, deciding rule) for one finding.

        A finding carrying several rules goes where its riskiest rule
        points; the first listed rule wins among equals.
        """
        if not finding.rule_ids:
            return UNCATEGORIZED, self.default_tier, ""
        rule, tier = finding.rule_ids[0], self.tier_for(finding.rule_ids[0])
        for candidate in finding.rule_ids[1:]:
            candidate_tier = self.tier_for(candidate)
            if candidate_tier > tier:
                rule, tier = candidate, candidate_tier
        return self.class_for(rule) or rule, tier, rule

    def category_name(self, finding: Finding) -> str:
        return self.placement(finding)[0]


def _member_key(finding: Finding) -> tuple[str, int, str]:
    return (finding.file, finding.line, finding.finding_id)


def categorize(findings: Iterable[Finding], table: TierTable | None = None) -> list[Category]:
    """Group *findings* into categories ordered for remediation.

    Members are sorted by (file, line, id); categories by (tier, first
    member's file, first member's line, name).  The same input always
    yields the same output.
    """
    table = table or TierTable()
    members: dict[str, dict[str, Finding]] = {}
    tiers: dict[str, int] = {}
    rules: dict[str, set[str]] = {}

    for finding in findings:
        name, tier, rule = table.placement(finding)
        members.setdefault(name, {}).setdefault(finding.finding_id, finding)
        # A class mixing tiers is as risky as its riskiest rule.
        tiers[name] = max(tiers.get(name, LOWEST_TIER), tier)
        if rule:
            rules.setdefault(name, set()).add(rule)

    categories: list[tuple[tuple[int, str, int, str], Category]] = []
    for name, by_id in members.items():
        ordered = sorted(by_id.values(), key=_member_key)
        first = ordered[0]
        category = Category(
            name=name,
            risk_tier=tiers[name],
            finding_ids=tuple(f.finding_id for f in ordered),
            rule_ids=tuple(sorted(rules.get(name, ()))),
        )
        categories.append(((category.risk_tier, first.file, first.line, name), category))

    return [c for _, c in sorted(categories, key=lambda item: item[0])]
