"""Visa rule lookup table.

Rules are a flat list; a rule with neither visa_type nor nationality is the
country default, the others are variants. Lookup precedence is
visa type match > nationality override > country default.
"""
import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Callable, Iterable, TypeAlias

import dacite

from ..models import RESET_TYPES, VisaRule

RuleLookup: TypeAlias = Callable[[str, str | None, str | None], VisaRule | None]

DEFAULT_RULES_PATH = Path(__file__).resolve().parents[1] / 'data' / 'visa_rules.json'


def normalize_code(code: str | None) -> str | None:
    if not isinstance(code, str):
        return None
    code = code.strip().upper()
    return code or None


class RuleRepository:
    def __init__(self, rules: Iterable[VisaRule]):
        self._by_country: dict[str, list[VisaRule]] = defaultdict(list)
        for rule in rules:
            country = normalize_code(rule.country_code)
            if country is None:
                raise ValueError(f"Visa rule without country code: {rule}")
            self._by_country[country].append(rule)

    # ---------------- construction -----------------
    @staticmethod
    def _parse_rule(raw: dict) -> VisaRule:
        if raw.get('reset_type') not in RESET_TYPES:
            raise ValueError(f"Unknown reset type {raw.get('reset_type')!r} in rule {raw}")
        return dacite.from_dict(data_class=VisaRule, data=raw, config=dacite.Config(strict=True))

    @classmethod
    def from_dicts(cls, raw_rules: Iterable[dict]) -> "RuleRepository":
        return cls(cls._parse_rule(raw) for raw in raw_rules)

    @classmethod
    def from_json(cls, path: Path | str) -> "RuleRepository":
        with open(path, 'rt', encoding='utf-8') as f:
            loaded_data = json.load(f)
        raw_rules = loaded_data['rules'] if isinstance(loaded_data, dict) else loaded_data
        repository = cls.from_dicts(raw_rules)
        logging.debug('Loaded %d visa rules from %s', len(repository), path)
        return repository

    # ---------------- lookup -----------------
    def rule_for(self, country_code: str, visa_type: str | None = None,
                 nationality: str | None = None) -> VisaRule | None:
        candidates = self._by_country.get(normalize_code(country_code) or '', [])
        nationality = normalize_code(nationality)
        if visa_type:
            for rule in candidates:
                if rule.visa_type == visa_type and (
                        rule.nationality is None or normalize_code(rule.nationality) == nationality):
                    return rule
        if nationality:
            for rule in candidates:
                if rule.visa_type is None and normalize_code(rule.nationality) == nationality:
                    return rule
        for rule in candidates:
            if rule.visa_type is None and rule.nationality is None:
                return rule
        return None

    __call__ = rule_for

    def has_rules_for(self, country_code: str) -> bool:
        return bool(self._by_country.get(normalize_code(country_code) or ''))

    def available_destinations(self, nationality: str | None = None) -> list[str]:
        """Destinations with a rule applicable to the nationality (any rule when nationality is None)."""
        if nationality is None:
            return sorted(self._by_country)
        return sorted(country for country in self._by_country if self.rule_for(country, nationality=nationality))

    def visa_types_for(self, country_code: str) -> list[str]:
        return sorted({r.visa_type for r in self._by_country.get(normalize_code(country_code) or '', []) if r.visa_type})

    def __len__(self) -> int:
        return sum(len(rules) for rules in self._by_country.values())


def load_default_rules() -> RuleRepository:
    return RuleRepository.from_json(DEFAULT_RULES_PATH)


def as_rule_lookup(rules: "RuleRepository | Iterable[VisaRule] | RuleLookup") -> RuleLookup:
    """Accept a repository, a plain list of rules or any lookup callable."""
    if isinstance(rules, RuleRepository):
        return rules.rule_for
    if isinstance(rules, (list, tuple)):
        return RuleRepository(rules).rule_for
    if callable(rules):
        return rules
    raise TypeError(f"rules must be a RuleRepository, a list of VisaRule or a lookup callable, got {type(rules)}")
