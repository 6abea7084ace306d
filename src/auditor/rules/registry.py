# src/auditor/rules/registry.py
import importlib
import logging
import pkgutil
from typing import Dict, List

from auditor.rules.core import RuleFunc

logger = logging.getLogger(__name__)

CHECKS_PACKAGE = "auditor.rules.checks"


class RuleRegistry:
    """
    Central registry for audit rules.

    Dynamically discovers every module in the 'auditor.rules.checks' package and
    registers the functions listed in its module-level `RULES`.
    """

    _rules: List[RuleFunc] = []
    _rule_ids: Dict[str, RuleFunc] = {}
    _loaded: bool = False

    @classmethod
    def discover(cls) -> None:
        """
        Imports all check modules (in name order) and registers their rules.
        Safe to call repeatedly; discovery happens once per process.
        """
        if cls._loaded:
            return

        package = importlib.import_module(CHECKS_PACKAGE)
        for _, name, _ in sorted(pkgutil.iter_modules(package.__path__), key=lambda m: m.name):
            full_name = f"{CHECKS_PACKAGE}.{name}"
            try:
                module = importlib.import_module(full_name)
            except Exception as e:
                logger.error(f"Error loading rule module {full_name}: {e}", exc_info=True)
                continue

            for rule in getattr(module, "RULES", []):
                cls.register(rule)
            logger.debug(f"Rule module loaded: {name}")

        cls._loaded = True

    @classmethod
    def register(cls, rule: RuleFunc) -> None:
        rule_ids = getattr(rule, "rule_ids", None)
        if not rule_ids:
            raise ValueError(f"Rule {rule.__name__} does not declare rule_ids; use @audit_rule")
        if rule in cls._rules:
            return
        for rule_id in rule_ids:
            owner = cls._rule_ids.get(rule_id)
            if owner is not None and owner is not rule:
                raise ValueError(f"Rule ID {rule_id} is declared by both {owner.__name__} and {rule.__name__}")
            cls._rule_ids[rule_id] = rule
        cls._rules.append(rule)

    @classmethod
    def get_all_rules(cls) -> List[RuleFunc]:
        cls.discover()
        return list(cls._rules)

    @classmethod
    def get_all_rule_ids(cls) -> List[str]:
        cls.discover()
        return sorted(cls._rule_ids)

    @classmethod
    def describe(cls) -> Dict[str, str]:
        """rule_id -> first docstring line of the function that emits it."""
        cls.discover()
        out = {}
        for rule_id in sorted(cls._rule_ids):
            doc = (cls._rule_ids[rule_id].__doc__ or "").strip()
            out[rule_id] = doc.splitlines()[0] if doc else ""
        return out
