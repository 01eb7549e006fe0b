"""
Configuration helpers for rule filter policies.
Supports environment variables and YAML policy files for easy deployment
configuration. The engine itself never reads configuration, callers build
an ExprOption from these helpers and pass it in.
"""

import os
from typing import Any, Dict, Optional

import yaml

from .filters.base import DEFAULT_MAX_DECODE_DEPTH, ExprOption, FieldType


def _env_int(name: str, default: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} should be an integer, got {raw!r}")


class Config:
    """
    Configuration helper that reads from environment variables.

    Environment variables:
        RULEFILTER_MAX_RULES_LIMIT: Max children of a combined rule
        RULEFILTER_MAX_RULES_DEPTH: Max nesting of combined rules (0 = unlimited)
        RULEFILTER_MAX_IN_LIMIT: Max elements of an `in` value
        RULEFILTER_MAX_NOT_IN_LIMIT: Max elements of a `not_in` value
        RULEFILTER_MAX_DECODE_DEPTH: Max nesting of decoded rule documents (default: 10)
    """

    @staticmethod
    def from_env() -> Dict[str, Any]:
        """
        Create ExprOption parameters from environment variables.

        Returns:
            Dict with keyword arguments for ExprOption

        Example:
            from rulefilter import Config, ExprOption

            option = ExprOption(rule_fields=fields, **Config.from_env())
        """
        return {
            "max_rules_limit": _env_int("RULEFILTER_MAX_RULES_LIMIT"),
            "max_rules_depth": _env_int("RULEFILTER_MAX_RULES_DEPTH"),
            "max_in_limit": _env_int("RULEFILTER_MAX_IN_LIMIT"),
            "max_not_in_limit": _env_int("RULEFILTER_MAX_NOT_IN_LIMIT"),
        }

    @staticmethod
    def decode_depth_from_env() -> int:
        """Maximum decode depth, RULEFILTER_MAX_DECODE_DEPTH or the default."""
        return _env_int("RULEFILTER_MAX_DECODE_DEPTH", DEFAULT_MAX_DECODE_DEPTH)

    @staticmethod
    def from_yaml(path: str) -> Dict[str, Any]:
        """
        Load ExprOption parameters from a YAML policy file.

        The file may hold the limit keys of ExprOption and a `rule_fields`
        mapping of field path to type name:

            max_rules_limit: 20
            max_rules_depth: 3
            rule_fields:
              name: string
              age: numeric
              tags: array
              tags.element: string

        Args:
            path: Path to the policy file

        Returns:
            Dict with keyword arguments for ExprOption
        """
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}

        if not isinstance(data, dict):
            raise ValueError(f"policy file {path} should hold a mapping")

        config: Dict[str, Any] = {}
        for key in ("max_rules_limit", "max_rules_depth", "max_in_limit", "max_not_in_limit"):
            if key in data:
                config[key] = int(data[key])

        rule_fields = {}
        for name, type_name in (data.get("rule_fields") or {}).items():
            typ = FieldType.from_string(type_name)
            if typ is None:
                raise ValueError(f"unknown type {type_name!r} of field {name}")
            rule_fields[str(name)] = typ

        if rule_fields:
            config["rule_fields"] = rule_fields

        return config

    @staticmethod
    def option(path: Optional[str] = None) -> ExprOption:
        """
        Build an ExprOption, environment values overridden by a policy file.

        Args:
            path: Optional YAML policy file
        """
        config = Config.from_env()
        if path:
            config.update(Config.from_yaml(path))
        return ExprOption(**config)
