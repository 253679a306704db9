"""
Session configuration for the peek evaluator and REPL.
"""
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

ZERO_ARG_POLICIES = ("describe", "invoke")
OUTPUT_FORMATS = ("json", "yaml")

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"", "0", "false", "no", "off"}


def _parse_bool(key: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    raise ValueError(f"{key}: expected a boolean, got {raw!r}")


@dataclass
class Config:
    """Options for one session.

    tag:              field tag key used for display names (e.g. "json"); None uses field names
    zero_arg_policy:  what a statement evaluating to a zero-argument function does:
                      "describe" returns the function, "invoke" calls it
    output:           REPL rendering format, "json" or "yaml"
    indent:           indentation width for rendered output
    debug:            print [DBG] trace lines to stderr
    """
    tag: Optional[str] = None
    zero_arg_policy: str = "describe"
    output: str = "json"
    indent: int = 2
    debug: bool = False

    def __post_init__(self):
        if self.tag is not None and not isinstance(self.tag, str):
            raise ValueError(f"tag: expected a string, got {self.tag!r}")
        if self.tag == "":
            self.tag = None
        if self.zero_arg_policy not in ZERO_ARG_POLICIES:
            raise ValueError(
                f"zero_arg_policy: expected one of {', '.join(ZERO_ARG_POLICIES)}, got {self.zero_arg_policy!r}")
        if self.output not in OUTPUT_FORMATS:
            raise ValueError(f"output: expected one of {', '.join(OUTPUT_FORMATS)}, got {self.output!r}")
        if isinstance(self.indent, bool) or not isinstance(self.indent, int) or self.indent < 0:
            raise ValueError(f"indent: expected a non-negative integer, got {self.indent!r}")
        self.debug = _parse_bool("debug", self.debug)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"unknown configuration keys: {', '.join(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_file(cls, path) -> "Config":
        """Loads a YAML mapping of options. An empty file gives the defaults."""
        text = Path(path).read_text(encoding="utf-8")
        data = yaml.safe_load(text)
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping of options")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **defaults) -> "Config":
        """Reads PEEK_TAG, PEEK_ZERO_ARG_POLICY, PEEK_OUTPUT, PEEK_INDENT and PEEK_DEBUG.

        Keyword arguments supply defaults for options the environment leaves unset.
        """
        env = os.environ if environ is None else environ
        values: dict = {}
        if "PEEK_TAG" in env:
            values["tag"] = env["PEEK_TAG"] or None
        if "PEEK_ZERO_ARG_POLICY" in env:
            values["zero_arg_policy"] = env["PEEK_ZERO_ARG_POLICY"].strip().lower()
        if "PEEK_OUTPUT" in env:
            values["output"] = env["PEEK_OUTPUT"].strip().lower()
        if "PEEK_INDENT" in env:
            try:
                values["indent"] = int(env["PEEK_INDENT"])
            except ValueError as e:
                raise ValueError(f"PEEK_INDENT: expected an integer, got {env['PEEK_INDENT']!r}") from e
        if "PEEK_DEBUG" in env:
            values["debug"] = _parse_bool("PEEK_DEBUG", env["PEEK_DEBUG"])
        for key, value in defaults.items():
            values.setdefault(key, value)
        return cls.from_dict(values)

