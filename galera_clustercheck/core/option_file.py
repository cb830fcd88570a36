"""MySQL option file (my.cnf) reader.

Only ``user`` and ``password`` are taken from the file; every other option,
and every ``[section]`` header, is accepted and ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from galera_clustercheck.core.errors import ConfigError

_COMMENT_PREFIXES = ("#", ";")


@dataclass(frozen=True)
class Credentials:
    user: str = ""
    password: str = ""


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_option_file(text: str, path: Optional[str] = None) -> Dict[str, str]:
    """Parse ``key = value`` lines into a flat mapping.

    Later occurrences of a key win. A bare ``key`` is recorded with an empty
    value, as mysqld does for boolean options.
    """
    options: Dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith(_COMMENT_PREFIXES):
            continue
        if line.startswith("["):
            if not line.endswith("]"):
                raise ConfigError("unterminated section header", path=path, line=lineno)
            continue
        key, sep, value = line.partition("=")
        key = key.strip().lower()
        if not key:
            raise ConfigError("option without a name", path=path, line=lineno)
        options[key] = _unquote(value.strip()) if sep else ""
    return options


def read_credentials(path: Union[str, Path]) -> Credentials:
    """Read user/password from the option file at ``path``."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"error reading config: {exc}", path=str(path)) from exc
    options = parse_option_file(text, path=str(path))
    return Credentials(user=options.get("user", ""), password=options.get("password", ""))


__all__ = ["Credentials", "parse_option_file", "read_credentials"]
