"""
Signing-configuration store.

Keyed lookup signing-config name → credentials.  Mirrors what the
Android Gradle plugin sees at configuration time: an implicit ``debug``
config backed by the SDK debug keystore, plus every config declared in
``signingConfigs { }``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional

logger = logging.getLogger(__name__)

DEBUG_KEYSTORE = "~/.android/debug.keystore"
DEBUG_KEY_ALIAS = "androiddebugkey"
DEBUG_PASSWORD = "android"

# key.properties field → SigningConfig attribute
KEY_PROPERTIES_FIELDS = {
    "storeFile": "store_file",
    "storePassword": "store_password",
    "keyAlias": "key_alias",
    "keyPassword": "key_password",
}


@dataclass(frozen=True)
class SigningConfig:
    name: str
    store_file: Optional[str] = None
    store_password: Optional[str] = None
    key_alias: Optional[str] = None
    key_password: Optional[str] = None

    @classmethod
    def debug(cls) -> SigningConfig:
        return cls(
            name="debug",
            store_file=DEBUG_KEYSTORE,
            store_password=DEBUG_PASSWORD,
            key_alias=DEBUG_KEY_ALIAS,
            key_password=DEBUG_PASSWORD,
        )

    @property
    def missing_fields(self) -> List[str]:
        return [
            key for key, attr in KEY_PROPERTIES_FIELDS.items()
            if not getattr(self, attr)
        ]

    def filled_from(self, properties: Mapping[str, str]) -> SigningConfig:
        """Fill unset credentials from a ``key.properties`` mapping."""
        updates = {
            attr: properties[key]
            for key, attr in KEY_PROPERTIES_FIELDS.items()
            if getattr(self, attr) is None and properties.get(key)
        }
        return replace(self, **updates) if updates else self


class SigningConfigStore:
    """Ordered, read-only after construction."""

    def __init__(self, configs: Optional[Mapping[str, SigningConfig]] = None, *, implicit_debug: bool = True):
        self._configs: Dict[str, SigningConfig] = {}
        if implicit_debug:
            self._configs["debug"] = SigningConfig.debug()
        for name, config in (configs or {}).items():
            if name == "debug" and implicit_debug:
                # explicit `debug { }` blocks amend the implicit config
                base = self._configs["debug"]
                config = replace(
                    base,
                    **{k: v for k, v in vars(config).items() if v is not None and k != "name"},
                )
            self._configs[name] = config

    def __contains__(self, name: object) -> bool:
        return name in self._configs

    def __iter__(self) -> Iterator[str]:
        return iter(self._configs)

    def __len__(self) -> int:
        return len(self._configs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SigningConfigStore):
            return NotImplemented
        return self._configs == other._configs

    def __hash__(self) -> int:
        return hash(tuple(self._configs.items()))

    def __repr__(self) -> str:
        return f"SigningConfigStore({list(self._configs)!r})"

    def get(self, name: str) -> Optional[SigningConfig]:
        return self._configs.get(name)

    def names(self) -> List[str]:
        return list(self._configs)


def read_properties(path: Path) -> Dict[str, str]:
    """
    Read a Java ``.properties`` file (``local.properties``, ``key.properties``).

    Supports ``=`` and ``:`` separators, ``#``/``!`` comments and
    backslash escapes as written by the Android tooling on Windows
    (``sdk.dir=C\\:\\\\Users\\\\...``).  Line continuations are not
    supported.
    """
    props: Dict[str, str] = {}
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line[0] in "#!":
            continue
        sep = min(
            (i for i in (line.find("="), line.find(":")) if i >= 0),
            default=-1,
        )
        if sep < 0:
            key, value = line, ""
        else:
            key, value = line[:sep].strip(), line[sep + 1:].strip()
        props[_unescape(key)] = _unescape(value)
    logger.debug("Read %d properties from %s", len(props), path)
    return props


def _unescape(text: str) -> str:
    out: List[str] = []
    chars = iter(text)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append({"n": "\n", "t": "\t"}.get(nxt, nxt))
        else:
            out.append(ch)
    return "".join(out)
