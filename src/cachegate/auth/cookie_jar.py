"""Persistent, deduplicated session cookie jar.

Cookies live in ``<config_dir>/cookies.json`` as an ordered JSON list of
``{"name": ..., "value": ...}`` objects. The jar is keyed by cookie name
(last write wins), which matches standard cookie semantics for a single
domain.

Three ways in, one per kind of input:

* :meth:`CookieJar.update` takes cookies :mod:`httpx` already parsed from
  a response.
* :meth:`CookieJar.merge` takes raw ``Set-Cookie`` values, one cookie each.
* :meth:`CookieJar.merge_header` takes a pasted ``Cookie`` request header.

Persistence is write-through: every mutation flushes the whole set with
:func:`~cachegate.config.atomic_write` before returning. A missing,
corrupt, or externally deleted file simply means "no session"; the jar
never raises because of its backing file.
"""

from __future__ import annotations

import json
import logging
from http.cookies import CookieError, SimpleCookie
from pathlib import Path
from typing import Iterable, Mapping, Optional

from pydantic import ValidationError

from cachegate.config import atomic_write
from cachegate.models import CookieRecord

logger = logging.getLogger(__name__)


def parse_set_cookie(raw: str) -> Optional[CookieRecord]:
    """Parse one ``Set-Cookie`` value (or a bare ``name=value`` pair).

    Everything after the first ``;`` is an attribute and is ignored,
    whatever its name. Returns ``None`` for values without a name.
    """
    pair = raw.split(";", 1)[0].strip()
    if "=" not in pair:
        return None
    name, value = pair.split("=", 1)
    name = name.strip()
    if not name:
        return None
    return CookieRecord(name=name, value=value.strip())


def parse_cookie_header(header: str) -> list[CookieRecord]:
    """Split a ``Cookie`` request header (``a=1; b=2``) into records."""
    cookie: SimpleCookie[str] = SimpleCookie()
    try:
        cookie.load(header)
    except CookieError as exc:
        logger.debug("Unparsable cookie header: %s", exc)
        return []
    return [CookieRecord(name=morsel.key, value=morsel.value) for morsel in cookie.values()]


class CookieJar:
    """Session cookies persisted across process runs.

    The jar exclusively owns both the in-memory set and the file mirroring
    it; mutate it only through its ``update``/``merge``/``clear`` methods.

    Args:
        path: Location of the cookie file. Loaded on construction.

    Example::

        jar = CookieJar(Path("~/.config/cachegate/cookies.json").expanduser())
        jar.merge(["JSESSIONID=abc; Path=/; HttpOnly"])
        jar.as_header_value()   # -> "JSESSIONID=abc"
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._cookies: dict[str, str] = {}
        self.load()

    @property
    def path(self) -> Path:
        """The filesystem path of the cookie file."""
        return self._path

    def load(self) -> None:
        """Replace the in-memory set with the file's contents.

        A missing or unparsable file leaves the jar empty.
        """
        self._cookies = {}
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Cannot read cookie file %s: %s", self._path, exc)
            return

        try:
            records = _decode(json.loads(raw))
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError, TypeError) as exc:
            logger.warning("Ignoring corrupt cookie file %s: %s", self._path, exc)
            return
        for record in records:
            self._cookies[record.name] = record.value

    def update(self, cookies: Mapping[str, str]) -> None:
        """Store already-parsed ``name -> value`` pairs and persist the jar."""
        if not cookies:
            return
        self._cookies.update(cookies)
        self._persist()

    def merge(self, raw_cookies: Optional[Iterable[str]]) -> None:
        """Fold ``Set-Cookie`` values into the jar and persist it.

        Each string holds one cookie; its attributes are dropped. New
        values overwrite old ones with the same name. An empty or missing
        input is a no-op.
        """
        if not raw_cookies:
            return
        records = [r for r in map(parse_set_cookie, raw_cookies) if r is not None]
        self.update({record.name: record.value for record in records})

    def merge_header(self, header: str) -> int:
        """Fold every pair of a ``Cookie`` header into the jar.

        Returns the number of cookies taken from *header*.
        """
        records = parse_cookie_header(header)
        self.update({record.name: record.value for record in records})
        return len(records)

    def clear(self) -> None:
        """Empty the jar and persist the empty state."""
        self._cookies = {}
        self._persist()

    def as_header_value(self) -> str:
        """Serialise the jar as a ``Cookie`` header value (``a=1; b=2``)."""
        return "; ".join(f"{name}={value}" for name, value in self._cookies.items())

    def as_dict(self) -> dict[str, str]:
        return dict(self._cookies)

    def records(self) -> list[CookieRecord]:
        return [CookieRecord(name=n, value=v) for n, v in self._cookies.items()]

    def __len__(self) -> int:
        return len(self._cookies)

    def __contains__(self, name: object) -> bool:
        return name in self._cookies

    def _persist(self) -> None:
        data = [record.model_dump() for record in self.records()]
        try:
            atomic_write(self._path, json.dumps(data, indent=2) + "\n")
        except OSError as exc:
            logger.warning("Cannot persist cookies to %s: %s", self._path, exc)


def _decode(data: object) -> list[CookieRecord]:
    """Accept the list-of-objects, list-of-strings, and ``{"cookies": [...]}`` forms."""
    if isinstance(data, dict):
        data = data.get("cookies", [])
    if not isinstance(data, list):
        raise TypeError(f"expected a list of cookies, got {type(data).__name__}")
    records: list[CookieRecord] = []
    for item in data:
        if isinstance(item, str):
            record = parse_set_cookie(item)
            if record is not None:
                records.append(record)
        else:
            records.append(CookieRecord.model_validate(item))
    return records
