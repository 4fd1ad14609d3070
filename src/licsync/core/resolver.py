"""Identifier resolution.

Turns a mixed list of literal identifiers and CSV/TSV paths into a
deduplicated list of lower-cased identifiers. A bad or empty source is
reported and skipped; it never aborts resolution of the others.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from licsync.core.logging_utils import get_logger
from licsync.core.models import normalize_header

log = get_logger(__name__)

TABULAR_SUFFIXES = {".csv", ".tsv", ".txt"}
DELIMITERS = (",", ";", "\t", "|")

# Header names meaning "identifier" or "email", in priority order
IDENTIFIER_HEADERS = (
    "userprincipalname",
    "upn",
    "email",
    "emailaddress",
    "mail",
    "identifier",
    "username",
    "user",
    "login",
    "id",
)


class SourceUnreadable(Exception):
    """A tabular source is missing or cannot be parsed."""
    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


@dataclass
class Resolution:
    identifiers: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    sources_read: int = 0


def is_tabular_token(token: str) -> bool:
    p = Path(token)
    return p.suffix.lower() in TABULAR_SUFFIXES or p.is_file()


def _detect_delimiter(path: Path) -> str:
    with path.open("r", encoding="utf-8-sig", errors="replace") as fh:
        first = fh.readline()
    if path.suffix.lower() == ".tsv":
        return "\t"
    counts = {d: first.count(d) for d in DELIMITERS}
    best = max(counts, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def read_tabular(path: str | Path) -> pd.DataFrame:
    """Read a delimited file with a header row as strings.

    Returns an empty DataFrame for an empty file.

    Raises:
        SourceUnreadable: If the file is missing or cannot be parsed.
    """
    p = Path(path)
    if not p.is_file():
        raise SourceUnreadable(str(p), "file not found")
    try:
        sep = _detect_delimiter(p)
        return pd.read_csv(
            p,
            sep=sep,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as exc:
        raise SourceUnreadable(str(p), str(exc)) from exc


def pick_identifier_column(columns: Iterable[str]) -> Optional[str]:
    """Return the column whose header names an identifier, by candidate priority."""
    by_norm: Dict[str, str] = {}
    for c in columns:
        by_norm.setdefault(normalize_header(c), c)
    for cand in IDENTIFIER_HEADERS:
        if cand in by_norm:
            return by_norm[cand]
    return None


def _values_from_source(path: str, res: Resolution) -> List[str]:
    df = read_tabular(path)
    res.sources_read += 1

    values: List[str] = []
    if df.shape[1] == 1:
        col = df.columns[0]
        values = list(df[col])
        # headerless single-column files: the first address landed in the header
        if "@" in str(col):
            values.insert(0, str(col))

    if not values and (df.shape[1] == 0 or df.empty):
        msg = f"{path}: source is empty, skipped"
        log.warning(msg)
        res.warnings.append(msg)
        return []

    if df.shape[1] == 1:
        return values

    col = pick_identifier_column(df.columns)
    if col is None:
        col = df.columns[0]
        msg = f"{path}: no identifier column found, using first column '{col}'"
        log.warning(msg)
        res.warnings.append(msg)
    else:
        log.debug("%s: using column '%s'", path, col)
    return list(df[col])


def resolve_identifiers(tokens: Iterable[str]) -> Resolution:
    """Resolve raw tokens (identifiers or tabular paths) into unique identifiers."""
    res = Resolution()
    collected: List[str] = []
    tokens = list(tokens or ())

    for raw in tokens:
        token = "" if raw is None else str(raw).strip()
        if not token:
            continue
        if is_tabular_token(token):
            try:
                collected.extend(_values_from_source(token, res))
            except SourceUnreadable as exc:
                msg = f"{exc.path}: unreadable source skipped ({exc.reason})"
                log.error(msg)
                res.warnings.append(msg)
            continue
        collected.append(token)

    seen = set()
    for value in collected:
        ident = str(value or "").strip().lower()
        if ident and ident not in seen:
            seen.add(ident)
            res.identifiers.append(ident)

    log.info("resolved %d identifier(s) from %d token(s)", len(res.identifiers), len(tokens))
    return res
