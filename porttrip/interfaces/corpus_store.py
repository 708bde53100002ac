# interfaces/corpus_store.py
"""
Port Knowledge Base
Loads port snippets from JSON into immutable, typed records and keeps
an alias index of port names for port-hint detection.

The store is built once at startup and shared read-only across requests.
`reload()` swaps in a fresh snapshot without a restart.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from loguru import logger


@dataclass(frozen=True)
class PortSnippet:
    """One knowledge base entry"""
    id: int
    port: str
    category: str
    snippet_text: str
    aliases: Tuple[str, ...] = ()
    region: str = ""
    search_text: str = field(default="", compare=False)

    def __post_init__(self):
        # search_text is always derived, never trusted from input
        object.__setattr__(
            self,
            "search_text",
            " ".join([self.port, self.category, self.snippet_text]),
        )


def _clean(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _first_present(row: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value:
            return value
    return ""


def load_corpus(*sources: Any) -> List[PortSnippet]:
    """
    Build the corpus from one or more raw JSON arrays

    Args:
        sources: Parsed JSON values; anything that is not a list is ignored

    Returns:
        List[PortSnippet]: Records with sequential ids in final order

    Example:
        >>> rows = load_corpus([{"port": "Barcelona", "type": "transport", "text": "Taxi ~€12"}])
        >>> rows[0].search_text
        'Barcelona transport Taxi ~€12'
    """
    raw_rows: List[Any] = []
    for source in sources:
        if isinstance(source, list):
            raw_rows.extend(source)

    records = []
    for row in raw_rows:
        if not row:
            continue
        if not isinstance(row, dict):
            logger.debug(f"Skipping non-object corpus entry: {row!r:.60}")
            continue

        aliases = row.get("aliases")
        if not isinstance(aliases, list):
            aliases = []

        records.append(PortSnippet(
            id=len(records),
            port=_clean(row.get("port")),
            category=_clean(_first_present(row, "category", "type")),
            snippet_text=_clean(_first_present(row, "snippet", "text", "note")),
            aliases=tuple(_clean(a) for a in aliases if _clean(a)),
            region=_clean(row.get("region")),
        ))

    return records


def load_corpus_files(paths: Iterable[str]) -> List[PortSnippet]:
    """
    Read JSON arrays from disk and build the corpus

    Missing or unparsable files are logged and skipped.
    """
    sources = []
    for path in paths:
        file_path = Path(path)
        try:
            with file_path.open(encoding="utf-8") as fh:
                sources.append(json.load(fh))
            logger.debug(f"Read corpus source {file_path}")
        except FileNotFoundError:
            logger.warning(f"Corpus source not found: {file_path}")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read corpus source {file_path}: {e}")

    return load_corpus(*sources)


class AliasIndex:
    """
    Lower-cased port names (and listed aliases) for substring matching
    against user text. Longer keys are tried first so that
    "rome civitavecchia" wins over "rome".
    """

    def __init__(self, records: Sequence[PortSnippet]):
        keys: Dict[str, None] = {}
        for record in records:
            for name in (record.port, *record.aliases):
                key = name.lower().strip()
                if key:
                    keys[key] = None
        self._keys: Tuple[str, ...] = tuple(keys)
        self._by_length: Tuple[str, ...] = tuple(sorted(self._keys, key=len, reverse=True))

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def keys(self) -> Tuple[str, ...]:
        return self._keys

    def find(self, text: str) -> str:
        """Return the first alias contained in text, or ''"""
        haystack = (text or "").lower()
        if not haystack:
            return ""
        for key in self._by_length:
            if key in haystack:
                return key
        return ""


@dataclass(frozen=True)
class CorpusSnapshot:
    records: Tuple[PortSnippet, ...]
    aliases: AliasIndex


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class CorpusStore:
    """
    Holds the current corpus snapshot.

    Usage:
        store = CorpusStore.from_paths(["data/porttrip.json"])
        store.records      # tuple of PortSnippet
        store.infer_port_hint("Taxi in Barcelona?")  # 'barcelona'
    """

    def __init__(self, records: Sequence[PortSnippet] = (), paths: Optional[Sequence[str]] = None):
        self._paths = list(paths or [])
        self._snapshot = self._build(records)

    @classmethod
    def from_paths(cls, paths: Sequence[str]) -> "CorpusStore":
        store = cls(load_corpus_files(paths), paths=paths)
        logger.info(
            f"Corpus loaded: {len(store.records)} snippets, "
            f"{len(store.aliases)} port aliases from {len(paths)} source(s)"
        )
        return store

    @staticmethod
    def _build(records: Sequence[PortSnippet]) -> CorpusSnapshot:
        records = tuple(records)
        return CorpusSnapshot(records=records, aliases=AliasIndex(records))

    @property
    def records(self) -> Tuple[PortSnippet, ...]:
        return self._snapshot.records

    @property
    def aliases(self) -> AliasIndex:
        return self._snapshot.aliases

    def snapshot(self) -> CorpusSnapshot:
        """Consistent view for a single request"""
        return self._snapshot

    def reload(self) -> int:
        """
        Re-read the configured JSON sources and swap the snapshot.

        Returns:
            int: Number of records now loaded
        """
        if not self._paths:
            logger.warning("Corpus reload requested but no sources are configured")
            return len(self.records)

        self._snapshot = self._build(load_corpus_files(self._paths))
        logger.info(f"Corpus reloaded: {len(self.records)} snippets")
        return len(self.records)

    def infer_port_hint(self, text: str) -> str:
        return self._snapshot.aliases.find(text)

    def list_ports(self, query: str = "", limit: int = 50) -> List[Dict[str, str]]:
        """
        Unique ports in corpus order as {id, name, region}

        Args:
            query: Case-insensitive substring filter on the port name
            limit: Result cap, clamped to 1..200
        """
        limit = max(1, min(200, int(limit)))
        needle = (query or "").lower()

        seen: Dict[str, Dict[str, str]] = {}
        for record in self.records:
            if not record.port:
                continue
            slug = _slugify(record.port)
            if slug in seen:
                if not seen[slug]["region"] and record.region:
                    seen[slug]["region"] = record.region
                continue
            seen[slug] = {"id": slug, "name": record.port, "region": record.region}

        ports = [p for p in seen.values() if needle in p["name"].lower()]
        return ports[:limit]
