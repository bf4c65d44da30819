"""
Entry -> inlined files dependency graph

Each entry maps to the ordered set of every file its last successful
resolution inlined, transitive includes already flattened in. Answering
"which entries inlined X" is therefore a single pass over the records,
never a graph walk.
"""

from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Set


class DependencyGraph:
    """
    Mapping of entry path -> insertion-ordered set of dependency paths

    Records are replaced wholesale by record(); a resolution that fails
    never reaches record(), so earlier records survive untouched.
    """

    def __init__(self) -> None:
        # dict-of-dicts: inner dict keys act as an ordered set
        self._records: Dict[Path, Dict[Path, None]] = {}

    def record(self, entry: Path, deps: Iterable[Path]) -> None:
        """Replace the dependency set recorded for entry"""
        self._records[entry] = {dep: None for dep in deps if dep != entry}

    def dependencies(self, entry: Path) -> List[Path]:
        """Recorded dependencies of entry, in first-inlined order"""
        return list(self._records.get(entry, {}))

    def dependents(self, changed: Path) -> Set[Path]:
        """Every entry whose recorded set contains changed"""
        return {entry for entry, deps in self._records.items() if changed in deps}

    def remove(self, entry: Path) -> bool:
        """Forget entry; True if it had a record"""
        return self._records.pop(entry, None) is not None

    def entries(self) -> List[Path]:
        return list(self._records)

    def __contains__(self, entry: object) -> bool:
        return entry in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Path]:
        return iter(list(self._records))

    def __repr__(self) -> str:
        return f"DependencyGraph(entries={len(self._records)})"
