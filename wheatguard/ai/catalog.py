from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from .types import DiseaseRecord, Severity


@dataclass(frozen=True)
class DiseaseCatalog:
    """Read-only table of canned disease results used by the mock detector."""

    records: tuple[DiseaseRecord, ...]

    def __post_init__(self) -> None:
        if not self.records:
            raise ValueError("Disease catalog must contain at least one record")

    @classmethod
    def from_records(cls, records: Iterable[DiseaseRecord]) -> "DiseaseCatalog":
        return cls(records=tuple(records))

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[DiseaseRecord]:
        return iter(self.records)

    def __getitem__(self, index: int) -> DiseaseRecord:
        return self.records[index]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(record.name for record in self.records)


def default_catalog() -> DiseaseCatalog:
    return DiseaseCatalog.from_records(
        [
            DiseaseRecord(
                name="Leaf Rust",
                severity=Severity.MEDIUM,
                confidence=92.5,
                treatment=(
                    "Apply fungicides containing propiconazole or tebuconazole. "
                    "Remove infected leaves immediately."
                ),
                prevention=(
                    "Use resistant wheat varieties. Ensure proper spacing for air "
                    "circulation. Avoid excessive nitrogen fertilization."
                ),
            ),
            DiseaseRecord(
                name="Stem Rust",
                severity=Severity.HIGH,
                confidence=88.3,
                treatment=(
                    "Apply triazole-based fungicides immediately. Remove and destroy "
                    "infected plants to prevent spread."
                ),
                prevention=(
                    "Plant resistant varieties. Monitor fields regularly during warm, "
                    "humid weather. Implement crop rotation."
                ),
            ),
            DiseaseRecord(
                name="Powdery Mildew",
                severity=Severity.LOW,
                confidence=94.7,
                treatment=(
                    "Apply sulfur-based fungicides or systemic fungicides like "
                    "triadimefon. Improve air circulation."
                ),
                prevention=(
                    "Avoid excessive nitrogen fertilization. Ensure proper plant "
                    "spacing. Use resistant wheat varieties."
                ),
            ),
            DiseaseRecord(
                name="Septoria Leaf Blotch",
                severity=Severity.MEDIUM,
                confidence=89.1,
                treatment=(
                    "Apply fungicides containing azoxystrobin or propiconazole at "
                    "early symptoms. Remove crop debris."
                ),
                prevention=(
                    "Use certified disease-free seeds. Practice crop rotation. "
                    "Avoid overhead irrigation."
                ),
            ),
        ]
    )


__all__ = ["DiseaseCatalog", "default_catalog"]
