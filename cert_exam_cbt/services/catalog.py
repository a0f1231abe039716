"""
services/catalog.py

자격증 코드 → (출제 템플릿, 채점 설정) 레지스트리.
JSON 파일에서 로드하며, 로드 이후에는 읽기 전용이다.
코드 변경 없이 자격증을 추가하려면 catalog.json에 항목을 추가한다.
"""

import json
import logging
import os
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from pydantic import ValidationError

from cert_exam_cbt.errors import ConfigurationError
from cert_exam_cbt.models.catalog_model import CertificationEntry, ExamTemplate, ScoringConfig

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data", "catalog.json"
)


class ExamCatalog:
    def __init__(self, entries: Mapping[str, CertificationEntry]):
        self._entries = MappingProxyType(dict(entries))

    def __contains__(self, certification: object) -> bool:
        return certification in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, certification: str) -> Optional[CertificationEntry]:
        return self._entries.get(certification)

    def template(self, certification: str) -> Optional[ExamTemplate]:
        entry = self._entries.get(certification)
        return entry.template if entry else None

    def scoring(self, certification: str) -> Optional[ScoringConfig]:
        entry = self._entries.get(certification)
        return entry.scoring if entry else None

    def require_scoring(self, certification: str) -> ScoringConfig:
        config = self.scoring(certification)
        if config is None:
            raise ConfigurationError(
                f"scoring configuration not found for certification: {certification}"
            )
        return config

    @classmethod
    def from_dict(cls, data: dict) -> "ExamCatalog":
        raw = data.get("certifications")
        if not isinstance(raw, dict):
            raise ConfigurationError("catalog must contain a 'certifications' object")
        entries = {}
        for code, body in raw.items():
            try:
                entries[code] = CertificationEntry.model_validate({"code": code, **body})
            except ValidationError as e:
                raise ConfigurationError(f"invalid catalog entry {code}: {e}") from e
        return cls(entries)


def load_catalog(path: Optional[str] = None) -> ExamCatalog:
    """카탈로그 JSON 파일을 읽어 ExamCatalog를 만든다."""
    path = path or DEFAULT_CATALOG_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"failed to load exam catalog from {path}: {e}") from e

    catalog = ExamCatalog.from_dict(data)
    logger.info(f"시험 카탈로그 로드 완료: {len(catalog)}개 자격증 ({path})")
    return catalog
