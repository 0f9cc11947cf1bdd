"""Shared pytest fixtures for the sciscan test suite."""

import copy
import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from sciscan.models import Attachment, Config


# ---------------------------------------------------------------------------
# Logger isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_sciscan_logger():
    """Clear the sciscan logger between tests.

    Tests that call ``main()`` trigger ``setup_logging()``, which attaches
    handlers and sets ``propagate=False``.  Without this fixture the state
    leaks into subsequent tests and breaks ``caplog`` capture.
    """
    logger = logging.getLogger("sciscan")

    def _clear():
        for h in logger.handlers[:]:
            h.close()
            logger.removeHandler(h)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    _clear()
    yield
    _clear()


# ---------------------------------------------------------------------------
# Mock LLM response (the JSON object the model would return)
# ---------------------------------------------------------------------------

MOCK_RECORD_DICT = {
    "title": "Effects of Intermittent Fasting on Insulin Sensitivity in Adults",
    "authors": ["Maria Silva", "John Doe"],
    "publicationDate": "2023",
    "executiveSummarySimple": (
        "O estudo testou o jejum intermitente (alternar períodos sem comer) "
        "e mediu a sensibilidade à insulina (como o corpo responde ao hormônio)."
    ),
    "executiveSummaryAcademic": (
        "Ensaio clínico randomizado (n=120) comparando jejum 16:8 com restrição "
        "calórica contínua; desfecho primário HOMA-IR em 12 semanas."
    ),
    "freeTranslation": "Efeitos do Jejum Intermitente na Sensibilidade à Insulina em Adultos",
    "researchQuestion": "O jejum 16:8 melhora a sensibilidade à insulina mais que a restrição contínua?",
    "methodology": {
        "type": "Quantitativa",
        "description": "Ensaio clínico randomizado de 12 semanas.",
        "sampleSize": "120 participantes",
    },
    "keyFindings": [
        "Redução de 18% no HOMA-IR no grupo de jejum",
        "Perda de peso semelhante entre os grupos",
    ],
    "limitations": ["Curta duração", "Amostra de um único centro"],
    "implications": "O jejum pode ser uma alternativa à restrição contínua.",
    "critique": "Desenho sólido, mas sem cegamento dos avaliadores.",
    "score": {
        "total": 7,
        "methodology": 8,
        "novelty": 6,
        "clarity": 8,
        "justification": "Estudo bem conduzido com escopo limitado.",
    },
    "keywords": ["jejum intermitente", "insulina", "ensaio clínico"],
}


@pytest.fixture
def record_dict() -> dict:
    """A deep copy of the mock record, safe to mutate per test."""
    return copy.deepcopy(MOCK_RECORD_DICT)


@pytest.fixture
def record_json(record_dict) -> str:
    return json.dumps(record_dict, ensure_ascii=False)


@pytest.fixture
def config(tmp_path) -> Config:
    """Config with no presentation delay and storage under tmp_path."""
    return Config(
        model="test-model",
        storage_path=tmp_path / "storage.json",
        reading_delay_s=0.0,
    )


@pytest.fixture
def pdf_attachment() -> Attachment:
    return Attachment(
        filename="paper.pdf", mime_type="application/pdf", data=b"%PDF-1.4 fake"
    )


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "paper.pdf"
    path.write_bytes(b"%PDF-1.4 fake")
    return path


def make_client(text=None, side_effect=None) -> MagicMock:
    """A stand-in ``ChatClient`` whose ``complete`` coroutine returns *text*."""
    client = MagicMock()
    client.base_url = "http://localhost:1234/v1"
    client.complete = AsyncMock(
        return_value=MagicMock(text=text), side_effect=side_effect
    )
    client.close = AsyncMock()
    return client
