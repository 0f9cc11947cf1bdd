"""Tests for sciscan/models.py: record validation, history entries, Config, exceptions."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from sciscan.models import (
    AnalysisError,
    AnalysisRecord,
    Attachment,
    Config,
    FormatError,
    HistoryEntry,
    SchemaError,
    TransportError,
)


# ---------------------------------------------------------------------------
# AnalysisRecord
# ---------------------------------------------------------------------------


def test_record_valid(record_dict):
    record = AnalysisRecord.model_validate(record_dict)
    assert record.title.startswith("Effects of Intermittent Fasting")
    assert record.methodology.sample_size == "120 participantes"
    assert record.score.total == 7
    assert len(record.key_findings) == 2


def test_record_accepts_snake_case_names(record_dict):
    record = AnalysisRecord.model_validate(record_dict)
    again = AnalysisRecord(**record.model_dump())
    assert again == record


def test_record_dumps_camel_case(record_dict):
    dumped = AnalysisRecord.model_validate(record_dict).to_json_dict()
    assert dumped == record_dict


@pytest.mark.parametrize("value", [0, 11, -3])
def test_record_rejects_out_of_range_score(record_dict, value):
    record_dict["score"]["novelty"] = value
    with pytest.raises(ValidationError):
        AnalysisRecord.model_validate(record_dict)


@pytest.mark.parametrize("value", [7.5, "8", None, True])
def test_record_rejects_non_integer_score(record_dict, value):
    record_dict["score"]["total"] = value
    with pytest.raises(ValidationError):
        AnalysisRecord.model_validate(record_dict)


def test_record_score_bounds_are_inclusive(record_dict):
    record_dict["score"]["total"] = 1
    record_dict["score"]["clarity"] = 10
    record = AnalysisRecord.model_validate(record_dict)
    assert (record.score.total, record.score.clarity) == (1, 10)


def test_record_rejects_missing_score_field(record_dict):
    del record_dict["score"]["methodology"]
    with pytest.raises(ValidationError):
        AnalysisRecord.model_validate(record_dict)


@pytest.mark.parametrize(
    "field", ["executiveSummarySimple", "executiveSummaryAcademic"]
)
def test_record_rejects_blank_summary(record_dict, field):
    record_dict[field] = "   "
    with pytest.raises(ValidationError):
        AnalysisRecord.model_validate(record_dict)


def test_record_rejects_missing_summary(record_dict):
    del record_dict["executiveSummaryAcademic"]
    with pytest.raises(ValidationError):
        AnalysisRecord.model_validate(record_dict)


def test_record_rejects_empty_key_findings(record_dict):
    record_dict["keyFindings"] = []
    with pytest.raises(ValidationError):
        AnalysisRecord.model_validate(record_dict)


def test_record_allows_empty_limitations(record_dict):
    record_dict["limitations"] = []
    record = AnalysisRecord.model_validate(record_dict)
    assert record.limitations == []


def test_record_rejects_wrong_list_type(record_dict):
    record_dict["authors"] = "Maria Silva"
    with pytest.raises(ValidationError):
        AnalysisRecord.model_validate(record_dict)


# ---------------------------------------------------------------------------
# HistoryEntry
# ---------------------------------------------------------------------------


def test_history_entry_persists_record_under_schema(record_dict):
    record = AnalysisRecord.model_validate(record_dict)
    entry = HistoryEntry(id="1", date="19/10/2026", record=record)
    dumped = entry.to_json_dict()
    assert set(dumped) == {"id", "date", "schema"}
    assert dumped["schema"]["executiveSummarySimple"] == record.executive_summary_simple


def test_history_entry_loads_from_stored_shape(record_dict):
    entry = HistoryEntry.model_validate(
        {"id": "42", "date": "01/02/2026", "schema": record_dict}
    )
    assert entry.record.score.total == 7


def test_history_entry_is_frozen(record_dict):
    entry = HistoryEntry.model_validate(
        {"id": "42", "date": "01/02/2026", "schema": record_dict}
    )
    with pytest.raises(ValidationError):
        entry.id = "43"


# ---------------------------------------------------------------------------
# Attachment
# ---------------------------------------------------------------------------


def test_attachment_data_url():
    att = Attachment(filename="a.pdf", mime_type="application/pdf", data=b"abc")
    assert att.size == 3
    assert att.to_data_url() == "data:application/pdf;base64,YWJj"


def test_attachment_repr_hides_bytes():
    att = Attachment(filename="a.pdf", mime_type="application/pdf", data=b"secret")
    assert "secret" not in repr(att)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


def test_config_defaults():
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("LLM_MODEL", None)
        config = Config()
    assert config.base_url == "https://openrouter.ai/api/v1"
    assert config.model == "google/gemini-2.5-pro"
    assert config.temperature == 0.2
    assert config.history_key == "sciscan_history"
    assert config.date_format == "%d/%m/%Y"
    assert config.attachment_mode == "file"
    assert config.max_history is None
    assert config.storage_path.name == "storage.json"


def test_config_model_from_env():
    with patch.dict(os.environ, {"LLM_MODEL": "env-model"}):
        assert Config().model == "env-model"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


def test_transport_error_keeps_cause():
    cause = ConnectionError("refused")
    exc = TransportError(cause)
    assert exc.cause is cause
    assert "refused" in str(exc)
    assert isinstance(exc, AnalysisError)


def test_schema_error_is_a_format_error():
    exc = SchemaError(["score.total: too big"], raw_text="{}")
    assert isinstance(exc, FormatError)
    assert exc.raw_text == "{}"
    assert exc.errors == ["score.total: too big"]
    assert "score.total" in str(exc)
