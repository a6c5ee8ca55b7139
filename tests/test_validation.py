import pytest

from config import SURFACE_GUIDS
from errors import StructuralError
from fakes import CANDIDATE, make_candidate, without
from models import CorpusItemSource, CorpusLanguage
from validation import validate_candidate, validate_date_published, validate_structure

OPTIONAL_FIELDS = ["title", "excerpt", "language", "image_url", "authors"]


def test_valid_candidate_passes_and_is_stable():
    first = validate_candidate(make_candidate())
    second = validate_candidate(make_candidate())
    assert first == second
    assert first.scheduled_corpus_item.language == CorpusLanguage.EN
    assert first.features.rank == 1
    assert first.telemetry_run_details() == {"flow_name": "ScheduleFlow", "run_id": "3647"}


@pytest.mark.parametrize("field", OPTIONAL_FIELDS)
def test_optional_field_may_be_null(field):
    candidate = validate_candidate(make_candidate(**{field: None}))
    assert getattr(candidate.scheduled_corpus_item, field) is None


@pytest.mark.parametrize("field", OPTIONAL_FIELDS)
def test_optional_field_may_not_be_absent(field):
    with pytest.raises(StructuralError) as err:
        validate_structure(without(CANDIDATE, field))
    assert err.value.path == f"$input.scheduled_corpus_item.{field}"
    assert err.value.field == field
    assert err.value.candidate_id == CANDIDATE["scheduled_corpus_candidate_id"]


def test_unknown_surface_lists_valid_guids():
    with pytest.raises(StructuralError) as err:
        validate_structure(make_candidate(scheduled_surface_guid="NEW_TAB_EN_UX"))
    assert err.value.path == "$input.scheduled_corpus_item.scheduled_surface_guid"
    for guid in SURFACE_GUIDS:
        assert guid in str(err.value)


def test_empty_topic_is_allowed_but_unknown_topic_is_not():
    assert validate_structure(make_candidate(topic="")).scheduled_corpus_item.topic == ""
    with pytest.raises(StructuralError) as err:
        validate_structure(make_candidate(topic="ASTROLOGY"))
    assert err.value.field == "topic"
    assert '"SELF_IMPROVEMENT"' in err.value.expected


def test_language_must_be_supported():
    with pytest.raises(StructuralError) as err:
        validate_structure(make_candidate(language="PT"))
    assert err.value.expected == '("DE" | "EN" | "ES" | "FR" | "IT" | null)'


def test_url_must_be_http():
    with pytest.raises(StructuralError) as err:
        validate_structure(make_candidate(url="ftp://example.com/file"))
    assert err.value.field == "url"


def test_author_list_entries_are_indexed_in_path():
    with pytest.raises(StructuralError) as err:
        validate_structure(make_candidate(authors=["Ada", 7]))
    assert err.value.path == "$input.scheduled_corpus_item.authors[1]"
    assert err.value.expected == "string"


def test_wrong_type_for_title():
    with pytest.raises(StructuralError) as err:
        validate_structure(make_candidate(title=123))
    assert err.value.path == "$input.scheduled_corpus_item.title"
    assert "(null | string)" in str(err.value)


def test_source_must_be_ml():
    with pytest.raises(StructuralError) as err:
        validate_candidate(make_candidate(source="MANUAL"))
    assert err.value.field == "source"
    assert "invalid source (MANUAL)" in str(err.value)
    assert validate_structure(make_candidate(source="MANUAL")).scheduled_corpus_item.source == CorpusItemSource.MANUAL


def test_rank_must_be_integer():
    raw = make_candidate()
    raw["features"]["rank"] = 1.5
    with pytest.raises(StructuralError) as err:
        validate_structure(raw)
    assert err.value.path == "$input.features.rank"


def test_non_object_payload():
    with pytest.raises(StructuralError) as err:
        validate_structure("not a candidate")
    assert err.value.path == "$input"
    assert err.value.candidate_id == ""


def test_validate_date_published():
    assert validate_date_published("2024-02-27 00:00:00") == "2024-02-27"
    assert validate_date_published("2024-02-27") == "2024-02-27"
    assert validate_date_published("2024-02-30") is None
    assert validate_date_published("yesterday") is None
    assert validate_date_published(None) is None
