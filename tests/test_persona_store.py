import pytest

from src.calendar.persona_store import JsonFilePersonaStore
from utils.errors import StorageError


@pytest.fixture
def json_store(tmp_path):
    return JsonFilePersonaStore(str(tmp_path / "persona.json"))


def test_missing_file_means_no_persona(json_store):
    assert json_store.get_persona() is None


def test_write_then_read(json_store, make_persona, lunch_routine):
    persona = make_persona(style="aggressive", routines=[lunch_routine])

    json_store.set_persona(persona)

    assert json_store.get_persona().to_dict() == persona.to_dict()


def test_failed_write_keeps_previous_file_and_no_temp(json_store, make_persona, tmp_path):
    json_store.set_persona(make_persona(style="conservative"))
    broken = make_persona()
    broken.scheduling_style = object()

    with pytest.raises(StorageError):
        json_store.set_persona(broken)

    assert json_store.get_persona().scheduling_style == "conservative"
    assert [p.name for p in tmp_path.iterdir()] == ["persona.json"]


def test_corrupt_file_is_storage_error(json_store, tmp_path):
    (tmp_path / "persona.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        json_store.get_persona()
