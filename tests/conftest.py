import pytest

from config import settings
from services import session_manager


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_dir", tmp_path / "data")
    session_manager.clear_sessions()
    yield tmp_path / "data"
    session_manager.clear_sessions()
