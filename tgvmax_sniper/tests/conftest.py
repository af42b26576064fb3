import pytest

from tgvmax_sniper.db import init_db
from tgvmax_sniper.models import Station


@pytest.fixture
def paris_station():
    return Station(name="Paris Gare de Lyon", sncf_id="FRPLY", trainline_id="4916")


@pytest.fixture
def lyon_station():
    return Station(name="Lyon Part Dieu", sncf_id="FRLPD", trainline_id="4718")


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "test.db"
    init_db(str(path))
    return str(path)
