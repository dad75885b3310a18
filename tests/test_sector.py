import pytest

from multibagger.domain.errors import InvalidSectorError
from multibagger.domain.models.scoring import Sector
from multibagger.infrastructure.sector import SectorMapper


def test_mapper_matches_provider_text():
    mapper = SectorMapper()
    assert mapper.map("Technology", "Software - Application") is Sector.SAAS
    assert mapper.map("Healthcare", "Biotechnology") is Sector.BIOTECH
    assert mapper.map("Industrials", "Aerospace & Defense") is Sector.SPACETECH
    assert mapper.map("Technology", "Consumer Electronics") is Sector.HARDWARE
    assert mapper.map("Utilities", "Regulated Water") is Sector.OTHER
    assert mapper.map(None, None) is Sector.OTHER


def test_explicit_tag_wins_over_free_text():
    assert SectorMapper().resolve("quantum", "Technology", "Software") is Sector.QUANTUM


def test_unknown_tag_is_rejected():
    with pytest.raises(InvalidSectorError):
        SectorMapper().resolve("Crypto", "Technology", "Software")
    with pytest.raises(ValueError):
        Sector.parse(42)
