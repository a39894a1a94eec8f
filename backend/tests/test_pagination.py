import pytest
from operate.config.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, normalize_pagination


def test_defaults_and_clamping():
    assert normalize_pagination(None, None) == (DEFAULT_PAGE_SIZE, 0)
    assert normalize_pagination('', ' ') == (DEFAULT_PAGE_SIZE, 0)
    assert normalize_pagination('0', '-5') == (1, 0)
    assert normalize_pagination(str(MAX_PAGE_SIZE + 1), '7') == (MAX_PAGE_SIZE, 7)


def test_non_numeric_values_rejected():
    with pytest.raises(ValueError, match='limit'):
        normalize_pagination('x', None)
    with pytest.raises(ValueError, match='offset'):
        normalize_pagination(None, 'y')
