"""Tests for display name collision resolution."""

from datetime import UTC, datetime

import pytest

from server.apps.files.logic.naming import (
    resolve_display_name,
    split_display_name,
)
from server.apps.files.models import FileRecord

_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _records(*names: str) -> list[FileRecord]:
    return [
        FileRecord(
            id=str(index),
            display_name=name,
            storage_key=f'{index}.bin',
            size_bytes=1,
            mime_type='application/octet-stream',
            uploaded_at=_NOW,
            modified_at=_NOW,
        )
        for index, name in enumerate(names)
    ]


@pytest.mark.parametrize(('name', 'expected'), [
    ('a.txt', ('a', '.txt')),
    ('archive.tar.gz', ('archive.tar', '.gz')),
    ('README', ('README', '')),
    ('.bashrc', ('.bashrc', '')),
    ('trailing.', ('trailing', '.')),
])
def test_split_display_name(name, expected):
    """Test stem/extension split uses the last dot."""
    assert split_display_name(name) == expected


def test_free_name_is_unchanged():
    """Test a name nobody uses is returned as is."""
    assert resolve_display_name('b.txt', _records('a.txt')) == 'b.txt'


def test_free_name_with_no_records():
    """Test resolution against an empty store."""
    assert resolve_display_name('a.txt', []) == 'a.txt'


def test_first_collision_gets_number_one():
    """Test second upload of the same name."""
    assert resolve_display_name('a.txt', _records('a.txt')) == 'a (1).txt'


def test_numbers_continue_from_maximum():
    """Test third upload continues after the existing numbered copy."""
    records = _records('a (1).txt', 'a.txt')

    assert resolve_display_name('a.txt', records) == 'a (2).txt'


def test_numbers_continue_after_gap():
    """Test gaps are not refilled: the maximum wins."""
    records = _records('a.txt', 'a (1).txt', 'a (5).txt')

    assert resolve_display_name('a.txt', records) == 'a (6).txt'


def test_comparison_is_case_insensitive():
    """Test 'A.TXT' blocks a plain 'a.txt'."""
    assert resolve_display_name('a.txt', _records('A.TXT')) == 'a (1).txt'


def test_numbered_variants_match_case_insensitively():
    """Test numbered copies with other casing still count."""
    records = _records('a.txt', 'A (3).TXT')

    assert resolve_display_name('a.txt', records) == 'a (4).txt'


def test_unrelated_numbered_names_are_ignored():
    """Test names with other stems or extensions are not counted."""
    records = _records(
        'a.txt',
        'ba (7).txt',
        'a (9).txt.bak',
        'a (8).md',
        'a(4).txt',
        'a (x).txt',
    )

    assert resolve_display_name('a.txt', records) == 'a (1).txt'


def test_name_without_extension():
    """Test names without extension get the number at the end."""
    records = _records('README', 'README (2)')

    assert resolve_display_name('README', records) == 'README (3)'


def test_stem_with_regex_characters():
    """Test stems are matched literally, not as patterns."""
    records = _records('a+b [1].txt', 'a+b [1] (1).txt', 'aab [1] (5).txt')

    assert resolve_display_name('a+b [1].txt', records) == 'a+b [1] (2).txt'


def test_result_never_collides():
    """Test repeated uploads of one name never produce a taken name."""
    names = ['x.png']
    for _ in range(5):
        resolved = resolve_display_name('x.png', _records(*names))
        assert resolved.casefold() not in {name.casefold() for name in names}
        names.append(resolved)

    assert names == [
        'x.png',
        'x (1).png',
        'x (2).png',
        'x (3).png',
        'x (4).png',
        'x (5).png',
    ]


def test_numbered_name_collision_nests():
    """Test re-uploading an already numbered name numbers it again."""
    records = _records('a (1).txt')

    assert resolve_display_name('a (1).txt', records) == 'a (1) (1).txt'
