"""Display name collision resolution.

Uploads never overwrite or shadow an existing file: when the requested
display name is already taken, a numbered variant is produced instead::

    'a.txt' -> 'a (1).txt' -> 'a (2).txt' -> ...

Comparison is case-insensitive, so 'A.TXT' also blocks 'a.txt'.
"""

import re
from collections.abc import Iterable

from server.apps.files.models import FileRecord


def split_display_name(name: str) -> tuple[str, str]:
    """Split display name into stem and extension.

    The extension runs from the last dot to the end and includes the
    dot. A leading dot (as in '.bashrc') does not start an extension.

    Args:
        name: Display name (e.g., 'archive.tar.gz').

    Returns:
        Tuple of stem and extension (e.g., ('archive.tar', '.gz')).
    """
    dot_index = name.rfind('.')
    if dot_index <= 0:
        return name, ''
    return name[:dot_index], name[dot_index:]


def resolve_display_name(
    desired_name: str,
    records: Iterable[FileRecord],
) -> str:
    """Produce a display name that no active record uses.

    If the desired name is free it is returned unchanged. Otherwise
    every record named exactly ``desired_name`` or ``stem (N)extension``
    with the same stem and extension is considered, and the result is
    ``stem (maxN+1)extension``. Records with unrelated names that merely
    contain parenthesized numbers are ignored.

    A single pass is enough: any record equal to the result would have
    matched the pattern with a number above the maximum found.

    Args:
        desired_name: Name requested by the client.
        records: Currently active records.

    Returns:
        Collision-free display name.
    """
    taken = [record.display_name.casefold() for record in records]
    if desired_name.casefold() not in taken:
        return desired_name

    stem, extension = split_display_name(desired_name)
    numbered = re.compile(
        r'{stem} \(([0-9]+)\){extension}'.format(
            stem=re.escape(stem.casefold()),
            extension=re.escape(extension.casefold()),
        ),
    )

    max_number = 0
    for name in taken:
        match = numbered.fullmatch(name)
        if match:
            max_number = max(max_number, int(match.group(1)))

    return f'{stem} ({max_number + 1}){extension}'
