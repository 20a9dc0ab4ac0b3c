"""Descriptors for conferences and uploaded files."""

from enum import Enum
from typing import List, Optional

from dataclasses import dataclass, field


@dataclass
class Conference:
    """
    A conference that accepts manuscripts.

    The workflow treats a conference as an opaque key plus enough of a
    descriptor to decide whether it is open and which tracks it offers.
    """

    conference_id: str
    year: int
    title: str = field(default_factory=str)
    tracks: List[str] = field(default_factory=list)
    is_active: bool = field(default=True)

    def offers_track(self, track: Optional[str]) -> bool:
        """A conference without declared tracks accepts any track."""
        if not self.tracks:
            return True
        return track in self.tracks


class FileKind(Enum):
    """Kinds of files that can be attached to a manuscript."""

    MANUSCRIPT_ANONYMOUS = 'MANUSCRIPT_ANONYMOUS'
    """The anonymized manuscript that is sent to reviewers."""

    TITLE_PAGE = 'TITLE_PAGE'
    """The title page, with author names and affiliations."""


ALLOWED_MIME_TYPES = {
    'application/pdf': '.pdf',
    'application/msword': '.doc',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document':
        '.docx',
}
"""Accepted upload types, mapped to the extension used on disk."""

MAX_FILE_SIZE = 10 * 1024 * 1024
"""Uploads larger than this (in bytes) are refused."""
