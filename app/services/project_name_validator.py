"""Validation of new project names."""
import logging
import re
from typing import Callable, Iterable, Optional

from gallery import MESSAGES

_IDENTIFIER_RE = re.compile(r'^[A-Za-z][A-Za-z0-9_]*$')

logger = logging.getLogger('gallery.validator')


class ProjectNameValidator:
    """Checks that a proposed project name is well-formed and unused.

    Rules
    -----
    * Must start with a letter and contain only letters, digits and ``_``.
    * Must not match the name of an existing project (case-sensitive).

    Failures are reported to the user through *on_error* by the validator
    itself, so callers only need the boolean result.
    """

    def __init__(self, existing_names: Callable[[], Iterable[str]],
                 on_error: Optional[Callable[[str], None]] = None) -> None:
        """
        Args:
            existing_names: Callable returning the names already in use.
            on_error:       Callable receiving the user-facing message.
                            Defaults to logging a warning.
        """
        self._existing_names = existing_names
        self._on_error = on_error or (lambda message: logger.warning(message))

    @staticmethod
    def is_valid_identifier(name: str) -> bool:
        return bool(name) and bool(_IDENTIFIER_RE.match(name))

    def check_new_project_name(self, name: str) -> bool:
        """Return ``True`` if *name* can be used for a new project."""
        if not self.is_valid_identifier(name or ''):
            self._on_error(MESSAGES['malformed_project_name_error'])
            return False
        if name in set(self._existing_names()):
            self._on_error(MESSAGES['duplicate_project_name_error'].format(name=name))
            return False
        return True
