"""Credentials files.

Credentials are kept in small INI style files, for example::

    digicert_api_key = 0123456789abcdef
    alidns_access_key = LTAI...
    alidns_secret_key = ...

"""
import logging
import os
import stat
from typing import Callable
from typing import Mapping
from typing import Optional

import configobj

from digicert_dcv import errors

logger = logging.getLogger(__name__)


class CredentialsConfiguration:
    """API credentials read from a file.

    :ivar configobj.ConfigObj confobj: Parsed file.
    :ivar callable mapper: Applied to every key before lookup, e.g. to add
        a prefix.

    """

    def __init__(self, filename: str, mapper: Callable[[str], str] = lambda x: x) -> None:
        """
        :param str filename: Path to the credentials file.
        :param callable mapper: Key name transformation.
        :raises errors.ConfigurationError: If the file is missing or cannot be parsed.
        """
        validate_file_permissions(filename)

        try:
            self.confobj = configobj.ConfigObj(filename)
        except configobj.ConfigObjError as e:
            logger.debug("Error parsing credentials file '%s'", filename, exc_info=True)
            raise errors.ConfigurationError(
                "Error parsing credentials file '{0}': {1}".format(filename, e)) from e

        self.mapper = mapper

    def require(self, required_variables: Mapping[str, str]) -> None:
        """Check that every variable of `required_variables` has a value.

        All problems are reported at once.

        :param dict required_variables: Maps variable names to a description
            used in the error message.
        :raises errors.ConfigurationError: If any variable is absent or empty.
        """
        problems = []
        for var, description in required_variables.items():
            key = self.mapper(var)
            if key not in self.confobj:
                problems.append('Property "{0}" not found (should be {1}).'.format(
                    key, description))
            elif not self.confobj.get(key):
                problems.append('Property "{0}" not set (should be {1}).'.format(
                    key, description))

        if problems:
            raise errors.ConfigurationError(
                'Missing {0} in credentials file {1}:\n * {2}'.format(
                    'property' if len(problems) == 1 else 'properties',
                    self.confobj.filename, '\n * '.join(problems)))

    def conf(self, var: str) -> Optional[str]:
        """Value of `var` after applying `mapper`, or ``None``."""
        return self.confobj.get(self.mapper(var))


def validate_file(filename: str) -> None:
    """Ensure that `filename` is an existing regular file."""
    if not os.path.exists(filename):
        raise errors.ConfigurationError('File not found: {0}'.format(filename))
    if os.path.isdir(filename):
        raise errors.ConfigurationError('Path is a directory: {0}'.format(filename))


def has_world_permissions(path: str) -> bool:
    """Check if users outside the owner and group can access `path`."""
    return bool(stat.S_IMODE(os.stat(path).st_mode) & stat.S_IRWXO)


def validate_file_permissions(filename: str) -> None:
    """Like `validate_file`, and warn if the file is world accessible."""
    validate_file(filename)

    if has_world_permissions(filename):
        logger.warning('Unsafe permissions on credentials file: %s', filename)
