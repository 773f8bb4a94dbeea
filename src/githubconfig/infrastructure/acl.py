import posixpath
from typing import Any, Dict
from githubconfig.domain.models import ConfigFile

class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub GraphQL tree entries into ConfigFile instances.
    """

    @staticmethod
    def is_blob(raw_entry: Dict[str, Any]) -> bool:
        """Tells whether the entry is a file, as opposed to a sub-directory or submodule."""
        return raw_entry.get('type') == 'blob'

    @staticmethod
    def to_domain(raw_entry: Dict[str, Any]) -> ConfigFile:
        """
        Transforms a raw GitHub GraphQL tree entry into a ConfigFile.

        Args:
            raw_entry (Dict[str, Any]): One element of the tree's entries list.

        Returns:
            ConfigFile: The domain model instance representing the file.
        """
        name = raw_entry.get('name')
        if not name:
            raise ValueError("name is required to build ConfigFile.")

        # Binary blobs come with a null text
        blob = raw_entry.get('object') or {}
        id, extension = posixpath.splitext(name)

        return ConfigFile(
            id=id,
            file_name=name,
            extension=extension,
            object_id=blob.get('oid', ''),
            content=blob.get('text') or '',
        )
