"""WebDAV folder collection (DAVCollection) implementation."""

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, final, override

from wsgidav.dav_error import HTTP_FORBIDDEN, DAVError
from wsgidav.dav_provider import DAVCollection

from server.apps.drive.logic.file_operations import (
    create_folder,
    list_directory,
    move_entry,
    move_to_trash,
)
from server.apps.drive.models import Entry
from server.apps.webdav.path_mapper import TRASH_FOLDER_NAME, PathMapper
from server.apps.webdav.resources.base import dav_errors
from server.apps.webdav.resources.file_resource import (
    FileResource,
    NewFileResource,
)

if TYPE_CHECKING:
    from django.contrib.auth.models import User
    from wsgidav.dav_provider import DAVNonCollection, _DAVResource

logger = logging.getLogger(__name__)


@final
class FolderCollection(DAVCollection):
    """WebDAV collection representing a folder or the drive root.

    The root has no entry; it additionally lists the virtual trash
    folder and refuses to be deleted or moved.
    """

    def __init__(
        self,
        path: str,
        environ: dict,
        user: 'User',
        entry: Entry | None,
        path_mapper: PathMapper,
    ) -> None:
        """Initialize folder collection.

        Args:
            path: WebDAV path to the folder.
            environ: WSGI environ dictionary.
            user: Authenticated Django user.
            entry: Folder entry, None for the root.
            path_mapper: PathMapper for path translation.
        """
        super().__init__(path, environ)
        self._user = user
        self._entry = entry
        self._path_mapper = path_mapper

    @property
    def is_root(self) -> bool:
        """Whether this collection is the drive root."""
        return self._entry is None

    @override
    def get_creation_date(self) -> float:
        """Get folder creation timestamp (epoch for the root)."""
        if self._entry is None:
            return 0.0
        return self._entry.created_at.timestamp()

    @override
    def get_last_modified(self) -> float:
        """Get folder modification timestamp.

        Returns:
            Unix timestamp; the root reports the current time.
        """
        if self._entry is None:
            return datetime.now(tz=UTC).timestamp()
        return self._entry.updated_at.timestamp()

    @override
    def get_member_names(self) -> list[str]:
        """Get names of all direct children in this folder.

        Returns:
            Folder names first, then file names.
        """
        names = [child.name for child in self._children()]
        if self.is_root:
            names.append(TRASH_FOLDER_NAME)
        return names

    @override
    def get_member_list(self) -> list['_DAVResource']:
        """Build resources for all children without re-resolving paths.

        Returns:
            Child resources.
        """
        members: list[_DAVResource] = [
            self._resource_for(child) for child in self._children()
        ]
        if self.is_root:
            members.append(self.get_member(TRASH_FOLDER_NAME))
        return members

    @override
    def get_member(self, name: str) -> '_DAVResource | None':
        """Get a specific child member by name.

        Args:
            name: Name of the child (file or folder).

        Returns:
            Child resource, or None if it does not exist.
        """
        child_path = self._path_mapper.join_paths(self.path, name)
        return self.provider.get_resource_inst(child_path, self.environ)

    @override
    def create_empty_resource(self, name: str) -> 'DAVNonCollection':
        """Create placeholder for a new file (before PUT content).

        Args:
            name: Filename to create.

        Returns:
            NewFileResource placeholder.
        """
        self._check_name_allowed(name)
        child_path = self._path_mapper.join_paths(self.path, name)
        logger.debug('Creating empty resource for: %s', child_path)

        return NewFileResource(
            child_path,
            self.environ,
            self._user,
            self._path_mapper,
        )

    @override
    def create_collection(self, name: str) -> 'DAVCollection':
        """Create a new subfolder (MKCOL operation).

        Args:
            name: Folder name to create.

        Returns:
            FolderCollection for the new folder.
        """
        self._check_name_allowed(name)
        child_path = self._path_mapper.join_paths(self.path, name)
        logger.info('Creating collection: %s', child_path)

        with dav_errors():
            folder = create_folder(self._user, self._drive_path(), name)

        return FolderCollection(
            child_path,
            self.environ,
            self._user,
            folder,
            self._path_mapper,
        )

    @override
    def delete(self) -> None:
        """Move this folder, with everything in it, to the trash.

        Raises:
            DAVError: HTTP 403 for the root.
        """
        if self._entry is None:
            raise DAVError(HTTP_FORBIDDEN, 'Cannot delete the root folder')

        logger.info('Trashing folder via WebDAV: %s', self.path)
        with dav_errors():
            move_to_trash(self._user, self._entry.pk)

    @override
    def support_recursive_delete(self) -> bool:
        """Trashing a folder hides its whole subtree in one step."""
        return True

    @override
    def get_etag(self) -> str | None:
        """Folders don't have a stable ETag since their contents change."""
        return None

    @override
    def support_recursive_move(self, dest_path: str) -> bool:
        """Moving a folder only re-parents its entry."""
        return not self.is_root

    @override
    def move_recursive(self, dest_path: str) -> None:
        """Move this folder and all its contents to a new path.

        Args:
            dest_path: Destination WebDAV path.

        Raises:
            DAVError: HTTP 403 for the root.
        """
        if self._entry is None:
            raise DAVError(HTTP_FORBIDDEN, 'Cannot move the root folder')

        logger.info('Moving folder from %s to %s', self.path, dest_path)
        with dav_errors():
            move_entry(
                self._user,
                self._entry.pk,
                self._path_mapper.get_parent_path(dest_path),
                self._path_mapper.get_name(dest_path),
            )

    @override
    def copy_move_single(self, dest_path: str, *, is_move: bool) -> None:
        """Create the destination folder of a COPY.

        WsgiDAV copies members one by one after their folder.

        Args:
            dest_path: Destination WebDAV path.
            is_move: True for move, False for copy.
        """
        if is_move:
            self.move_recursive(dest_path)
            return

        logger.info('Copying folder from %s to %s', self.path, dest_path)
        with dav_errors():
            create_folder(
                self._user,
                self._path_mapper.get_parent_path(dest_path),
                self._path_mapper.get_name(dest_path),
            )

    def _drive_path(self) -> str:
        return self._path_mapper.to_drive_path(self.path)

    def _children(self) -> list[Entry]:
        with dav_errors():
            return list_directory(self._user, self._drive_path())

    def _resource_for(self, child: Entry) -> '_DAVResource':
        child_path = self._path_mapper.join_paths(self.path, child.name)
        if child.is_directory:
            return FolderCollection(
                child_path,
                self.environ,
                self._user,
                child,
                self._path_mapper,
            )
        return FileResource(child_path, self.environ, child, self._path_mapper)

    def _check_name_allowed(self, name: str) -> None:
        if self.is_root and name == TRASH_FOLDER_NAME:
            raise DAVError(HTTP_FORBIDDEN, 'Name is reserved for the trash')
