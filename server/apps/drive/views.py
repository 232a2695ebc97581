"""JSON HTTP views for drive app.

Views stay thin: they parse the request, call one logic function and
serialize the result. ``DriveError`` subclasses become
``{"error": message}`` responses with the error's status code.
"""

import functools
import json
import logging
from collections.abc import Callable
from typing import Any, Final

from django.db import DatabaseError
from django.http import FileResponse, HttpRequest, HttpResponse, JsonResponse

from server.apps.drive.exceptions import DriveError, InvalidInputError
from server.apps.drive.logic import (
    archive_operations,
    bulk_operations,
    favorite_operations,
    file_operations,
    folder_operations,
    recent_operations,
    search_operations,
    version_operations,
)
from server.apps.drive.logic.common import get_user_file, parse_item_id
from server.apps.drive.models import File, FileVersion, Folder

_View = Callable[..., HttpResponse]

_HTTP_CREATED: Final = 201
_HTTP_UNAUTHORIZED: Final = 401
_HTTP_METHOD_NOT_ALLOWED: Final = 405
_HTTP_SERVER_ERROR: Final = 500
_FAILED_ITEMS_HEADER: Final = 'X-Failed-Items'

logger = logging.getLogger(__name__)


def api_view(methods: list[str]) -> Callable[[_View], _View]:
    """Wrap a view with authentication, method and error handling.

    Args:
        methods: Accepted HTTP methods.

    Returns:
        Decorator for function views.
    """
    def decorator(view: _View) -> _View:
        @functools.wraps(view)
        def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> HttpResponse:
            if not request.user.is_authenticated:
                return _error('Authentication required', _HTTP_UNAUTHORIZED)
            if request.method not in methods:
                return _error('Method not allowed', _HTTP_METHOD_NOT_ALLOWED)
            try:
                return view(request, *args, **kwargs)
            except DriveError as error:
                return _error(error.message, error.status_code)
            except DatabaseError:
                logger.exception('Database error in %s', view.__name__)
                return _error('Internal server error', _HTTP_SERVER_ERROR)
        return wrapper
    return decorator


def _error(message: str, status: int) -> JsonResponse:
    return JsonResponse({'error': message}, status=status)


def _read_json(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise InvalidInputError('Invalid JSON body') from error
    if not isinstance(payload, dict):
        raise InvalidInputError('Invalid JSON body')
    return payload


def _optional_id(raw_id: object, field: str) -> int | None:
    if raw_id is None or raw_id == '':
        return None
    return parse_item_id(raw_id, field)


def _id_list(raw_ids: object, field: str) -> list[int]:
    if raw_ids is None:
        return []
    if not isinstance(raw_ids, list):
        raise InvalidInputError(f'Invalid {field}')
    return [parse_item_id(raw_id, field) for raw_id in raw_ids]


def _string_field(
    payload: dict[str, Any],
    field: str,
    default: str | None = '',
) -> str | None:
    raw_value = payload.get(field)
    if raw_value is None:
        return default
    if not isinstance(raw_value, str):
        raise InvalidInputError(f'Invalid {field}')
    return raw_value


def _folder_payload(folder: Folder) -> dict[str, Any]:
    return {
        'id': folder.id,
        'name': folder.name,
        'parent_id': folder.parent_id,
        'path': folder.path,
        'icon_type': folder.icon_type,
        'icon_color': folder.icon_color,
        'created_at': folder.created_at.isoformat(),
        'updated_at': folder.updated_at.isoformat(),
    }


def _file_payload(file_instance: File) -> dict[str, Any]:
    return {
        'id': file_instance.id,
        'name': file_instance.name,
        'original_name': file_instance.original_name,
        'folder_id': file_instance.folder_id,
        'size': file_instance.size,
        'mime_type': file_instance.mime_type,
        'extension': file_instance.get_extension(),
        'versioning_enabled': file_instance.versioning_enabled,
        'current_version': file_instance.current_version,
        'created_at': file_instance.created_at.isoformat(),
        'updated_at': file_instance.updated_at.isoformat(),
    }


def _version_payload(version: FileVersion) -> dict[str, Any]:
    return {
        'id': version.id,
        'file_id': version.file_id,
        'version': version.version,
        'size': version.size,
        'checksum': version.checksum,
        'comment': version.comment,
        'created_by': version.created_by_id,
        'created_at': version.created_at.isoformat(),
    }


def _item_payload(item: File | Folder) -> dict[str, Any]:
    if isinstance(item, File):
        return _file_payload(item)
    return _folder_payload(item)


def _reference_payload(reference: Any, item: File | Folder) -> dict[str, Any]:
    payload = {
        'id': reference.id,
        'item_type': reference.item_type,
        'item_id': reference.item_id,
        'created_at': reference.created_at.isoformat(),
        'item': _item_payload(item),
    }
    if hasattr(reference, 'accessed_at'):
        payload['accessed_at'] = reference.accessed_at.isoformat()
    return payload


def _archive_response(archive: archive_operations.BulkArchive) -> FileResponse:
    response = FileResponse(
        archive.handle,
        as_attachment=True,
        filename=archive.filename,
        content_type='application/zip',
    )
    # Skipped items cannot go in a zip body
    if archive.failed_items:
        response[_FAILED_ITEMS_HEADER] = ','.join(archive.failed_items)
    return response


# Folders


@api_view(['GET', 'POST'])
def folders(request: HttpRequest) -> HttpResponse:
    """List folder contents (GET) or create a folder (POST)."""
    if request.method == 'GET':
        folder_id = _optional_id(request.GET.get('parent_id'), 'parent_id')
        sub_folders, files = folder_operations.list_folder_contents(
            request.user,
            folder_id,
        )
        return JsonResponse({
            'folders': [_folder_payload(folder) for folder in sub_folders],
            'files': [_file_payload(file_instance) for file_instance in files],
            'breadcrumbs': folder_operations.get_breadcrumbs(
                request.user,
                folder_id,
            ),
        })

    payload = _read_json(request)
    folder = folder_operations.create_folder(
        request.user,
        _string_field(payload, 'name'),
        parent_id=_optional_id(payload.get('parent_id'), 'parent_id'),
        icon_type=_string_field(payload, 'icon_type'),
    )
    return JsonResponse({'folder': _folder_payload(folder)}, status=_HTTP_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
def folder_detail(request: HttpRequest, folder_id: int) -> HttpResponse:
    """Get, update (rename or icon) or delete a folder."""
    if request.method == 'GET':
        folder = folder_operations.get_folder(request.user, folder_id)
        payload = _folder_payload(folder)
        payload['subfolders'] = [
            _folder_payload(child) for child in folder.subfolders.all()
        ]
        payload['files'] = [
            _file_payload(file_instance) for file_instance in folder.files.all()
        ]
        return JsonResponse({'folder': payload})

    if request.method == 'PUT':
        payload = _read_json(request)
        folder = folder_operations.update_folder(
            request.user,
            folder_id,
            name=_string_field(payload, 'name', default=None),
            icon_type=_string_field(payload, 'icon_type', default=None),
        )
        return JsonResponse({'folder': _folder_payload(folder)})

    folder_operations.delete_folder(request.user, folder_id)
    return JsonResponse({'message': 'Folder deleted successfully'})


@api_view(['POST'])
def folder_move(request: HttpRequest, folder_id: int) -> HttpResponse:
    """Move a folder under ``target_id`` (0 or absent for root)."""
    payload = _read_json(request)
    folder = folder_operations.move_folder(
        request.user,
        folder_id,
        _optional_id(payload.get('target_id'), 'target_id'),
    )
    return JsonResponse({'folder': _folder_payload(folder)})


@api_view(['GET'])
def folder_breadcrumbs(request: HttpRequest, folder_id: int) -> HttpResponse:
    """Navigation trail from the root to a folder."""
    return JsonResponse({
        'breadcrumbs': folder_operations.get_breadcrumbs(request.user, folder_id),
    })


@api_view(['GET'])
def folder_download(request: HttpRequest, folder_id: int) -> HttpResponse:
    """Download a folder subtree as zip."""
    return _archive_response(
        archive_operations.zip_folder(request.user, folder_id),
    )


# Files


@api_view(['POST'])
def file_upload(request: HttpRequest) -> HttpResponse:
    """Upload a file (multipart field ``file``) into ``folder_id``."""
    upload = request.FILES.get('file')
    if upload is None:
        raise InvalidInputError('No file provided')
    file_instance = file_operations.upload_file(
        request.user,
        upload,
        _optional_id(request.POST.get('folder_id'), 'folder_id'),
    )
    return JsonResponse({'file': _file_payload(file_instance)}, status=_HTTP_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
def file_detail(request: HttpRequest, file_id: int) -> HttpResponse:
    """Get metadata, rename or delete a file."""
    if request.method == 'GET':
        file_instance = get_user_file(request.user, file_id)
        return JsonResponse({'file': _file_payload(file_instance)})

    if request.method == 'PUT':
        payload = _read_json(request)
        file_instance = file_operations.rename_file(
            request.user,
            file_id,
            _string_field(payload, 'name'),
        )
        return JsonResponse({'file': _file_payload(file_instance)})

    file_operations.delete_file(request.user, file_id)
    return JsonResponse({'message': 'File deleted successfully'})


@api_view(['POST'])
def file_move(request: HttpRequest, file_id: int) -> HttpResponse:
    """Move a file under ``folder_id`` (0 or absent for root)."""
    payload = _read_json(request)
    file_instance = file_operations.move_file(
        request.user,
        file_id,
        _optional_id(payload.get('folder_id'), 'folder_id'),
    )
    return JsonResponse({'file': _file_payload(file_instance)})


@api_view(['GET'])
def file_download(request: HttpRequest, file_id: int) -> HttpResponse:
    """Stream the live content as an attachment."""
    file_instance, handle = file_operations.open_file(request.user, file_id)
    return FileResponse(
        handle,
        as_attachment=True,
        filename=file_instance.original_name,
        content_type=file_instance.mime_type or None,
    )


# Versions


@api_view(['POST', 'DELETE'])
def file_versioning(request: HttpRequest, file_id: int) -> HttpResponse:
    """Enable (POST) or disable (DELETE) versioning of a file."""
    if request.method == 'POST':
        version = version_operations.enable_versioning(request.user, file_id)
        return JsonResponse(
            {
                'message': 'Versioning enabled successfully',
                'version': _version_payload(version),
            },
            status=_HTTP_CREATED,
        )

    version_operations.disable_versioning(request.user, file_id)
    return JsonResponse({'message': 'Versioning disabled successfully'})


@api_view(['GET', 'POST'])
def file_versions(request: HttpRequest, file_id: int) -> HttpResponse:
    """List versions (GET) or upload a new version (POST)."""
    if request.method == 'GET':
        file_instance, versions = version_operations.list_versions(
            request.user,
            file_id,
        )
        return JsonResponse({
            'file': _file_payload(file_instance),
            'versions': [_version_payload(version) for version in versions],
        })

    upload = request.FILES.get('file')
    if upload is None:
        raise InvalidInputError('No file provided')
    version = version_operations.create_new_version(
        request.user,
        file_id,
        upload,
        comment=request.POST.get('comment', ''),
    )
    return JsonResponse({'version': _version_payload(version)}, status=_HTTP_CREATED)


@api_view(['POST'])
def version_restore(
    request: HttpRequest,
    file_id: int,
    version_number: int,
) -> HttpResponse:
    """Copy a stored version over the live content."""
    version = version_operations.restore_version(
        request.user,
        file_id,
        version_number,
    )
    return JsonResponse({
        'message': f'Restored version {version.version}',
        'version': _version_payload(version),
    })


@api_view(['GET'])
def version_download(
    request: HttpRequest,
    file_id: int,
    version_number: int,
) -> HttpResponse:
    """Stream a stored version as ``<stem>_v<N><ext>``."""
    version, download_name, handle = version_operations.open_version(
        request.user,
        file_id,
        version_number,
    )
    return FileResponse(
        handle,
        as_attachment=True,
        filename=download_name,
        content_type=version.file.mime_type or None,
    )


# Bulk


@api_view(['POST'])
def bulk(request: HttpRequest) -> HttpResponse:
    """Run a bulk delete, move or download over files and folders."""
    payload = _read_json(request)
    file_ids = _id_list(payload.get('file_ids'), 'file_ids')
    folder_ids = _id_list(payload.get('folder_ids'), 'folder_ids')
    if not file_ids and not folder_ids:
        raise InvalidInputError('No items selected')

    action = _string_field(payload, 'action')
    if action == bulk_operations.BulkAction.DOWNLOAD:
        return _archive_response(
            archive_operations.create_archive(request.user, file_ids, folder_ids),
        )

    result = bulk_operations.run_bulk_action(
        request.user,
        action,
        file_ids,
        folder_ids,
        target_id=_optional_id(payload.get('target_folder_id'), 'target_folder_id'),
    )
    return JsonResponse(result.as_dict())


# Favorites


@api_view(['GET', 'POST'])
def favorites(request: HttpRequest) -> HttpResponse:
    """List favorites (GET) or add one (POST)."""
    if request.method == 'GET':
        return JsonResponse({
            'favorites': [
                _reference_payload(favorite, item)
                for favorite, item in favorite_operations.list_favorites(
                    request.user,
                )
            ],
        })

    payload = _read_json(request)
    favorite = favorite_operations.add_favorite(
        request.user,
        _string_field(payload, 'item_type'),
        parse_item_id(payload.get('item_id'), 'item_id'),
    )
    return JsonResponse(
        {
            'favorite': {
                'id': favorite.id,
                'item_type': favorite.item_type,
                'item_id': favorite.item_id,
                'created_at': favorite.created_at.isoformat(),
            },
        },
        status=_HTTP_CREATED,
    )


@api_view(['DELETE'])
def favorite_detail(request: HttpRequest, favorite_id: int) -> HttpResponse:
    """Remove a favorite by id."""
    favorite_operations.remove_favorite(request.user, favorite_id)
    return JsonResponse({'message': 'Favorite removed successfully'})


@api_view(['GET'])
def favorite_check(request: HttpRequest) -> HttpResponse:
    """Check whether ``item_type``/``item_id`` is a favorite."""
    favorite = favorite_operations.is_favorite(
        request.user,
        request.GET.get('item_type', ''),
        parse_item_id(request.GET.get('item_id'), 'item_id'),
    )
    return JsonResponse({
        'is_favorite': favorite is not None,
        'favorite_id': favorite.id if favorite else None,
    })


@api_view(['POST'])
def favorite_remove_by_item(request: HttpRequest) -> HttpResponse:
    """Remove the favorite of ``item_type``/``item_id``."""
    payload = _read_json(request)
    favorite_operations.remove_favorite_by_item(
        request.user,
        _string_field(payload, 'item_type'),
        parse_item_id(payload.get('item_id'), 'item_id'),
    )
    return JsonResponse({'message': 'Favorite removed successfully'})


# Recent access


@api_view(['GET'])
def recent(request: HttpRequest) -> HttpResponse:
    """List recently accessed items."""
    return JsonResponse({
        'recent_files': [
            _reference_payload(access, item)
            for access, item in recent_operations.list_recent(request.user)
        ],
    })


@api_view(['POST'])
def recent_track(request: HttpRequest, item_type: str, item_id: int) -> HttpResponse:
    """Record access to a file or folder."""
    recent_operations.track_access(request.user, item_type, item_id)
    return JsonResponse({'message': 'Access tracked successfully'})


# Search


@api_view(['GET'])
def search(request: HttpRequest) -> HttpResponse:
    """Search files and folders by name (``q``, optional ``type``)."""
    result = search_operations.search(
        request.user,
        request.GET.get('q', ''),
        file_type=request.GET.get('type', ''),
    )
    return JsonResponse({
        'files': [_file_payload(file_instance) for file_instance in result.files],
        'folders': [_folder_payload(folder) for folder in result.folders],
        'total': result.total,
    })


@api_view(['GET'])
def file_types(request: HttpRequest) -> HttpResponse:
    """MIME types of the user's files grouped by category."""
    return JsonResponse({
        'categories': search_operations.get_file_type_categories(request.user),
    })
