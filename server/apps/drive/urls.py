"""URL configuration for drive app."""

from django.urls import path

from server.apps.drive import views

app_name = 'drive'

urlpatterns = [
    # Folders
    path('folders/', views.folders, name='folders'),
    path('folders/<int:folder_id>/', views.folder_detail, name='folder_detail'),
    path('folders/<int:folder_id>/move/', views.folder_move, name='folder_move'),
    path(
        'folders/<int:folder_id>/breadcrumbs/',
        views.folder_breadcrumbs,
        name='folder_breadcrumbs',
    ),
    path(
        'folders/<int:folder_id>/download/',
        views.folder_download,
        name='folder_download',
    ),
    # Files
    path('files/', views.file_upload, name='file_upload'),
    path('files/<int:file_id>/', views.file_detail, name='file_detail'),
    path('files/<int:file_id>/move/', views.file_move, name='file_move'),
    path(
        'files/<int:file_id>/download/',
        views.file_download,
        name='file_download',
    ),
    # Versions
    path(
        'files/<int:file_id>/versioning/',
        views.file_versioning,
        name='file_versioning',
    ),
    path(
        'files/<int:file_id>/versions/',
        views.file_versions,
        name='file_versions',
    ),
    path(
        'files/<int:file_id>/versions/<int:version_number>/restore/',
        views.version_restore,
        name='version_restore',
    ),
    path(
        'files/<int:file_id>/versions/<int:version_number>/download/',
        views.version_download,
        name='version_download',
    ),
    # Bulk
    path('bulk/', views.bulk, name='bulk'),
    # Favorites
    path('favorites/', views.favorites, name='favorites'),
    path('favorites/check/', views.favorite_check, name='favorite_check'),
    path(
        'favorites/remove/',
        views.favorite_remove_by_item,
        name='favorite_remove_by_item',
    ),
    path(
        'favorites/<int:favorite_id>/',
        views.favorite_detail,
        name='favorite_detail',
    ),
    # Recent access
    path('recent/', views.recent, name='recent'),
    path(
        'recent/<str:item_type>/<int:item_id>/',
        views.recent_track,
        name='recent_track',
    ),
    # Search
    path('search/', views.search, name='search'),
    path('search/file-types/', views.file_types, name='file_types'),
]
