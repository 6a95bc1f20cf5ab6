from django.urls import path

from server.apps.files import views

app_name = 'files'

urlpatterns = [
    path('upload', views.upload, name='upload'),
    path('files', views.file_list, name='list'),
    path('file-info/<str:storage_key>', views.file_info, name='info'),
    path('thumbnail/<str:storage_key>', views.thumbnail, name='thumbnail'),
    path('download/<str:storage_key>', views.download, name='download'),
    path('delete/<str:storage_key>', views.delete, name='delete'),
]
