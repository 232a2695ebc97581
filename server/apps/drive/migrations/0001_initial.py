import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Folder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('path', models.CharField(help_text='Logical path: ancestor names joined with /', max_length=1024)),
                ('icon_type', models.CharField(default='folder', max_length=50)),
                ('icon_color', models.CharField(default='text-blue-500', max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='subfolders', to='drive.folder')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='folders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Folder',
                'verbose_name_plural': 'Folders',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['user', 'parent'], name='folders_user_parent_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'parent', 'name'), name='folders_sibling_name_unique'),
                    models.UniqueConstraint(condition=models.Q(('parent__isnull', True)), fields=('user', 'name'), name='folders_root_name_unique'),
                ],
            },
        ),
        migrations.CreateModel(
            name='File',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('original_name', models.CharField(max_length=255)),
                ('file', models.FileField(help_text='Path in storage: {user_id}/{user_id}_{name}', max_length=512, upload_to='')),
                ('size', models.BigIntegerField(help_text='File size in bytes')),
                ('mime_type', models.CharField(blank=True, default='', max_length=255)),
                ('current_version', models.PositiveIntegerField(default=1)),
                ('versioning_enabled', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('folder', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='files', to='drive.folder')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='drive_files', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'File',
                'verbose_name_plural': 'Files',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['user', 'folder'], name='files_user_folder_idx')],
            },
        ),
        migrations.CreateModel(
            name='FileVersion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('version', models.PositiveIntegerField()),
                ('content', models.FileField(help_text='Live path or archive path of this version', max_length=512, upload_to='')),
                ('size', models.BigIntegerField()),
                ('checksum', models.CharField(help_text='MD5 hex digest for integrity display', max_length=32)),
                ('comment', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='created_versions', to=settings.AUTH_USER_MODEL)),
                ('file', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='versions', to='drive.file')),
            ],
            options={
                'verbose_name': 'File Version',
                'verbose_name_plural': 'File Versions',
                'ordering': ['-version'],
                'constraints': [models.UniqueConstraint(fields=('file', 'version'), name='file_versions_number_unique')],
            },
        ),
        migrations.CreateModel(
            name='Favorite',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_type', models.CharField(choices=[('file', 'File'), ('folder', 'Folder')], max_length=10)),
                ('item_id', models.PositiveBigIntegerField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='favorites', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Favorite',
                'verbose_name_plural': 'Favorites',
                'ordering': ['-created_at'],
                'constraints': [models.UniqueConstraint(fields=('user', 'item_type', 'item_id'), name='favorites_user_item_unique')],
            },
        ),
        migrations.CreateModel(
            name='RecentAccess',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_type', models.CharField(choices=[('file', 'File'), ('folder', 'Folder')], max_length=10)),
                ('item_id', models.PositiveBigIntegerField()),
                ('accessed_at', models.DateTimeField(db_index=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='recent_accesses', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Recent Access',
                'verbose_name_plural': 'Recent Accesses',
                'ordering': ['-accessed_at'],
                'indexes': [models.Index(fields=['user', '-accessed_at'], name='recent_user_accessed_idx')],
            },
        ),
    ]
