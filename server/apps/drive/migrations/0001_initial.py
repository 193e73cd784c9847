import uuid

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
            name='Entry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('is_directory', models.BooleanField(default=False)),
                ('size_bytes', models.BigIntegerField(default=0, help_text='Content size in bytes, 0 for folders')),
                ('mime_type', models.CharField(blank=True, default='', max_length=255)),
                ('checksum_sha256', models.CharField(blank=True, default='', help_text='SHA256 hash for integrity verification', max_length=64)),
                ('blob_key', models.CharField(blank=True, default='', help_text='Object key in storage: {owner_id}/{entry_id}', max_length=255)),
                ('state', models.CharField(choices=[('active', 'Active'), ('trashed', 'Trashed'), ('inconsistent', 'Inconsistent')], db_index=True, default='active', max_length=16)),
                ('trashed_at', models.DateTimeField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1, help_text='Incremented on every metadata change')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='drive_entries', to=settings.AUTH_USER_MODEL)),
                ('parent', models.ForeignKey(blank=True, help_text='Containing folder, empty for root-level entries', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='children', to='drive.entry')),
            ],
            options={
                'verbose_name': 'Entry',
                'verbose_name_plural': 'Entries',
                'ordering': ['-is_directory', 'name'],
                'indexes': [
                    models.Index(fields=['owner', 'parent', 'state'], name='drive_entry_listing_idx'),
                    models.Index(fields=['state', 'trashed_at'], name='drive_entry_trash_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('state', 'active')), fields=('owner', 'parent', 'name'), name='drive_entry_active_sibling_unique'),
                    models.CheckConstraint(condition=models.Q(('size_bytes__gte', 0)), name='drive_entry_size_non_negative'),
                    models.CheckConstraint(condition=models.Q(('is_directory', False), ('size_bytes', 0), _connector='OR'), name='drive_entry_directory_empty_size'),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserQuota',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='drive_quota', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('quota_bytes', models.BigIntegerField(default=10737418240, help_text='Storage quota limit in bytes')),
                ('used_bytes', models.BigIntegerField(default=0, help_text='Currently used storage in bytes')),
            ],
            options={
                'verbose_name': 'User Quota',
                'verbose_name_plural': 'User Quotas',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quota_bytes__gte', 0)), name='drive_quota_bytes_non_negative'),
                    models.CheckConstraint(condition=models.Q(('used_bytes__gte', 0)), name='drive_used_bytes_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Activity',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('folder_created', 'Folder created'), ('file_created', 'File created'), ('file_updated', 'File updated'), ('file_copied', 'File copied'), ('entry_renamed', 'Renamed'), ('entry_moved', 'Moved'), ('entry_trashed', 'Moved to trash'), ('entry_restored', 'Restored'), ('entry_deleted', 'Deleted permanently'), ('trash_emptied', 'Trash emptied')], max_length=32)),
                ('entry_id', models.UUIDField(blank=True, db_index=True, null=True)),
                ('entry_name', models.CharField(blank=True, default='', max_length=255)),
                ('details', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='drive_activities', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Activity',
                'verbose_name_plural': 'Activities',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', '-created_at'], name='drive_activity_recent_idx'),
                ],
            },
        ),
    ]
