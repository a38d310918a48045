from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Tag',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=128, unique=True)),
            ],
            options={
                'db_table': 'locations_tag',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='POI',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(help_text='The official name of the place', max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('address', models.CharField(blank=True, default='', help_text='Human readable physical address', max_length=255)),
                ('opening_hours', models.TextField(blank=True, null=True)),
                ('latitude', models.FloatField()),
                ('longitude', models.FloatField()),
                ('external_id', models.CharField(blank=True, help_text='Unique ID from the import source to prevent duplicates', max_length=255, null=True, unique=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tags', models.ManyToManyField(blank=True, related_name='pois', to='locations.tag')),
                ('uploader', models.ForeignKey(blank=True, help_text='User who created the POI. Empty for imported data', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='uploaded_pois', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'locations_poi',
                'indexes': [
                    models.Index(fields=['latitude', 'longitude'], name='poi_lat_lon_idx'),
                    models.Index(fields=['external_id'], name='poi_external_id_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='POIImage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('image_url', models.CharField(max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('poi', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='images', to='locations.poi')),
                ('uploader', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='uploaded_poi_images', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'locations_poi_image',
                'ordering': ['created_at', 'id'],
            },
        ),
    ]
