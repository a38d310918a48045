from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('locations', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('liked', models.BooleanField()),
                ('comment', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('poi', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to='locations.poi')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'recommendations_review',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['poi', 'liked'], name='review_poi_liked_idx'),
                    models.Index(fields=['created_at'], name='review_created_idx'),
                ],
                'unique_together': {('user', 'poi')},
            },
        ),
        migrations.CreateModel(
            name='ReviewImage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('image_url', models.CharField(max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('review', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='images', to='recommendations.review')),
            ],
            options={
                'db_table': 'recommendations_review_image',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='SurveyPreference',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('liked', models.BooleanField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('poi', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='survey_preferences', to='locations.poi')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='survey_preferences', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'recommendations_survey_preference',
                'indexes': [
                    models.Index(fields=['user', 'liked'], name='survey_user_liked_idx'),
                ],
                'unique_together': {('user', 'poi')},
            },
        ),
    ]
