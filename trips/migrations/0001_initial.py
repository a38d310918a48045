from django.conf import settings
import django.core.validators
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
            name='Itinerary',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(help_text='User defined name for the trip', max_length=128)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(help_text='Reference to the owner of the itinerary', on_delete=django.db.models.deletion.CASCADE, related_name='itineraries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', '-created_at'], name='itinerary_user_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ItineraryItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_priority', models.PositiveIntegerField(help_text='Position in the route, starting at 1', validators=[django.core.validators.MinValueValidator(1)])),
                ('checked', models.BooleanField(default=False, help_text='Marked as visited by the owner')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('itinerary', models.ForeignKey(help_text='Reference to the parent trip', on_delete=django.db.models.deletion.CASCADE, related_name='items', to='trips.itinerary')),
                ('poi', models.ForeignKey(help_text='Reference to the location being visited', on_delete=django.db.models.deletion.CASCADE, related_name='itinerary_items', to='locations.poi')),
            ],
            options={
                'ordering': ['itinerary', 'order_priority'],
                'indexes': [
                    models.Index(fields=['itinerary', 'order_priority'], name='item_itinerary_order_idx'),
                ],
                'unique_together': {('itinerary', 'poi'), ('itinerary', 'order_priority')},
            },
        ),
        migrations.AddField(
            model_name='itinerary',
            name='stops',
            field=models.ManyToManyField(help_text='The places to visit, ordered through ItineraryItem.order_priority', related_name='itineraries', through='trips.ItineraryItem', to='locations.poi'),
        ),
    ]
