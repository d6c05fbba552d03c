from decimal import Decimal

from django.db import migrations


LEVELS = [
    (1, 'Bronze', Decimal('10000')),
    (2, 'Silver', Decimal('25000')),
    (3, 'Gold', Decimal('50000')),
    (4, 'Platinum', Decimal('100000')),
    (5, 'Diamond', Decimal('250000')),
]


def seed_levels(apps, schema_editor):
    CeilingLevel = apps.get_model('settings', 'CeilingLevel')
    for rank, name, ceiling in LEVELS:
        CeilingLevel.objects.get_or_create(rank=rank, defaults={'name': name, 'ceiling': ceiling})


def remove_levels(apps, schema_editor):
    CeilingLevel = apps.get_model('settings', 'CeilingLevel')
    CeilingLevel.objects.filter(rank__in=[rank for rank, _, _ in LEVELS]).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('settings', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(seed_levels, remove_levels),
    ]
