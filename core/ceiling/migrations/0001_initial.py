from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('binary', '0001_initial'),
        ('commission', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='LevelState',
            fields=[
                ('distributor', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, primary_key=True, related_name='level_state', serialize=False, to='binary.distributor')),
                ('current_level', models.PositiveIntegerField(default=0)),
                ('level_name', models.CharField(blank=True, max_length=50)),
                ('cumulative_achieved', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('ceiling_for_level', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('reset_baseline', models.DecimalField(decimal_places=2, default=0, help_text='cumulative_achieved at the last level reset; progress is measured from here', max_digits=14)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Level State',
                'verbose_name_plural': 'Level States',
                'db_table': 'level_states',
            },
        ),
        migrations.CreateModel(
            name='LevelChangeEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_level', models.PositiveIntegerField()),
                ('to_level', models.PositiveIntegerField()),
                ('from_level_name', models.CharField(blank=True, max_length=50)),
                ('to_level_name', models.CharField(blank=True, max_length=50)),
                ('cumulative_achieved', models.DecimalField(decimal_places=2, max_digits=14)),
                ('reason', models.CharField(choices=[('promotion', 'Promotion'), ('reset', 'Periodic Reset')], default='promotion', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('distributor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='level_changes', to='binary.distributor')),
                ('ledger_entry', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='level_changes', to='commission.ledgerentry')),
            ],
            options={
                'verbose_name': 'Level Change Event',
                'verbose_name_plural': 'Level Change Events',
                'db_table': 'level_change_events',
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]
