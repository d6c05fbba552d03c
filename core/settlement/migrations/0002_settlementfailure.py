from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    dependencies = [
        ('binary', '0001_initial'),
        ('settlement', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='SettlementFailure',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('stage', models.CharField(choices=[('settle', 'Pair Matching & Commission'), ('carry_forward', 'Carry Forward')], default='settle', max_length=20)),
                ('error', models.TextField()),
                ('attempts', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('last_attempt_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('distributor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='settlement_failures', to='binary.distributor')),
                ('period', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='failures', to='settlement.settlementperiod')),
            ],
            options={
                'verbose_name': 'Settlement Failure',
                'verbose_name_plural': 'Settlement Failures',
                'db_table': 'settlement_failures',
                'ordering': ['created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('period', 'distributor', 'stage'), name='unique_failure_per_stage'),
                ],
            },
        ),
    ]
