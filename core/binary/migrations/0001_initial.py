from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('settlement', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Distributor',
            fields=[
                ('id', models.CharField(max_length=64, primary_key=True, serialize=False)),
                ('side', models.CharField(blank=True, choices=[('left', 'Left'), ('right', 'Right')], max_length=5, null=True)),
                ('depth', models.IntegerField(default=0)),
                ('direct_referral_count', models.IntegerField(default=0)),
                ('is_activated', models.BooleanField(default=False)),
                ('activated_at', models.DateTimeField(blank=True, null=True)),
                ('activation_bonus_paid', models.BooleanField(default=False, help_text='Set once when the activation bonus is paid; never cleared')),
                ('is_active_buyer', models.BooleanField(default=False)),
                ('is_deactivated', models.BooleanField(default=False)),
                ('pairs_since_activation', models.IntegerField(default=0, help_text='Lifetime pairs paid since activation (drives the extra deduction threshold)')),
                ('joined_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='children', to='binary.distributor')),
                ('referrer', models.ForeignKey(blank=True, help_text='Distributor who referred this one (may differ from parent after spillover)', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='direct_referrals', to='binary.distributor')),
            ],
            options={
                'verbose_name': 'Distributor',
                'verbose_name_plural': 'Distributors',
                'db_table': 'distributors',
                'indexes': [models.Index(fields=['is_activated'], name='distributor_activated_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('parent__isnull', False)), fields=('parent', 'side'), name='unique_parent_side'),
                    models.UniqueConstraint(condition=models.Q(('parent__isnull', True)), fields=('depth',), name='single_root'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SubtreeCounters',
            fields=[
                ('distributor', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='counters', serialize=False, to='binary.distributor')),
                ('new_left_count', models.PositiveIntegerField(default=0)),
                ('new_right_count', models.PositiveIntegerField(default=0)),
                ('carried_left_count', models.PositiveIntegerField(default=0)),
                ('carried_right_count', models.PositiveIntegerField(default=0)),
                ('carried_left_age', models.PositiveIntegerField(default=0)),
                ('carried_right_age', models.PositiveIntegerField(default=0)),
                ('lifetime_matched_pairs', models.PositiveIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Subtree Counters',
                'verbose_name_plural': 'Subtree Counters',
                'db_table': 'subtree_counters',
            },
        ),
        migrations.CreateModel(
            name='PairMatchEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('matched_pairs', models.PositiveIntegerField()),
                ('timestamp', models.DateTimeField()),
                ('raw_matches', models.PositiveIntegerField(default=0)),
                ('carried_left_consumed', models.PositiveIntegerField(default=0)),
                ('carried_right_consumed', models.PositiveIntegerField(default=0)),
                ('blocked_by_daily_limit', models.PositiveIntegerField(default=0)),
                ('blocked_by_active_buyer_cap', models.PositiveIntegerField(default=0)),
                ('distributor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='pair_match_events', to='binary.distributor')),
                ('period', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='pair_match_events', to='settlement.settlementperiod')),
            ],
            options={
                'verbose_name': 'Pair Match Event',
                'verbose_name_plural': 'Pair Match Events',
                'db_table': 'pair_match_events',
                'ordering': ['-timestamp', 'distributor_id'],
                'constraints': [
                    models.UniqueConstraint(fields=('distributor', 'period'), name='unique_pair_match_per_period'),
                    models.CheckConstraint(condition=models.Q(('matched_pairs__gte', 1)), name='pair_match_at_least_one'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CarryForwardRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('side', models.CharField(choices=[('left', 'Left'), ('right', 'Right')], max_length=5)),
                ('leftover_count', models.PositiveIntegerField(help_text='Unmatched new count on this side at close')),
                ('carried_in', models.PositiveIntegerField(default=0, help_text='Counts moved into the carried bucket')),
                ('discarded', models.PositiveIntegerField(default=0, help_text='Leftover new counts not carried')),
                ('forfeited', models.PositiveIntegerField(default=0, help_text='Carried counts dropped after exceeding max periods')),
                ('bucket_count', models.PositiveIntegerField(default=0, help_text='Carried bucket size after close')),
                ('bucket_age', models.PositiveIntegerField(default=0, help_text='Carried bucket age after close')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('distributor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='carry_forwards', to='binary.distributor')),
                ('period', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='carry_forwards', to='settlement.settlementperiod')),
            ],
            options={
                'verbose_name': 'Carry Forward Record',
                'verbose_name_plural': 'Carry Forward Records',
                'db_table': 'carry_forward_records',
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('distributor', 'period', 'side'), name='unique_carry_forward_side'),
                ],
            },
        ),
    ]
