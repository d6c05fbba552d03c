from rest_framework import serializers
from core.binary.exceptions import ConfigInvariantViolation
from .config import CommissionConfig
from .models import CommissionSettings, CeilingLevel


class CeilingLevelSerializer(serializers.ModelSerializer):
    class Meta:
        model = CeilingLevel
        fields = ['rank', 'name', 'ceiling', 'pair_commission_amount']


class CommissionSettingsSerializer(serializers.ModelSerializer):
    updated_by_username = serializers.CharField(source='updated_by.username', read_only=True)
    levels = serializers.SerializerMethodField()
    
    class Meta:
        model = CommissionSettings
        fields = [
            'id',
            'direct_user_commission_amount',
            'binary_commission_activation_count',
            'binary_pair_commission_amount',
            'binary_tds_threshold_pairs',
            'binary_commission_tds_percentage',
            'binary_extra_deduction_percentage',
            'binary_daily_pair_limit',
            'max_earnings_before_active_buyer',
            'binary_commission_initial_bonus',
            'binary_tree_default_placement_side',
            'placement_search_strategy',
            'spillover_max_depth',
            'max_tree_depth',
            'carry_forward_enabled',
            'carry_forward_type',
            'carry_forward_max_periods',
            'carry_forward_percentage',
            'carry_forward_max_amount',
            'carry_forward_weak_leg_only',
            'reset_levels_on_period_close',
            'levels',
            'updated_at',
            'updated_by',
            'updated_by_username',
        ]
        read_only_fields = ['id', 'updated_at', 'updated_by']
    
    def get_levels(self, obj):
        return CeilingLevelSerializer(CeilingLevel.objects.order_by('rank'), many=True).data
    
    def validate(self, attrs):
        """
        Run the engine's own config validation against the merged result so an
        invalid combination is rejected before anything is saved.
        """
        candidate = CommissionSettings(**{
            f.name: getattr(self.instance, f.name)
            for f in CommissionSettings._meta.concrete_fields
            if f.name != 'updated_by'
        }) if self.instance else CommissionSettings()
        for key, value in attrs.items():
            setattr(candidate, key, value)
        try:
            CommissionConfig.from_settings(candidate).validate()
        except ConfigInvariantViolation as e:
            raise serializers.ValidationError({'non_field_errors': e.violations})
        return attrs
