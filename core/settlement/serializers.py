from rest_framework import serializers

from .models import SettlementFailure, SettlementPeriod


class SettlementFailureSerializer(serializers.ModelSerializer):
    class Meta:
        model = SettlementFailure
        fields = '__all__'


class SettlementPeriodSerializer(serializers.ModelSerializer):
    pending_failures = serializers.SerializerMethodField()

    class Meta:
        model = SettlementPeriod
        fields = '__all__'

    def get_pending_failures(self, obj):
        return obj.failures.filter(resolved_at__isnull=True).count()


class RunDailySerializer(serializers.Serializer):
    run_date = serializers.DateField(required=False)
