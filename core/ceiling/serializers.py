from rest_framework import serializers

from .models import LevelChangeEvent, LevelState


class LevelStateSerializer(serializers.ModelSerializer):
    progress = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = LevelState
        fields = '__all__'


class LevelChangeEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = LevelChangeEvent
        fields = '__all__'
