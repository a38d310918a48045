from rest_framework import serializers


class SendMessageSerializer(serializers.Serializer):
    message = serializers.CharField(max_length=2000)
    user_id = serializers.CharField(max_length=128, required=False, allow_blank=True)
    conversation_id = serializers.CharField(max_length=128, required=False, allow_blank=True)


class ConversationSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=128)
    conversation_id = serializers.CharField(max_length=128, required=False, allow_blank=True)
