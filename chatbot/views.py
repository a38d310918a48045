"""
Views for the travel assistant chatbot.
"""
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import ConversationSerializer, SendMessageSerializer
from .services import ChatbotService


class SendMessageView(APIView):
    """
    POST /api/chatbot/message/
    Body:
    {
        "message": "What can I eat near Marina Bay?",
        "user_id": "optional, generated when missing",
        "conversation_id": "optional, defaults to 'default'"
    }
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = SendMessageSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        result = ChatbotService().send_message(
            data['message'],
            user_id=data.get('user_id') or None,
            conversation_id=data.get('conversation_id') or None,
        )
        return Response(result)


class HistoryView(APIView):
    """
    GET /api/chatbot/history/?user_id=...&conversation_id=...
    Without conversation_id a summary of every conversation is returned.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        serializer = ConversationSerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response({'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        service = ChatbotService()
        return Response(service.history(data['user_id'], data.get('conversation_id') or None))


class ClearConversationView(APIView):
    """
    POST /api/chatbot/clear/
    Body: {"user_id": "...", "conversation_id": "optional"}
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = ConversationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        return Response(ChatbotService().clear(data['user_id'], data.get('conversation_id') or None))
