from django.urls import path

from .views import ClearConversationView, HistoryView, SendMessageView

app_name = 'chatbot'

urlpatterns = [
    path('message/', SendMessageView.as_view(), name='message'),
    path('history/', HistoryView.as_view(), name='history'),
    path('clear/', ClearConversationView.as_view(), name='clear'),
]
