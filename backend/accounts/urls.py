from django.urls import path
from .views import MeView, TrustScoreView, UserReviewsView

urlpatterns = [
    path('me/', MeView.as_view(), name='me'),
    path('users/<int:user_id>/trust-score/', TrustScoreView.as_view(), name='trust-score'),
    path('users/<int:user_id>/reviews/', UserReviewsView.as_view(), name='user-reviews'),
]
