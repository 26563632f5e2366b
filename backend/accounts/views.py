from django.apps import apps
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from common.utils.api import EngineErrorMixin
from services.ride_management import submit_review
from services.ride_management.insights import trust_score_for_user
from .models import Review
from .serializers import ReviewCreateSerializer, ReviewSerializer, UserSerializer, serialize_trust


def _repository():
    return apps.get_app_config('rides').repository


class MeView(APIView):
    """GET: the signed-in user's profile"""
    permission_classes = (IsAuthenticated,)

    def get(self, request):
        return Response(UserSerializer(request.user, context={"request": request}).data)


class TrustScoreView(EngineErrorMixin, APIView):
    """
    GET: trust score and behaviour risk for a user

    Response:
    {
        "score": 72, "level": "good",
        "breakdown": {"reviews": 32, "activity": 10, ...},
        "factors": [...], "recommendations": [...],
        "risk": {"score": 0, "level": "low", "indicators": []}
    }
    """
    permission_classes = (IsAuthenticated,)

    def get(self, request, user_id: int):
        result, risk = trust_score_for_user(_repository(), user_id)
        return Response({"user_id": user_id, **serialize_trust(result, risk)})


class UserReviewsView(EngineErrorMixin, APIView):
    """
    GET: reviews a user has received
    POST: review that user for a completed ride you shared

    POST Body:
    {
        "ride_id": 12,
        "rating": 5,
        "comment": "On time and friendly"
    }
    """
    permission_classes = (IsAuthenticated,)

    def get(self, request, user_id: int):
        reviews = Review.objects.filter(subject_id=user_id)
        return Response(ReviewSerializer(reviews, many=True).data)

    def post(self, request, user_id: int):
        serializer = ReviewCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        repository = _repository()
        subject = repository.get_user(user_id)
        ride = repository.get_ride(serializer.validated_data["ride_id"])
        review = submit_review(
            request.user,
            subject,
            ride,
            serializer.validated_data["rating"],
            serializer.validated_data["comment"],
            repository=repository,
        )
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)
