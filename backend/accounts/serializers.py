from rest_framework import serializers
from .models import Review, User


class UserSerializer(serializers.ModelSerializer):
    profile_picture_url = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "phone_number",
            "is_verified",
            "date_joined",
            "profile_picture",
            "profile_picture_url",
        ]
        read_only_fields = ["id", "is_verified", "date_joined", "profile_picture_url"]
        extra_kwargs = {
            "profile_picture": {"write_only": True, "required": False}
        }

    def get_profile_picture_url(self, obj):
        if obj.profile_picture:
            request = self.context.get("request")
            if request:
                return request.build_absolute_uri(obj.profile_picture.url)
            return obj.profile_picture.url
        return None


class ReviewSerializer(serializers.ModelSerializer):
    author = serializers.PrimaryKeyRelatedField(read_only=True)
    subject = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = Review
        fields = ["id", "author", "subject", "related_ride", "rating", "comment", "created_at"]
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    ride_id = serializers.IntegerField()
    rating = serializers.IntegerField()
    comment = serializers.CharField(required=False, allow_blank=True, default="")


def serialize_trust(result, risk) -> dict:
    return {
        "score": result.score,
        "level": result.level,
        "breakdown": result.breakdown.as_dict(),
        "factors": result.factors,
        "recommendations": result.recommendations,
        "risk": {
            "score": risk.risk_score,
            "level": risk.risk_level,
            "indicators": risk.indicators,
        },
    }
