"""API endpoint for anonymous feedback on generated analyses."""

from __future__ import annotations

from fastapi import APIRouter, status

from core.error_handler import StructuredLogger
from schemas.api import ApiResponse
from schemas.feedback import FeedbackRequest


router = APIRouter(tags=["feedback"])

structured_logger = StructuredLogger(__name__)

THANK_YOU_MESSAGES: dict[str, str] = {
    "en": "Thank you for your feedback!",
    "vi": "Cảm ơn bạn đã gửi phản hồi!",
}


@router.post(
    "/feedback",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse[dict[str, str]],
)
async def submit_feedback(feedback: FeedbackRequest) -> ApiResponse[dict[str, str]]:
    """Record reader feedback (logged only, never persisted)."""
    structured_logger.info(
        "Feedback received",
        feedback_type=feedback.type,
        language=feedback.language,
        client_timestamp=feedback.timestamp,
        user_agent=feedback.user_agent,
        details=feedback.details,
    )

    message = THANK_YOU_MESSAGES[feedback.language or "en"]
    return ApiResponse(
        data={"status": "ok", "feedback": feedback.type},
        message=message,
    )
