from app.models.user import User
from app.models.workout import Workout
from app.models.food_log import FoodLog
from app.models.body_metric import BodyMetric
from app.models.user_goal import UserGoal
from app.models.user_pattern import UserPattern
from app.models.conversation_memory import ConversationMemory
from app.models.ai_context_cache import AIContextCache
from app.models.ai_usage import AIUsageRecord
from app.models.ai_context_record import AIContextRecord
from app.models.ai_insight import AIInsight
from app.models.food_reference import FoodReference

__all__ = [
    "User",
    "Workout",
    "FoodLog",
    "BodyMetric",
    "UserGoal",
    "UserPattern",
    "ConversationMemory",
    "AIContextCache",
    "AIUsageRecord",
    "AIContextRecord",
    "AIInsight",
    "FoodReference",
]
