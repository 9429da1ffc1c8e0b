from app.models.audit_event import AuditEvent
from app.models.feedback import Feedback
from app.models.goal import Goal
from app.models.goal_completion_approval import GoalCompletionApproval
from app.models.goal_progress_note import GoalProgressNote
from app.models.notification import Notification
from app.models.performance_review import PerformanceReview
from app.models.review_cycle import ReviewCycle
from app.models.review_goal_link import ReviewGoalLink
from app.models.user import User

__all__ = [ "AuditEvent", "Feedback", "Goal", "GoalCompletionApproval",
           "GoalProgressNote", "Notification", "PerformanceReview",
           "ReviewCycle", "ReviewGoalLink", "User" ]
