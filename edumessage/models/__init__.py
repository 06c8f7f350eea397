from edumessage.models.user import User
from edumessage.models.class_model import Class, ClassMember
from edumessage.models.message import Message
from edumessage.models.notification import Notification, NotificationRead
from edumessage.models.homework import HomeworkAssignment, HomeworkSubmission, HomeworkGrade
from edumessage.models.session import ClassSession, SessionContent, SessionParticipant, SessionQA
from edumessage.models.ai_analysis import QAAIAnalysis, QAPatternAnalysis
from edumessage.models.token_blacklist import TokenBlacklist

__all__ = [
    "User",
    "Class",
    "ClassMember",
    "Message",
    "Notification",
    "NotificationRead",
    "HomeworkAssignment",
    "HomeworkSubmission",
    "HomeworkGrade",
    "ClassSession",
    "SessionContent",
    "SessionParticipant",
    "SessionQA",
    "QAAIAnalysis",
    "QAPatternAnalysis",
    "TokenBlacklist",
]
