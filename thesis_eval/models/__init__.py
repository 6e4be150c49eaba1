from .user import User
from .thesis_group import ThesisGroup, GroupMember
from .rubric import RubricTemplate, RubricCriterion, RubricScaleLevel
from .feedback_form import StudentFeedbackForm
from .defense_schedule import DefenseSchedule, SchedulePanelist
from .evaluation import Evaluation, EvaluationScore, EvaluationExtras
from .student_evaluation import StudentEvaluation, StudentEvaluationScore
from .notification import Notification
from .audit_log import AuditLog
from .password_reset import PasswordReset
# base and mixins are imported by the above as needed
