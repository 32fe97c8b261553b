from .user import User
from .interview import Interview, InterviewQuestion, InterviewResponse
from .question_bank import QuestionBank
from .report import Report
from .payment import Payment
from .notification import Notification
from .upload import Upload
# base and mixins are imported by the above as needed
