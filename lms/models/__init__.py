# Importing every table module registers it on SQLModel.metadata
from lms.models.user import User, UserRole
from lms.models.school import School
from lms.models.department import Department
from lms.models.course import Course, CourseCoordinator, CourseLaunch
from lms.models.content import Unit, Video, ReadingMaterial
from lms.models.content_arrangement import ContentArrangement
from lms.models.section import Section, SectionStudent, SectionCourseTeacher
from lms.models.progress import StudentProgress
from lms.models.notification import Announcement, Notification
from lms.models.chat import ChatMessage
from lms.models.audit import AuditLog, SecurityEvent
from lms.models.quiz import UnitQuiz, QuizQuestion, QuizAttempt
from lms.models.certificate import Certificate
