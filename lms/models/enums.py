from enum import Enum

class ArrangementStatus(str, Enum):
    open = "open"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"


class CourseArrangementState(str, Enum):
    none = "none"
    draft = "draft"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"
    pending_relaunch = "pending_relaunch"


class ContentType(str, Enum):
    video = "video"
    document = "document"


class ProgressStatus(str, Enum):
    in_progress = "in_progress"
    completed = "completed"
    needs_review = "needs_review"


class AnnouncementScope(str, Enum):
    school = "school"
    department = "department"
    section = "section"
    course = "course"
