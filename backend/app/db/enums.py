import enum


class NotificationType(str, enum.Enum):
    like = "like"
    comment = "comment"
    message = "message"
