from gym_posture.models.customer import Customer
from gym_posture.models.lesson import Lesson
from gym_posture.models.posture import PostureGroup, PostureImage

__all__ = ["Customer", "Lesson", "PostureGroup", "PostureImage"]
