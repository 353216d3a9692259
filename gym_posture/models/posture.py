from sqlalchemy import Column, String, Integer, ForeignKey

from gym_posture.database import Base


class PostureGroup(Base):
    __tablename__ = "posture_groups"

    id = Column(String, primary_key=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False)
    lesson_id = Column(String, ForeignKey("lessons.id"), nullable=False, unique=True)
    captured_at = Column(String, nullable=False)


class PostureImage(Base):
    __tablename__ = "posture_images"

    id = Column(String, primary_key=True)
    # NULL while the image is staged under a client-side temporary group
    posture_group_id = Column(String, ForeignKey("posture_groups.id"), nullable=True)
    staging_token = Column(String, nullable=True, index=True)
    customer_id = Column(String, nullable=True)
    storage_key = Column(String, nullable=False)
    position = Column(String, nullable=False)
    taken_at = Column(String, nullable=False)
    created_at = Column(String, nullable=False)
    consent_publication = Column(Integer, nullable=False, default=0)
