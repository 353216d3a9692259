from sqlalchemy import Column, String, Float, ForeignKey

from gym_posture.database import Base


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(String, primary_key=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False)
    start_date = Column(String, nullable=False)
    end_date = Column(String, nullable=False)
    condition = Column(String, nullable=True)
    weight = Column(Float, nullable=True)
    memo = Column(String, nullable=True)
    created_at = Column(String, nullable=False)
