from gym_posture.schemas.base import CamelModel


class CustomerResponse(CamelModel):
    id: str
    name: str
