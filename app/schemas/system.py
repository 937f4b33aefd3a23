from pydantic import BaseModel

class SystemStats(BaseModel):
    users: int
    galaxies: int
    planets: int
    images: int
    categorizations: int
