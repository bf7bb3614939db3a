from pydantic import BaseModel


class Identity(BaseModel):
    """A caller as resolved from their bearer credential."""

    uid: str
    email: str
    name: str = ""
    picture: str = ""
