from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


def parse_env(entries: Optional[List[str]]) -> Dict[str, str]:
    """Turn engine-style ``KEY=VALUE`` entries into an ordered mapping."""
    env: Dict[str, str] = {}
    for entry in entries or []:
        key, _, value = entry.partition("=")
        env[key] = value
    return env


class ImageConfig(BaseModel):
    """
        Class represents the container configuration a step is applied with
        and an image is committed with.
    """
    image: Optional[str] = None
    user: str = ""
    working_dir: str = ""
    cmd: Optional[List[str]] = None
    entrypoint: Optional[List[str]] = None
    env: Dict[str, str] = Field(default_factory=dict)
    tty: bool = True

    def to_engine(self) -> Dict[str, Any]:
        """Render in the shape the engine API expects for create/commit."""
        return {
            "Image": self.image or "",
            "User": self.user,
            "WorkingDir": self.working_dir,
            "Cmd": self.cmd,
            "Entrypoint": self.entrypoint,
            "Env": [f"{key}={value}" for key, value in self.env.items()],
            "Tty": self.tty,
            "AttachStdout": True,
            "AttachStderr": True,
        }

    @classmethod
    def from_engine(cls, data: Optional[Dict[str, Any]], image: Optional[str] = None) -> "ImageConfig":
        data = data or {}
        return cls(
            image=image if image is not None else (data.get("Image") or None),
            user=data.get("User") or "",
            working_dir=data.get("WorkingDir") or "",
            cmd=data.get("Cmd"),
            entrypoint=data.get("Entrypoint"),
            env=parse_env(data.get("Env")),
            tty=bool(data.get("Tty", True)),
        )


class ImageSummary(BaseModel):
    """
        Class represents one row of the runtime's image listing.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(alias="Id")
    parent_id: str = Field("", alias="ParentId")


class ImageRecord(BaseModel):
    """
        Class represents an inspected image. ``comment`` holds the cache key
        the image was committed with.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(alias="Id")
    parent_id: str = Field("", alias="Parent")
    comment: str = Field("", alias="Comment")
    config: ImageConfig = Field(default_factory=ImageConfig)

    @classmethod
    def from_engine(cls, data: Dict[str, Any]) -> "ImageRecord":
        image_id = data["Id"]
        return cls(
            id=image_id,
            parent_id=data.get("Parent") or "",
            comment=data.get("Comment") or "",
            config=ImageConfig.from_engine(data.get("Config"), image=image_id),
        )
